"""Customer model."""
from sqlalchemy import Column, String, Integer, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pos.database import Base, BigIntegerPK
from pos.domain import CustomerSnapshot, CustomerType


class Customer(Base):
    """Customer (cash or credit account)."""
    
    __tablename__ = 'customer'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    customer_type = Column(String(10), nullable=False, default=CustomerType.CASH.value, server_default='cash')
    credit_days = Column(Integer, nullable=True)
    phone = Column(String(50), nullable=True)
    # Running balance of unpaid credit sales
    total_debt_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    sales = relationship('Sale', back_populates='customer')
    
    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}', type={self.customer_type})>"

    def to_snapshot(self) -> CustomerSnapshot:
        return CustomerSnapshot(
            id=self.id,
            name=self.name,
            customer_type=CustomerType(self.customer_type or 'cash'),
            credit_days=self.credit_days,
            phone=self.phone,
        )
