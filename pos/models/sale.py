"""Sale model."""
from sqlalchemy import Column, BigInteger, String, Text, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.sql import func
from pos.database import Base, BigIntegerPK
from pos.domain import SaleStatus


class Sale(Base):
    """
    Finalized sale with its full pricing breakdown.

    Rows are written once by the sale repository and never updated by the
    pricing engine.
    """
    
    __tablename__ = 'sale'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    receipt_number = Column(String(40), unique=True, nullable=False, index=True)
    transaction_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    operator_id = Column(String(64), nullable=False)
    operator_name = Column(String(200), nullable=False, default='')
    
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True)
    customer_name = Column(String(200), nullable=False, default='')
    customer_type = Column(String(10), nullable=False, default='cash')
    
    # Item level pricing
    total_original_price = Column(Numeric(12, 2), nullable=False)
    item_discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    subtotal = Column(Numeric(12, 2), nullable=False)
    
    # Cart level discount
    overall_discount_type = Column(String(10), nullable=True)  # 'percent' / 'fixed' / NULL
    overall_discount_value = Column(Numeric(12, 2), nullable=False, default=0)
    overall_discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    subtotal_after_discount = Column(Numeric(12, 2), nullable=False)
    
    # VAT (rate stored as a percentage, e.g. 7.00)
    vat_rate = Column(Numeric(5, 2), nullable=False, default=0)
    vat_amount = Column(Numeric(12, 2), nullable=False, default=0)
    grand_total = Column(Numeric(12, 2), nullable=False)
    
    # Payment
    payment_method = Column(String(20), nullable=False)
    received_amount = Column(Numeric(12, 2), nullable=True)  # Cash only
    change_given = Column(Numeric(12, 2), nullable=True)     # Cash only
    status = Column(String(20), nullable=False, default=SaleStatus.PAID.value)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default='0')
    outstanding_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default='0')
    due_date = Column(DateTime(timezone=True), nullable=True)  # Credit sales
    
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    # Relationships
    customer = relationship('Customer', back_populates='sales')
    lines = relationship('SaleLine', back_populates='sale', cascade='all, delete-orphan', order_by='SaleLine.id')
    
    @hybrid_property
    def amount_due(self):
        """Amount still owed: grand_total - paid_amount."""
        return (self.grand_total or 0) - (self.paid_amount or 0)

    def __repr__(self):
        return f"<Sale(id={self.id}, receipt={self.receipt_number}, grand_total={self.grand_total}, status={self.status})>"
