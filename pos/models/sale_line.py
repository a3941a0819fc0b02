"""Sale Line model."""
from sqlalchemy import Column, BigInteger, Integer, String, Boolean, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from pos.database import Base, BigIntegerPK


class SaleLine(Base):
    """Sale Line - carries the price actually charged."""
    
    __tablename__ = 'sale_line'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sale.id'), nullable=False)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False)
    product_name = Column(String, nullable=False)
    qty = Column(Integer, nullable=False)
    price_tier = Column(Integer, nullable=False, default=1)
    original_unit_price = Column(Numeric(12, 2), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)
    applied_promotion_id = Column(BigInteger, nullable=True)
    is_free_gift = Column(Boolean, nullable=False, default=False)
    
    # Relationships
    sale = relationship('Sale', back_populates='lines')
    product = relationship('Product')
    
    def __repr__(self):
        return f"<SaleLine(id={self.id}, product_id={self.product_id}, qty={self.qty}, free={self.is_free_gift})>"
