"""Stock Move Line model."""
from sqlalchemy import Column, BigInteger, Integer, ForeignKey
from sqlalchemy.orm import relationship
from pos.database import Base, BigIntegerPK


class StockMoveLine(Base):
    """Stock Move Line - quantity change of one product with before/after levels."""
    
    __tablename__ = 'stock_move_line'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    stock_move_id = Column(BigInteger, ForeignKey('stock_move.id'), nullable=False)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False)
    qty = Column(Integer, nullable=False)
    stock_before = Column(Integer, nullable=False)
    stock_after = Column(Integer, nullable=False)
    
    # Relationships
    stock_move = relationship('StockMove', back_populates='lines')
    product = relationship('Product')
    
    def __repr__(self):
        return f"<StockMoveLine(id={self.id}, product_id={self.product_id}, qty={self.qty})>"
