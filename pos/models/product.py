"""Product model."""
from decimal import Decimal
from sqlalchemy import Column, String, Boolean, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pos.database import Base, BigIntegerPK
from pos.domain import ProductSnapshot


class Product(Base):
    """Product with up to three selling price tiers."""
    
    __tablename__ = 'product'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    unit = Column(String(30), nullable=False, default='pcs', server_default='pcs')
    active = Column(Boolean, nullable=False, default=True)
    cost_price = Column(Numeric(12, 2), nullable=False, default=0, server_default='0.00')
    selling_price = Column(Numeric(12, 2), nullable=False)  # Tier 1 (mandatory)
    selling_price_2 = Column(Numeric(12, 2), nullable=True)
    selling_price_3 = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    # Cascade delete-orphan: deleting the product removes its stock row
    stock = relationship('ProductStock', uselist=False, back_populates='product', cascade="all, delete-orphan")
    
    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', unit='{self.unit}')>"
    
    @property
    def on_hand_qty(self):
        """Get on hand quantity from stock."""
        if self.stock:
            return self.stock.on_hand_qty
        return 0

    def to_snapshot(self) -> ProductSnapshot:
        """Immutable view used by the pricing engine."""
        def _opt(value):
            return Decimal(str(value)) if value is not None else None

        return ProductSnapshot(
            id=self.id,
            name=self.name,
            unit=self.unit or '',
            stock=int(self.on_hand_qty or 0),
            cost_price=Decimal(str(self.cost_price or 0)),
            selling_price=Decimal(str(self.selling_price)),
            selling_price_2=_opt(self.selling_price_2),
            selling_price_3=_opt(self.selling_price_3),
        )
