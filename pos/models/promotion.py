"""Promotion model (discount and free product promotions)."""
import logging
from decimal import Decimal
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, Date, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pos.database import Base, BigIntegerPK
from pos.domain import (
    DiscountPromotion, DiscountType, FreeProductPromotion, PromotionStatus
)

logger = logging.getLogger(__name__)

PROMOTION_TYPE_DISCOUNT = 'discount'
PROMOTION_TYPE_FREE_PRODUCT = 'free_product'


promotion_product = Table(
    'promotion_product',
    Base.metadata,
    Column('promotion_id', BigInteger, ForeignKey('promotion.id', ondelete='CASCADE'), primary_key=True),
    Column('product_id', BigInteger, ForeignKey('product.id', ondelete='CASCADE'), primary_key=True),
)


class Promotion(Base):
    """
    Promotion row.

    ``promotion_type`` selects which columns are meaningful:
    - discount: discount_type, discount_value
    - free_product: quantity_to_buy, free_product_id, quantity_to_get_free

    ``products`` are the discounted products (discount) or the trigger
    products (free_product). Lower ``priority`` is evaluated first.
    """
    
    __tablename__ = 'promotion'
    
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    promotion_type = Column(String(20), nullable=False)
    priority = Column(Integer, nullable=False, default=0, server_default='0')
    
    discount_type = Column(String(10), nullable=True)  # 'percent' or 'fixed'
    discount_value = Column(Numeric(12, 2), nullable=True)
    
    free_product_id = Column(BigInteger, ForeignKey('product.id'), nullable=True)
    quantity_to_buy = Column(Integer, nullable=True)
    quantity_to_get_free = Column(Integer, nullable=True)
    
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(10), nullable=False, default=PromotionStatus.ACTIVE.value, server_default='active')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    products = relationship('Product', secondary=promotion_product, order_by='Product.id')
    free_product = relationship('Product', foreign_keys=[free_product_id])
    
    def __repr__(self):
        return f"<Promotion(id={self.id}, type={self.promotion_type}, priority={self.priority})>"

    def to_snapshot(self):
        """
        Convert to the engine's tagged variant.

        Returns None for rows whose type-specific fields are missing so the
        engine never sees an invalid combination.
        """
        common = dict(
            id=self.id,
            name=self.name,
            product_ids=frozenset(p.id for p in self.products),
            priority=self.priority or 0,
            start_date=self.start_date,
            end_date=self.end_date,
            status=PromotionStatus(self.status),
        )

        if self.promotion_type == PROMOTION_TYPE_DISCOUNT:
            if self.discount_type not in (DiscountType.PERCENT.value, DiscountType.FIXED.value) \
                    or self.discount_value is None:
                logger.debug(f"Promotion {self.id} has no usable discount fields")
                return None
            return DiscountPromotion(
                discount_type=DiscountType(self.discount_type),
                discount_value=Decimal(str(self.discount_value)),
                **common,
            )

        if self.promotion_type == PROMOTION_TYPE_FREE_PRODUCT:
            if self.free_product_id is None or not self.quantity_to_buy or not self.quantity_to_get_free:
                logger.debug(f"Promotion {self.id} has no usable free product fields")
                return None
            return FreeProductPromotion(
                quantity_to_buy=int(self.quantity_to_buy),
                free_product_id=int(self.free_product_id),
                quantity_to_get_free=int(self.quantity_to_get_free),
                **common,
            )

        logger.debug(f"Promotion {self.id} has unknown type {self.promotion_type!r}")
        return None
