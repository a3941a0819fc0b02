"""Models package - exports all SQLAlchemy models."""
from pos.models.product import Product
from pos.models.product_stock import ProductStock
from pos.models.customer import Customer
from pos.models.promotion import (
    Promotion, promotion_product, PROMOTION_TYPE_DISCOUNT, PROMOTION_TYPE_FREE_PRODUCT
)
from pos.models.sale import Sale
from pos.models.sale_line import SaleLine
from pos.models.stock_move import StockMove, StockMoveType, StockReferenceType
from pos.models.stock_move_line import StockMoveLine

__all__ = [
    'Product', 'ProductStock', 'Customer',
    'Promotion', 'promotion_product', 'PROMOTION_TYPE_DISCOUNT', 'PROMOTION_TYPE_FREE_PRODUCT',
    'Sale', 'SaleLine',
    'StockMove', 'StockMoveType', 'StockReferenceType', 'StockMoveLine',
]
