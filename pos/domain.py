"""
Immutable value types shared by the pricing engine.

The engine never touches ORM rows: catalogs are converted to these snapshots
at the edge (see ``catalog_service``) so derivations stay pure.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, FrozenSet, Tuple, Union


class PriceTier(enum.IntEnum):
    """Selling price tier of a product."""
    TIER_1 = 1
    TIER_2 = 2
    TIER_3 = 3


class DiscountType(str, enum.Enum):
    PERCENT = 'percent'
    FIXED = 'fixed'


class PaymentMethod(str, enum.Enum):
    CASH = 'cash'
    TRANSFER = 'transfer'
    CREDIT = 'credit'


class CustomerType(str, enum.Enum):
    CASH = 'cash'
    CREDIT = 'credit'


class SaleStatus(str, enum.Enum):
    """Payment status of a sale."""
    PAID = 'paid'
    UNPAID = 'unpaid'


class PromotionStatus(str, enum.Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    name: str
    selling_price: Decimal
    stock: int
    unit: str = ''
    cost_price: Decimal = Decimal('0')
    selling_price_2: Optional[Decimal] = None
    selling_price_3: Optional[Decimal] = None


@dataclass(frozen=True)
class CustomerSnapshot:
    id: int
    name: str
    customer_type: CustomerType = CustomerType.CASH
    credit_days: Optional[int] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class DiscountPromotion:
    """Lowers the unit price of every listed product."""
    id: int
    product_ids: FrozenSet[int]
    discount_type: DiscountType
    discount_value: Decimal
    name: str = ''
    priority: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: PromotionStatus = PromotionStatus.ACTIVE
    kind: str = field(default='discount', init=False)


@dataclass(frozen=True)
class FreeProductPromotion:
    """Buy ``quantity_to_buy`` of the trigger products, get ``quantity_to_get_free`` of a gift."""
    id: int
    product_ids: FrozenSet[int]
    quantity_to_buy: int
    free_product_id: int
    quantity_to_get_free: int
    name: str = ''
    priority: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: PromotionStatus = PromotionStatus.ACTIVE
    kind: str = field(default='free_product', init=False)


Promotion = Union[DiscountPromotion, FreeProductPromotion]


@dataclass(frozen=True)
class CartLine:
    """
    One row of the cart.

    Free-gift lines are synthesized by the promotion engine at price 0 and
    are never edited directly.
    """
    product: ProductSnapshot
    quantity: int
    active_unit_price: Decimal
    tier: PriceTier = PriceTier.TIER_1
    original_unit_price_before_promo: Optional[Decimal] = None
    applied_promotion_id: Optional[int] = None
    is_free_gift: bool = False

    @property
    def product_id(self) -> int:
        return self.product.id

    @property
    def key(self) -> Tuple[int, bool]:
        return (self.product.id, self.is_free_gift)

    @property
    def tier_price(self) -> Decimal:
        """Price of the line's selected tier, before any promotion."""
        if self.tier == PriceTier.TIER_2 and self.product.selling_price_2:
            return self.product.selling_price_2
        if self.tier == PriceTier.TIER_3 and self.product.selling_price_3:
            return self.product.selling_price_3
        return self.product.selling_price

    @property
    def line_total(self) -> Decimal:
        return self.active_unit_price * self.quantity


@dataclass(frozen=True)
class SaleDraftLine:
    product_id: int
    product_name: str
    quantity: int
    tier: PriceTier
    original_unit_price: Decimal
    unit_price: Decimal
    total_price: Decimal
    applied_promotion_id: Optional[int] = None
    is_free_gift: bool = False


@dataclass(frozen=True)
class SaleDraft:
    """Everything the sale repository needs to persist one sale."""
    receipt_number: str
    transaction_date: datetime
    operator_id: str
    operator_name: str
    lines: Tuple[SaleDraftLine, ...]
    total_original_price: Decimal
    item_discount_amount: Decimal
    subtotal: Decimal
    overall_discount_type: Optional[DiscountType]
    overall_discount_value: Decimal
    overall_discount_amount: Decimal
    subtotal_after_discount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    grand_total: Decimal
    payment_method: PaymentMethod
    status: SaleStatus
    paid_amount: Decimal
    outstanding_amount: Decimal
    received_amount: Optional[Decimal] = None
    change_given: Optional[Decimal] = None
    customer_id: Optional[int] = None
    customer_name: str = ''
    customer_type: CustomerType = CustomerType.CASH
    due_date: Optional[datetime] = None
    notes: Optional[str] = None
