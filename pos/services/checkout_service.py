"""
Checkout totals for the POS cart.

Order of operations is fixed: subtotal -> overall discount -> VAT on the
discounted subtotal -> grand total -> cash change. Values stay unrounded
Decimals; rounding happens only through ``quantize_money`` at output, and
cash is checked and changed against the rounded grand total.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, Optional, Union

from pos.domain import CartLine, DiscountType, PaymentMethod
from pos.exceptions import BusinessLogicError

ZERO = Decimal('0')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')


def to_decimal(value, field_name: str = 'value') -> Decimal:
    """Convert user input (str, int, float, Decimal, None) to Decimal; blank is zero."""
    if value is None or value == '':
        return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise BusinessLogicError(f'Invalid amount for {field_name}: {value!r}')
    # NaN and Infinity parse but cannot be compared or rounded
    if not amount.is_finite():
        raise BusinessLogicError(f'Invalid amount for {field_name}: {value!r}')
    return amount


def quantize_money(value: Optional[Decimal]) -> Optional[Decimal]:
    """Round a monetary value half-up to two decimals."""
    if value is None:
        return None
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OverallDiscount:
    """Cart-level discount entered at checkout."""
    discount_type: DiscountType
    value: Decimal

    @classmethod
    def fixed(cls, value) -> 'OverallDiscount':
        return cls(DiscountType.FIXED, to_decimal(value, 'discount'))

    @classmethod
    def percent(cls, value) -> 'OverallDiscount':
        return cls(DiscountType.PERCENT, to_decimal(value, 'discount'))

    def amount_for(self, subtotal: Decimal) -> Decimal:
        if self.discount_type == DiscountType.PERCENT:
            return subtotal * self.value / HUNDRED
        return self.value


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount: Decimal
    subtotal_after_discount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    grand_total: Decimal
    payment_method: PaymentMethod
    received_amount: Decimal
    change: Decimal
    overall_discount_type: Optional[DiscountType] = None
    overall_discount_value: Decimal = ZERO

    @property
    def is_payment_sufficient(self) -> bool:
        """Cash must cover the grand total; other methods settle it by definition."""
        if self.payment_method != PaymentMethod.CASH:
            return True
        return self.received_amount >= quantize_money(self.grand_total)

    def rounded(self) -> dict:
        """Display values rounded to two decimals."""
        return {
            'subtotal': quantize_money(self.subtotal),
            'discount': quantize_money(self.discount),
            'subtotal_after_discount': quantize_money(self.subtotal_after_discount),
            'vat_rate': self.vat_rate,
            'vat_amount': quantize_money(self.vat_amount),
            'grand_total': quantize_money(self.grand_total),
            'payment_method': self.payment_method.value,
            'received_amount': quantize_money(self.received_amount),
            'change': quantize_money(self.change),
        }


def calculate_subtotal(lines: Iterable[CartLine]) -> Decimal:
    """Sum of active unit price x quantity over every line, gift lines included at 0."""
    return sum((line.active_unit_price * line.quantity for line in lines), ZERO)


def _normalize_discount(overall_discount) -> OverallDiscount:
    if isinstance(overall_discount, OverallDiscount):
        discount = overall_discount
    else:
        discount = OverallDiscount.fixed(overall_discount)
    if discount.value < 0:
        raise BusinessLogicError('The discount cannot be negative')
    return discount


def compute_totals(
    lines: Iterable[CartLine],
    overall_discount: Union[OverallDiscount, Decimal, int, str, None] = ZERO,
    vat_rate_percent: Union[Decimal, int, str, None] = ZERO,
    payment_method: Union[PaymentMethod, str] = PaymentMethod.CASH,
    received_amount: Union[Decimal, int, str, None] = None,
) -> Totals:
    """
    Compute checkout totals for the given cart lines.

    ``overall_discount`` is either an OverallDiscount or a fixed amount.
    ``vat_rate_percent`` is a percentage (7 means 7%).
    """
    discount = _normalize_discount(overall_discount)
    vat_rate = to_decimal(vat_rate_percent, 'VAT rate')
    if vat_rate < 0:
        raise BusinessLogicError('The VAT rate cannot be negative')
    received = to_decimal(received_amount, 'received amount')
    if received < 0:
        raise BusinessLogicError('The received amount cannot be negative')
    try:
        method = PaymentMethod(payment_method)
    except ValueError:
        raise BusinessLogicError(f'Invalid payment method: {payment_method}')

    subtotal = calculate_subtotal(lines)
    discount_amount = discount.amount_for(subtotal)
    subtotal_after_discount = max(ZERO, subtotal - discount_amount)
    vat_amount = subtotal_after_discount * vat_rate / HUNDRED
    grand_total = subtotal_after_discount + vat_amount

    # Cash is tendered against the rounded total the cashier sees
    payable = quantize_money(grand_total)
    if method == PaymentMethod.CASH and received >= payable:
        change = received - payable
    else:
        change = ZERO

    return Totals(
        subtotal=subtotal,
        discount=subtotal - subtotal_after_discount,
        subtotal_after_discount=subtotal_after_discount,
        vat_rate=vat_rate,
        vat_amount=vat_amount,
        grand_total=grand_total,
        payment_method=method,
        received_amount=received,
        change=change,
        overall_discount_type=discount.discount_type if discount.value > 0 else None,
        overall_discount_value=discount.value,
    )
