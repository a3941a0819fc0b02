"""
Sales service - turns the cart into an immutable sale.

Validation happens before anything is built or stored. The repository call
is the only side effect; the cart is cleared only after it succeeds, so a
failed checkout can simply be retried.
"""
import logging
import secrets
import string
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from pos.domain import (
    CartLine, CustomerSnapshot, CustomerType, PaymentMethod, SaleDraft,
    SaleDraftLine, SaleStatus
)
from pos.exceptions import (
    BusinessLogicError, EmptyCartError, InsufficientPaymentError,
    MissingCustomerForCreditError
)
from pos.services.cart_service import CartStore
from pos.services.checkout_service import Totals, compute_totals, quantize_money

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
WALK_IN_CUSTOMER_NAME = 'Walk-in customer'
_RECEIPT_ALPHABET = string.ascii_uppercase + string.digits


def generate_receipt_number(now: datetime) -> str:
    """RCPT-<epoch milliseconds>-<5 random characters>."""
    suffix = ''.join(secrets.choice(_RECEIPT_ALPHABET) for _ in range(5))
    return f'RCPT-{int(now.timestamp() * 1000)}-{suffix}'


def calculate_item_discounts(lines: Iterable[CartLine]) -> Tuple[Decimal, Decimal]:
    """
    Return (total original price, item level discount) for audit.

    The original price of a line is the price before any promotion, or its
    tier price when no promotion applies.
    """
    total_original = ZERO
    charged = ZERO
    for line in lines:
        original = line.original_unit_price_before_promo
        if original is None:
            original = line.tier_price
        total_original += original * line.quantity
        charged += line.active_unit_price * line.quantity
    return total_original, total_original - charged


def _payable_lines(cart: CartStore) -> List[CartLine]:
    return [line for line in cart.lines if line.quantity > 0]


def build_sale_draft(
    lines: List[CartLine],
    totals: Totals,
    *,
    customer: Optional[CustomerSnapshot] = None,
    operator_id: str = 'system',
    operator_name: str = '',
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SaleDraft:
    """Assemble the immutable sale draft from priced lines and checkout totals."""
    now = now or datetime.now()
    total_original, item_discount = calculate_item_discounts(lines)
    is_credit = totals.payment_method == PaymentMethod.CREDIT
    is_cash = totals.payment_method == PaymentMethod.CASH

    due_date = None
    if is_credit and customer and customer.credit_days:
        due_date = now + timedelta(days=customer.credit_days)

    draft_lines = tuple(
        SaleDraftLine(
            product_id=line.product_id,
            product_name=line.product.name,
            quantity=line.quantity,
            tier=line.tier,
            original_unit_price=(
                line.original_unit_price_before_promo
                if line.original_unit_price_before_promo is not None else line.tier_price
            ),
            unit_price=line.active_unit_price,
            total_price=line.line_total,
            applied_promotion_id=line.applied_promotion_id,
            is_free_gift=line.is_free_gift,
        )
        for line in lines
    )

    return SaleDraft(
        receipt_number=generate_receipt_number(now),
        transaction_date=now,
        operator_id=str(operator_id),
        operator_name=operator_name or '',
        lines=draft_lines,
        total_original_price=total_original,
        item_discount_amount=item_discount,
        subtotal=totals.subtotal,
        overall_discount_type=totals.overall_discount_type,
        overall_discount_value=totals.overall_discount_value,
        overall_discount_amount=totals.discount,
        subtotal_after_discount=totals.subtotal_after_discount,
        vat_rate=totals.vat_rate,
        vat_amount=totals.vat_amount,
        grand_total=totals.grand_total,
        payment_method=totals.payment_method,
        status=SaleStatus.UNPAID if is_credit else SaleStatus.PAID,
        paid_amount=ZERO if is_credit else totals.grand_total,
        outstanding_amount=totals.grand_total if is_credit else ZERO,
        received_amount=totals.received_amount if is_cash else None,
        change_given=totals.change if is_cash else None,
        customer_id=customer.id if customer else None,
        customer_name=customer.name if customer else WALK_IN_CUSTOMER_NAME,
        customer_type=customer.customer_type if customer else CustomerType.CASH,
        due_date=due_date,
        notes=notes or None,
    )


def finalize_sale(
    cart: CartStore,
    repository,
    *,
    payment_method=PaymentMethod.CASH,
    overall_discount=ZERO,
    vat_rate_percent=ZERO,
    received_amount=None,
    customer: Optional[CustomerSnapshot] = None,
    operator_id: str = 'system',
    operator_name: str = '',
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
):
    """
    Validate the cart, build the sale and hand it to ``repository``.

    Callers must not run two finalizations of the same cart concurrently.

    Raises:
        EmptyCartError: no line with a positive quantity
        MissingCustomerForCreditError: credit payment without a customer
        InsufficientPaymentError: cash received below the grand total
        Any error from ``repository.create_sale``, unchanged; the cart is kept.
    """
    lines = _payable_lines(cart)
    if not lines:
        raise EmptyCartError()

    try:
        method = PaymentMethod(payment_method)
    except ValueError:
        raise BusinessLogicError(f'Invalid payment method: {payment_method}')

    if method == PaymentMethod.CREDIT and customer is None:
        raise MissingCustomerForCreditError()

    totals = compute_totals(lines, overall_discount, vat_rate_percent, method, received_amount)
    if not totals.is_payment_sufficient:
        logger.warning(
            f"Rejected cash payment: received={totals.received_amount}, grand_total={totals.grand_total}"
        )
        raise InsufficientPaymentError(
            quantize_money(totals.grand_total), quantize_money(totals.received_amount)
        )

    draft = build_sale_draft(
        lines,
        totals,
        customer=customer,
        operator_id=operator_id,
        operator_name=operator_name,
        notes=notes,
        now=now,
    )

    sale = repository.create_sale(draft)
    cart.clear()
    logger.info(f"Sale {draft.receipt_number} finalized by operator {draft.operator_id}")
    return sale
