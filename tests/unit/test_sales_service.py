"""
Unit tests for sale finalization (repository replaced by an in-memory fake).
"""

import re
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from pos.domain import (
    CustomerSnapshot, CustomerType, FreeProductPromotion, PaymentMethod,
    ProductSnapshot, SaleStatus
)
from pos.exceptions import (
    EmptyCartError, InsufficientPaymentError, MissingCustomerForCreditError,
    PersistenceError
)
from pos.services.cart_service import CartStore
from pos.services.sales_service import (
    WALK_IN_CUSTOMER_NAME, calculate_item_discounts, finalize_sale, generate_receipt_number
)


WIDGET = ProductSnapshot(id=1, name='Widget', selling_price=Decimal('100'), stock=20)
STICKER = ProductSnapshot(id=2, name='Sticker', selling_price=Decimal('20'), stock=20)
BUY_3_GET_STICKER = FreeProductPromotion(
    id=5, product_ids=frozenset({WIDGET.id}), quantity_to_buy=3,
    free_product_id=STICKER.id, quantity_to_get_free=1,
)
CREDIT_CUSTOMER = CustomerSnapshot(id=7, name='Corner Cafe', customer_type=CustomerType.CREDIT, credit_days=30)
NOW = datetime(2024, 5, 1, 10, 30)


class FakeRepository:
    """Collects drafts; optionally fails like the database would."""

    def __init__(self, error=None):
        self.error = error
        self.drafts = []

    def create_sale(self, draft):
        if self.error:
            raise self.error
        self.drafts.append(draft)
        return draft


def _cart(qty=2, promotions=()):
    cart = CartStore(products=[WIDGET, STICKER], promotions=list(promotions))
    cart.add_line(WIDGET)
    if qty != 1:
        cart.set_quantity(WIDGET.id, qty)
    return cart


class TestFinalizeSale:

    def test_cash_sale(self):
        cart = _cart()
        repo = FakeRepository()

        draft = finalize_sale(cart, repo, payment_method='cash', vat_rate_percent=7,
                              received_amount='300', operator_id='u1', operator_name='Ann', now=NOW)

        assert repo.drafts == [draft]
        assert draft.subtotal == Decimal('200')
        assert draft.vat_amount == Decimal('14')
        assert draft.grand_total == Decimal('214')
        assert draft.change_given == Decimal('86')
        assert draft.status == SaleStatus.PAID
        assert draft.paid_amount == draft.grand_total
        assert draft.outstanding_amount == Decimal('0')
        assert draft.customer_name == WALK_IN_CUSTOMER_NAME
        assert draft.operator_name == 'Ann'
        assert cart.is_empty

    def test_transfer_has_no_cash_fields(self):
        draft = finalize_sale(_cart(), FakeRepository(), payment_method='transfer', now=NOW)

        assert draft.payment_method == PaymentMethod.TRANSFER
        assert draft.received_amount is None
        assert draft.change_given is None
        assert draft.status == SaleStatus.PAID

    def test_credit_sale(self):
        draft = finalize_sale(_cart(), FakeRepository(), payment_method='credit',
                              customer=CREDIT_CUSTOMER, now=NOW)

        assert draft.status == SaleStatus.UNPAID
        assert draft.paid_amount == Decimal('0')
        assert draft.outstanding_amount == draft.grand_total
        assert draft.due_date == NOW + timedelta(days=30)
        assert draft.customer_id == CREDIT_CUSTOMER.id
        assert draft.received_amount is None

    def test_empty_cart(self):
        cart = CartStore(products=[WIDGET])
        with pytest.raises(EmptyCartError):
            finalize_sale(cart, FakeRepository())

    def test_credit_without_customer_keeps_cart(self):
        cart = _cart()
        repo = FakeRepository()

        with pytest.raises(MissingCustomerForCreditError):
            finalize_sale(cart, repo, payment_method='credit')

        assert cart.get_line(WIDGET.id).quantity == 2
        assert repo.drafts == []

    def test_cash_equal_to_displayed_total_accepted(self):
        soap = ProductSnapshot(id=3, name='Soap', selling_price=Decimal('10.05'), stock=5)
        cart = CartStore(products=[soap])
        cart.add_line(soap)

        draft = finalize_sale(cart, FakeRepository(), payment_method='cash', vat_rate_percent=7,
                              received_amount='10.75', now=NOW)

        assert draft.change_given == Decimal('0')
        assert cart.is_empty

    def test_insufficient_payment(self):
        cart = _cart()
        repo = FakeRepository()

        with pytest.raises(InsufficientPaymentError) as exc_info:
            finalize_sale(cart, repo, payment_method='cash', vat_rate_percent=7, received_amount='200')

        assert exc_info.value.grand_total == Decimal('214.00')
        assert repo.drafts == []
        assert not cart.is_empty

    def test_persistence_failure_keeps_cart(self):
        cart = _cart()
        repo = FakeRepository(error=PersistenceError('database unavailable'))

        with pytest.raises(PersistenceError):
            finalize_sale(cart, repo, payment_method='transfer')

        assert cart.get_line(WIDGET.id).quantity == 2

    def test_pending_zero_lines_are_not_sold(self):
        cart = CartStore(products=[WIDGET, STICKER])
        cart.add_line(WIDGET)
        cart.add_line(STICKER)
        cart.set_quantity(WIDGET.id, 0, pending=True)

        draft = finalize_sale(cart, FakeRepository(), payment_method='transfer', now=NOW)

        assert [line.product_id for line in draft.lines] == [STICKER.id]

    def test_free_gift_recorded_at_zero(self):
        cart = _cart(qty=3, promotions=[BUY_3_GET_STICKER])

        draft = finalize_sale(cart, FakeRepository(), payment_method='transfer', now=NOW)

        gift = [line for line in draft.lines if line.is_free_gift][0]
        assert gift.product_id == STICKER.id
        assert gift.unit_price == Decimal('0')
        assert gift.original_unit_price == Decimal('20')
        assert gift.applied_promotion_id == BUY_3_GET_STICKER.id
        assert draft.subtotal == Decimal('300')
        assert draft.total_original_price == Decimal('320')
        assert draft.item_discount_amount == Decimal('20')


class TestHelpers:

    def test_receipt_number_format(self):
        number = generate_receipt_number(NOW)
        assert re.match(r'^RCPT-\d+-[A-Z0-9]{5}$', number)
        assert number.startswith(f'RCPT-{int(NOW.timestamp() * 1000)}-')

    def test_item_discounts_without_promotions(self):
        cart = _cart()
        assert calculate_item_discounts(cart.lines) == (Decimal('200'), Decimal('0'))
