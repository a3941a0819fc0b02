"""
Unit tests for checkout totals.
"""

import pytest
from decimal import Decimal

from pos.domain import CartLine, DiscountType, PaymentMethod, ProductSnapshot
from pos.exceptions import BusinessLogicError
from pos.services.checkout_service import (
    OverallDiscount, compute_totals, quantize_money, to_decimal
)


PRODUCT = ProductSnapshot(id=1, name='Widget', selling_price=Decimal('100'), stock=100)
GIFT = ProductSnapshot(id=2, name='Sticker', selling_price=Decimal('5'), stock=100)


def _lines(qty=10):
    return [CartLine(product=PRODUCT, quantity=qty, active_unit_price=PRODUCT.selling_price)]


class TestComputeTotals:

    def test_discount_then_vat(self):
        totals = compute_totals(_lines(), overall_discount=100, vat_rate_percent=7)

        assert totals.subtotal == Decimal('1000')
        assert totals.subtotal_after_discount == Decimal('900')
        assert totals.vat_amount == Decimal('63')
        assert totals.grand_total == Decimal('963')
        assert totals.overall_discount_type == DiscountType.FIXED

    def test_percent_discount(self):
        totals = compute_totals(_lines(), OverallDiscount.percent('10'), vat_rate_percent=7)

        assert totals.discount == Decimal('100')
        assert totals.grand_total == Decimal('963')
        assert totals.overall_discount_type == DiscountType.PERCENT

    def test_discount_larger_than_subtotal_floors_at_zero(self):
        totals = compute_totals(_lines(1), overall_discount=250, vat_rate_percent=7)

        assert totals.subtotal_after_discount == Decimal('0')
        assert totals.discount == Decimal('100')
        assert totals.grand_total == Decimal('0')

    def test_gift_lines_count_as_zero(self):
        lines = _lines(2) + [CartLine(product=GIFT, quantity=3, active_unit_price=Decimal('0'),
                                      is_free_gift=True)]
        assert compute_totals(lines).subtotal == Decimal('200')

    def test_no_discount_records_no_type(self):
        totals = compute_totals(_lines())
        assert totals.overall_discount_type is None
        assert totals.discount == Decimal('0')


class TestPayment:

    def test_cash_equal_to_displayed_total(self):
        soap = ProductSnapshot(id=3, name='Soap', selling_price=Decimal('10.05'), stock=5)
        lines = [CartLine(product=soap, quantity=1, active_unit_price=soap.selling_price)]

        totals = compute_totals(lines, 0, 7, 'cash', '10.75')

        assert totals.grand_total == Decimal('10.7535')
        assert totals.rounded()['grand_total'] == Decimal('10.75')
        assert totals.is_payment_sufficient is True
        assert totals.change == Decimal('0')

    def test_change_from_displayed_total(self):
        soap = ProductSnapshot(id=3, name='Soap', selling_price=Decimal('10.05'), stock=5)
        lines = [CartLine(product=soap, quantity=1, active_unit_price=soap.selling_price)]

        totals = compute_totals(lines, 0, 7, 'cash', '11.00')

        assert totals.change == Decimal('0.25')

    def test_cash_change(self):
        totals = compute_totals(_lines(), 100, 7, PaymentMethod.CASH, '1000')

        assert totals.change == Decimal('37')
        assert totals.is_payment_sufficient is True

    def test_exact_cash(self):
        totals = compute_totals(_lines(), 100, 7, 'cash', Decimal('963'))
        assert totals.change == Decimal('0')
        assert totals.is_payment_sufficient is True

    def test_cash_short(self):
        totals = compute_totals(_lines(), 100, 7, 'cash', '900')

        assert totals.change == Decimal('0')
        assert totals.is_payment_sufficient is False

    def test_transfer_has_no_change(self):
        totals = compute_totals(_lines(), 0, 0, 'transfer', '5000')

        assert totals.change == Decimal('0')
        assert totals.is_payment_sufficient is True

    def test_rounded_output(self):
        totals = compute_totals(_lines(1), 0, '7.5', 'cash', '200')
        rounded = totals.rounded()

        assert rounded['vat_amount'] == Decimal('7.50')
        assert rounded['grand_total'] == Decimal('107.50')
        assert rounded['change'] == Decimal('92.50')
        assert rounded['payment_method'] == 'cash'


class TestValidation:

    @pytest.mark.parametrize('field', ['overall_discount', 'vat_rate_percent', 'received_amount'])
    @pytest.mark.parametrize('value', ['NaN', 'sNaN', 'Infinity', '-Infinity'])
    def test_non_finite_amount(self, field, value):
        with pytest.raises(BusinessLogicError):
            compute_totals(_lines(), **{field: value})

    def test_non_finite_decimal(self):
        with pytest.raises(BusinessLogicError):
            to_decimal(Decimal('NaN'), 'received amount')

    def test_negative_discount(self):
        with pytest.raises(BusinessLogicError):
            compute_totals(_lines(), overall_discount=-1)

    def test_negative_vat(self):
        with pytest.raises(BusinessLogicError):
            compute_totals(_lines(), vat_rate_percent=-7)

    def test_invalid_payment_method(self):
        with pytest.raises(BusinessLogicError):
            compute_totals(_lines(), payment_method='cheque')

    def test_invalid_amount(self):
        with pytest.raises(BusinessLogicError):
            to_decimal('abc', 'received amount')

    def test_blank_amount_is_zero(self):
        assert to_decimal('') == Decimal('0')
        assert to_decimal(None) == Decimal('0')


class TestQuantizeMoney:

    @pytest.mark.parametrize('value,expected', [
        (Decimal('0.125'), Decimal('0.13')),
        (Decimal('2.675'), Decimal('2.68')),
        (Decimal('10'), Decimal('10.00')),
    ])
    def test_half_up(self, value, expected):
        assert quantize_money(value) == expected

    def test_none(self):
        assert quantize_money(None) is None
