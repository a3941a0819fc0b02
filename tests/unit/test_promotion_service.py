"""
Unit tests for the promotion engine.
"""

from datetime import date, datetime
from decimal import Decimal

from pos.domain import (
    CartLine, DiscountPromotion, DiscountType, FreeProductPromotion,
    PriceTier, ProductSnapshot, PromotionStatus
)
from pos.services.checkout_service import calculate_subtotal
from pos.services.promotion_service import (
    derive, discount_price, filter_active, free_gifts_changed, is_active
)


COFFEE = ProductSnapshot(id=1, name='Coffee', selling_price=Decimal('100'), stock=50,
                         selling_price_2=Decimal('80'))
WATER = ProductSnapshot(id=2, name='Water', selling_price=Decimal('20'), stock=2)
CATALOG = {COFFEE.id: COFFEE, WATER.id: WATER}


def _line(product, quantity, tier=PriceTier.TIER_1, price=None):
    return CartLine(
        product=product,
        quantity=quantity,
        tier=tier,
        active_unit_price=price if price is not None else product.selling_price,
    )


def _percent(promo_id, value, product_ids=(1,)):
    return DiscountPromotion(
        id=promo_id, product_ids=frozenset(product_ids),
        discount_type=DiscountType.PERCENT, discount_value=Decimal(str(value)),
    )


def _fixed(promo_id, value, product_ids=(1,)):
    return DiscountPromotion(
        id=promo_id, product_ids=frozenset(product_ids),
        discount_type=DiscountType.FIXED, discount_value=Decimal(str(value)),
    )


def _buy_get(promo_id, buy, get, free_product_id=2, product_ids=(1,)):
    return FreeProductPromotion(
        id=promo_id, product_ids=frozenset(product_ids), quantity_to_buy=buy,
        free_product_id=free_product_id, quantity_to_get_free=get,
    )


class TestDiscountPromotions:

    def test_percent_discount(self):
        derived = derive([_line(COFFEE, 2)], [_percent(7, 10)], CATALOG)

        line = derived.lines[0]
        assert line.active_unit_price == Decimal('90')
        assert line.original_unit_price_before_promo == Decimal('100')
        assert line.applied_promotion_id == 7
        assert calculate_subtotal(derived.lines) == Decimal('180')

    def test_fixed_discount_never_below_zero(self):
        assert discount_price(Decimal('100'), _fixed(1, 150)) == Decimal('0')

    def test_first_matching_discount_wins(self):
        promotions = [_fixed(1, 5), _percent(2, 50)]
        line = derive([_line(COFFEE, 1)], promotions, CATALOG).lines[0]

        assert line.active_unit_price == Decimal('95')
        assert line.applied_promotion_id == 1

    def test_discount_uses_selected_tier_as_base(self):
        line = _line(COFFEE, 1, tier=PriceTier.TIER_2, price=Decimal('80'))
        derived = derive([line], [_fixed(1, 10)], CATALOG).lines[0]

        assert derived.active_unit_price == Decimal('70')
        assert derived.original_unit_price_before_promo == Decimal('80')

    def test_discount_that_does_not_lower_price_is_ignored(self):
        line = derive([_line(COFFEE, 1)], [_fixed(1, 0)], CATALOG).lines[0]

        assert line.active_unit_price == Decimal('100')
        assert line.applied_promotion_id is None
        assert line.original_unit_price_before_promo is None

    def test_unrelated_product_untouched(self):
        line = derive([_line(WATER, 1)], [_percent(1, 10)], CATALOG).lines[0]
        assert line.active_unit_price == Decimal('20')

    def test_derive_is_idempotent(self):
        promotions = [_percent(1, 10), _buy_get(2, 3, 1)]
        first = derive([_line(COFFEE, 3)], promotions, CATALOG)
        second = derive(first.lines + first.free_gift_lines, promotions, CATALOG)

        assert second.lines == first.lines
        assert second.free_gift_lines == first.free_gift_lines


class TestFreeProductPromotions:

    def test_gift_capped_by_free_product_stock(self):
        derived = derive([_line(COFFEE, 7)], [_buy_get(5, 3, 3)], CATALOG)

        # 7 // 3 = 2 triggers -> 6 eligible, only 2 in stock
        assert len(derived.free_gift_lines) == 1
        gift = derived.free_gift_lines[0]
        assert gift.product_id == WATER.id
        assert gift.quantity == 2
        assert gift.active_unit_price == Decimal('0')
        assert gift.original_unit_price_before_promo == Decimal('20')
        assert gift.applied_promotion_id == 5
        assert gift.is_free_gift is True

    def test_buy_three_get_one_limited_by_stock(self):
        derived = derive([_line(COFFEE, 7)], [_buy_get(5, 3, 1)], CATALOG)
        assert [g.quantity for g in derived.free_gift_lines] == [2]

    def test_regular_line_of_free_product_reserves_stock(self):
        lines = [_line(COFFEE, 3), _line(WATER, 1)]
        derived = derive(lines, [_buy_get(5, 3, 2)], CATALOG)

        assert [g.quantity for g in derived.free_gift_lines] == [1]

    def test_not_triggered_below_threshold(self):
        derived = derive([_line(COFFEE, 2)], [_buy_get(5, 3, 1)], CATALOG)
        assert derived.free_gift_lines == ()

    def test_zero_quantity_lines_do_not_trigger(self):
        derived = derive([_line(COFFEE, 0)], [_buy_get(5, 1, 1)], CATALOG)
        assert derived.free_gift_lines == ()

    def test_same_gift_product_from_two_promotions_is_merged(self):
        promotions = [_buy_get(5, 3, 1), _buy_get(6, 1, 5)]
        derived = derive([_line(COFFEE, 3)], promotions, CATALOG)

        assert len(derived.free_gift_lines) == 1
        gift = derived.free_gift_lines[0]
        assert gift.quantity == 2
        assert gift.applied_promotion_id == 5

    def test_misconfigured_promotion_skipped(self):
        derived = derive([_line(COFFEE, 9)], [_buy_get(5, 0, 1)], CATALOG)
        assert derived.free_gift_lines == ()

    def test_free_product_missing_from_catalog_skipped(self):
        derived = derive([_line(COFFEE, 9)], [_buy_get(5, 3, 1, free_product_id=99)], CATALOG)
        assert derived.free_gift_lines == ()

    def test_catalog_may_be_a_list(self):
        derived = derive([_line(COFFEE, 3)], [_buy_get(5, 3, 1)], [COFFEE, WATER])
        assert len(derived.free_gift_lines) == 1

    def test_free_gifts_changed(self):
        promotions = [_buy_get(5, 3, 1)]
        before = derive([_line(COFFEE, 3)], promotions, CATALOG).free_gift_lines
        same = derive([_line(COFFEE, 4)], promotions, CATALOG).free_gift_lines
        after = derive([_line(COFFEE, 6)], promotions, CATALOG).free_gift_lines

        assert free_gifts_changed(before, same) is False
        assert free_gifts_changed(before, after) is True


class TestActiveWindow:

    def test_window_is_inclusive(self):
        promo = DiscountPromotion(
            id=1, product_ids=frozenset({1}), discount_type=DiscountType.PERCENT,
            discount_value=Decimal('10'), start_date=date(2024, 1, 1), end_date=date(2024, 1, 31),
        )
        assert is_active(promo, datetime(2024, 1, 1, 0, 0))
        assert is_active(promo, datetime(2024, 1, 31, 23, 59))
        assert not is_active(promo, datetime(2024, 2, 1, 0, 0))
        assert not is_active(promo, datetime(2023, 12, 31, 23, 59))

    def test_inactive_status(self):
        promo = DiscountPromotion(
            id=1, product_ids=frozenset({1}), discount_type=DiscountType.PERCENT,
            discount_value=Decimal('10'), status=PromotionStatus.INACTIVE,
        )
        assert filter_active([promo], datetime(2024, 1, 1)) == []
