"""
Promotion engine - derives promotion pricing from the regular cart lines.

Two kinds of promotions are handled:
- discount: lowers the unit price of eligible lines (first match wins, no stacking)
- free_product: "buy X get Y free", synthesized as zero-price gift lines

``derive`` is pure: it only reads the regular lines, the promotions (in the
order given, which the catalog sorts by priority) and the product catalog.
Gift lines are rebuilt from scratch on every call, never patched.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pos.domain import (
    CartLine, DiscountPromotion, DiscountType, FreeProductPromotion,
    PriceTier, ProductSnapshot, Promotion, PromotionStatus
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
HUNDRED = Decimal('100')

GiftSignature = Tuple[Tuple[int, int, Optional[int]], ...]


@dataclass(frozen=True)
class DerivedCart:
    """Result of a derivation: regular lines with overrides, plus gift lines."""
    lines: Tuple[CartLine, ...]
    free_gift_lines: Tuple[CartLine, ...]


def _as_catalog(catalog) -> Mapping[int, ProductSnapshot]:
    if isinstance(catalog, Mapping):
        return catalog
    return {product.id: product for product in catalog or ()}


def discount_price(base_price: Decimal, promotion: DiscountPromotion) -> Decimal:
    """Candidate unit price for ``base_price`` under a discount promotion, never negative."""
    value = Decimal(str(promotion.discount_value))
    if promotion.discount_type == DiscountType.PERCENT:
        candidate = base_price * (1 - value / HUNDRED)
    else:
        candidate = base_price - value
    return max(ZERO, candidate)


def _first_matching_discount(product_id: int, promotions: Sequence[Promotion]) -> Optional[DiscountPromotion]:
    for promotion in promotions:
        if isinstance(promotion, DiscountPromotion) and product_id in promotion.product_ids:
            return promotion
    return None


def _apply_discounts(lines: Sequence[CartLine], promotions: Sequence[Promotion]) -> List[CartLine]:
    result = []
    for line in lines:
        if line.is_free_gift or line.applied_promotion_id is not None:
            result.append(line)
            continue

        promotion = _first_matching_discount(line.product_id, promotions)
        if promotion is None:
            result.append(line)
            continue

        base_price = line.tier_price
        candidate = discount_price(base_price, promotion)
        # The promotion may only lower the price the line currently has
        if candidate < line.active_unit_price:
            line = replace(
                line,
                active_unit_price=candidate,
                original_unit_price_before_promo=base_price,
                applied_promotion_id=promotion.id,
            )
        result.append(line)
    return result


def _is_valid_free_product(promotion: FreeProductPromotion) -> bool:
    return (
        bool(promotion.product_ids)
        and promotion.quantity_to_buy > 0
        and promotion.quantity_to_get_free > 0
    )


def _build_free_gifts(
    lines: Sequence[CartLine],
    promotions: Sequence[Promotion],
    catalog: Mapping[int, ProductSnapshot],
) -> List[CartLine]:
    regular_qty: Dict[int, int] = {}
    for line in lines:
        if not line.is_free_gift and line.quantity > 0:
            regular_qty[line.product_id] = regular_qty.get(line.product_id, 0) + line.quantity

    gifts: Dict[int, CartLine] = {}
    for promotion in promotions:
        if not isinstance(promotion, FreeProductPromotion):
            continue
        if not _is_valid_free_product(promotion):
            logger.debug(f"Skipping misconfigured free product promotion {promotion.id}")
            continue

        free_product = catalog.get(promotion.free_product_id)
        if free_product is None:
            logger.debug(
                f"Skipping promotion {promotion.id}: free product {promotion.free_product_id} not in catalog"
            )
            continue

        trigger_qty = sum(qty for pid, qty in regular_qty.items() if pid in promotion.product_ids)
        times_triggered = trigger_qty // promotion.quantity_to_buy
        eligible_qty = times_triggered * promotion.quantity_to_get_free

        existing = gifts.get(free_product.id)
        reserved = regular_qty.get(free_product.id, 0) + (existing.quantity if existing else 0)
        cap = free_product.stock - reserved
        granted = max(0, min(eligible_qty, cap))
        if granted <= 0:
            continue

        if existing:
            gifts[free_product.id] = replace(existing, quantity=existing.quantity + granted)
        else:
            gifts[free_product.id] = CartLine(
                product=free_product,
                quantity=granted,
                active_unit_price=ZERO,
                tier=PriceTier.TIER_1,
                original_unit_price_before_promo=free_product.selling_price,
                applied_promotion_id=promotion.id,
                is_free_gift=True,
            )
    return list(gifts.values())


def derive(
    regular_lines: Iterable[CartLine],
    active_promotions: Sequence[Promotion],
    catalog,
) -> DerivedCart:
    """
    Derive promotion pricing for a cart.

    Args:
        regular_lines: cashier-owned lines (gift lines in the input are ignored)
        active_promotions: promotions in priority order
        catalog: mapping of product id to ProductSnapshot (or an iterable of snapshots)

    Returns:
        DerivedCart with discount overrides applied to the regular lines and
        the complete set of free gift lines.
    """
    regular = [line for line in regular_lines if not line.is_free_gift]
    promotions = list(active_promotions or ())
    products = _as_catalog(catalog)

    lines = _apply_discounts(regular, promotions)
    gifts = _build_free_gifts(lines, promotions, products)
    return DerivedCart(lines=tuple(lines), free_gift_lines=tuple(gifts))


def free_gift_signature(lines: Iterable[CartLine]) -> GiftSignature:
    """Structural identity of gift lines: (product id, quantity, promotion id)."""
    return tuple(
        (line.product_id, line.quantity, line.applied_promotion_id)
        for line in lines
        if line.is_free_gift
    )


def free_gifts_changed(current: Iterable[CartLine], derived: Iterable[CartLine]) -> bool:
    return free_gift_signature(current) != free_gift_signature(derived)


def is_active(promotion: Promotion, now: Optional[datetime] = None) -> bool:
    """Active status and ``start_date <= today <= end_date`` (end date covers the whole day)."""
    if promotion.status != PromotionStatus.ACTIVE:
        return False

    today = (now or datetime.now())
    if isinstance(today, datetime):
        today = today.date()

    start = promotion.start_date.date() if isinstance(promotion.start_date, datetime) else promotion.start_date
    end = promotion.end_date.date() if isinstance(promotion.end_date, datetime) else promotion.end_date
    if start is not None and today < start:
        return False
    if end is not None and today > end:
        return False
    return True


def filter_active(promotions: Iterable[Promotion], now: Optional[datetime] = None) -> List[Promotion]:
    """Keep active promotions, preserving their order."""
    return [promotion for promotion in promotions if is_active(promotion, now)]
