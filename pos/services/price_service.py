"""Price tier resolution for cart lines."""
from decimal import Decimal
from typing import List, Optional

from pos.domain import ProductSnapshot, PriceTier
from pos.exceptions import PriceTierUnavailableError


def _tier_value(product: ProductSnapshot, tier: PriceTier) -> Optional[Decimal]:
    if tier == PriceTier.TIER_1:
        return product.selling_price
    if tier == PriceTier.TIER_2:
        return product.selling_price_2
    if tier == PriceTier.TIER_3:
        return product.selling_price_3
    return None


def is_tier_available(product: ProductSnapshot, tier: PriceTier) -> bool:
    """Tier 1 is mandatory; tiers 2 and 3 exist only when set and positive."""
    if tier == PriceTier.TIER_1:
        return True
    value = _tier_value(product, tier)
    return value is not None and value > 0


def available_tiers(product: ProductSnapshot) -> List[PriceTier]:
    """Return the tiers the cashier may pick for a product, in tier order."""
    return [tier for tier in PriceTier if is_tier_available(product, tier)]


def has_tier_choice(product: ProductSnapshot) -> bool:
    return len(available_tiers(product)) >= 2


def resolve(product: ProductSnapshot, tier=PriceTier.TIER_1) -> Decimal:
    """
    Return the unit price of ``product`` at ``tier``.

    Raises:
        PriceTierUnavailableError: if the tier is not defined for the product.
    """
    try:
        tier = PriceTier(int(tier))
    except (TypeError, ValueError):
        raise PriceTierUnavailableError(product.name, tier)

    if not is_tier_available(product, tier):
        raise PriceTierUnavailableError(product.name, tier)
    return _tier_value(product, tier)
