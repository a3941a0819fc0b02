"""
Cart store - the cashier's working cart.

Holds the regular lines (cashier-owned) and the free gift lines (owned by the
promotion engine). Every mutation of a regular line re-runs the promotion
derivation; gift lines are only replaced when the derived set differs
structurally from the current one.
"""
import logging
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from pos.domain import CartLine, PriceTier, ProductSnapshot, Promotion
from pos.exceptions import (
    FreeGiftLineError, InsufficientStockError, InvalidQuantityError,
    NotFoundError, OutOfStockError
)
from pos.services import price_service
from pos.services.promotion_service import derive, free_gifts_changed

logger = logging.getLogger(__name__)


def _parse_quantity(value) -> int:
    """Blank input counts as zero; anything non-integral is rejected."""
    if value is None:
        return 0
    if isinstance(value, str):
        value = value.strip()
        if value == '':
            return 0
    try:
        qty = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidQuantityError(value)
    if not qty.is_finite() or qty != qty.to_integral_value():
        raise InvalidQuantityError(value)
    return int(qty)


class CartStore:
    """
    Session cart with a fixed action set: add, set quantity, change quantity,
    remove, clear, select tier and apply promotions.

    Lines are keyed by (product_id, is_free_gift): a product can have one
    regular line and one gift line at the same time, never two regular lines.
    """

    def __init__(self, products: Optional[Iterable[ProductSnapshot]] = None,
                 promotions: Optional[Iterable[Promotion]] = None):
        self._regular: List[CartLine] = []
        self._free_gifts: List[CartLine] = []
        self._catalog: Dict[int, ProductSnapshot] = {p.id: p for p in products or ()}
        self._promotions: List[Promotion] = list(promotions or ())

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def lines(self) -> List[CartLine]:
        """Regular lines in insertion order followed by gift lines."""
        return list(self._regular) + list(self._free_gifts)

    @property
    def regular_lines(self) -> List[CartLine]:
        return list(self._regular)

    @property
    def free_gift_lines(self) -> List[CartLine]:
        return list(self._free_gifts)

    @property
    def promotions(self) -> List[Promotion]:
        return list(self._promotions)

    @property
    def is_empty(self) -> bool:
        return not any(line.quantity > 0 for line in self.lines)

    def __len__(self):
        return len(self._regular) + len(self._free_gifts)

    def get_line(self, product_id: int, is_free_gift: bool = False) -> Optional[CartLine]:
        source = self._free_gifts if is_free_gift else self._regular
        for line in source:
            if line.product_id == product_id:
                return line
        return None

    def _require_regular(self, product_id: int) -> CartLine:
        line = self.get_line(product_id)
        if line is None:
            gift = self.get_line(product_id, is_free_gift=True)
            if gift is not None:
                raise FreeGiftLineError(gift.product.name)
            raise NotFoundError('The product is not in the cart.')
        return line

    def _replace_regular(self, product_id: int, new_line: Optional[CartLine]) -> None:
        updated = []
        for line in self._regular:
            if line.product_id == product_id:
                if new_line is not None:
                    updated.append(new_line)
            else:
                updated.append(line)
        self._regular = updated

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def _recompute(self) -> bool:
        """Re-derive promotion state; return True when the gift lines changed."""
        derived = derive(self._regular, self._promotions, self._catalog)
        self._regular = list(derived.lines)
        if free_gifts_changed(self._free_gifts, derived.free_gift_lines):
            self._free_gifts = list(derived.free_gift_lines)
            return True
        return False

    def apply_promotions(self) -> bool:
        """Explicitly re-run the promotion derivation."""
        return self._recompute()

    def set_catalog(self, products: Optional[Iterable[ProductSnapshot]] = None,
                    promotions: Optional[Iterable[Promotion]] = None) -> None:
        """
        Load fresh catalog snapshots (e.g. at the start of a request).

        Regular lines pick up the new product snapshot so stock checks use
        current levels; lines whose product left the catalog are dropped.
        Whenever products or promotions change, lines are repriced at their
        tier so promotions that ended or changed are re-derived.
        """
        if products is not None:
            self._catalog = {p.id: p for p in products}
            kept = []
            for line in self._regular:
                product = self._catalog.get(line.product_id)
                if product is None:
                    logger.info(f"Dropping cart line for product {line.product_id}: no longer in the catalog")
                    continue
                kept.append(replace(line, product=product))
            self._regular = kept
        if promotions is not None:
            self._promotions = list(promotions)
        if products is not None or promotions is not None:
            self._regular = [_reprice(line) for line in self._regular]
        self._recompute()

    # ------------------------------------------------------------------
    # Mutations (regular lines only)
    # ------------------------------------------------------------------

    def add_line(self, product: ProductSnapshot) -> CartLine:
        """
        Add one unit of ``product``.

        Raises:
            OutOfStockError: product stock is 0
            InsufficientStockError: one more unit would exceed the stock
        """
        if product.id not in self._catalog:
            self._catalog[product.id] = product

        existing = self.get_line(product.id)
        if product.stock <= 0:
            raise OutOfStockError(product.name)

        if existing:
            new_qty = existing.quantity + 1
            if new_qty > product.stock:
                raise InsufficientStockError(product.name, new_qty, product.stock)
            self._replace_regular(product.id, replace(existing, product=product, quantity=new_qty))
        else:
            self._regular.append(CartLine(
                product=product,
                quantity=1,
                active_unit_price=price_service.resolve(product, PriceTier.TIER_1),
                tier=PriceTier.TIER_1,
            ))

        self._recompute()
        return self.get_line(product.id)

    def set_quantity(self, product_id: int, value: Any, pending: bool = False) -> Optional[CartLine]:
        """
        Set the quantity of a regular line, clamped to ``[0, stock]``.

        A quantity of 0 (or blank) removes the line, unless ``pending`` is set
        (the cashier is still typing) in which case the line is kept at 0 until
        ``confirm_quantity`` is called.

        Raises:
            InvalidQuantityError: non-integral input, nothing is changed
            InsufficientStockError: the value exceeded the stock; the line keeps
                the clamped quantity
        """
        line = self._require_regular(product_id)
        requested = _parse_quantity(value)
        stock = line.product.stock
        qty = min(max(requested, 0), stock)

        if qty == 0 and not pending:
            self._replace_regular(product_id, None)
        else:
            self._replace_regular(product_id, replace(line, quantity=qty))
        self._recompute()

        if requested > stock:
            logger.warning(
                f"Quantity for product {product_id} clamped to stock: requested={requested}, stock={stock}"
            )
            raise InsufficientStockError(line.product.name, requested, stock)

        return self.get_line(product_id)

    def confirm_quantity(self, product_id: int) -> Optional[CartLine]:
        """Finish interactive editing: a line left at 0 is removed."""
        line = self.get_line(product_id)
        if line is None:
            return None
        if line.quantity <= 0:
            self._replace_regular(product_id, None)
            self._recompute()
            return None
        return line

    def change_quantity(self, product_id: int, delta: int) -> Optional[CartLine]:
        """Increment/decrement button: reaching 0 removes the line, exceeding stock is rejected."""
        line = self._require_regular(product_id)
        new_qty = line.quantity + int(delta)
        if new_qty > line.product.stock:
            raise InsufficientStockError(line.product.name, new_qty, line.product.stock)

        if new_qty <= 0:
            self._replace_regular(product_id, None)
        else:
            self._replace_regular(product_id, replace(line, quantity=new_qty))
        self._recompute()
        return self.get_line(product_id)

    def remove_line(self, product_id: int) -> None:
        """Remove the regular line of a product; gift lines only go away through derivation."""
        if self.get_line(product_id) is None:
            return
        self._replace_regular(product_id, None)
        self._recompute()

    def select_tier(self, product_id: int, tier, is_free_gift: bool = False) -> CartLine:
        """
        Switch a regular line to another price tier.

        Selecting a tier clears any applied discount promotion; the following
        derivation re-applies a promotion only if it still lowers the price.
        """
        if is_free_gift:
            gift = self.get_line(product_id, is_free_gift=True)
            raise FreeGiftLineError(gift.product.name if gift else str(product_id))

        line = self._require_regular(product_id)
        price = price_service.resolve(line.product, tier)
        self._replace_regular(product_id, replace(
            line,
            tier=PriceTier(int(tier)),
            active_unit_price=price,
            original_unit_price_before_promo=None,
            applied_promotion_id=None,
        ))
        self._recompute()
        return self.get_line(product_id)

    def clear(self) -> None:
        self._regular = []
        self._free_gifts = []

    # ------------------------------------------------------------------
    # Serialization (Flask session)
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation of the regular lines; gift lines are re-derived on load."""
        return {
            'items': [_line_to_dict(line) for line in self._regular],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]],
                  products: Optional[Iterable[ProductSnapshot]] = None,
                  promotions: Optional[Iterable[Promotion]] = None) -> 'CartStore':
        store = cls()
        store._regular = [_line_from_dict(item) for item in (data or {}).get('items', [])]
        store.set_catalog(
            products if products is not None else [line.product for line in store._regular],
            promotions if promotions is not None else [],
        )
        return store


def _reprice(line: CartLine) -> CartLine:
    """Reset a line to its tier price; a tier that disappeared falls back to tier 1."""
    tier = line.tier if price_service.is_tier_available(line.product, line.tier) else PriceTier.TIER_1
    return replace(
        line,
        tier=tier,
        active_unit_price=price_service.resolve(line.product, tier),
        original_unit_price_before_promo=None,
        applied_promotion_id=None,
    )


def _dec(value) -> Optional[str]:
    return None if value is None else str(value)


def _to_dec(value) -> Optional[Decimal]:
    return None if value is None else Decimal(value)


def _line_to_dict(line: CartLine) -> Dict[str, Any]:
    product = line.product
    return {
        'product': {
            'id': product.id,
            'name': product.name,
            'unit': product.unit,
            'stock': product.stock,
            'cost_price': _dec(product.cost_price),
            'selling_price': _dec(product.selling_price),
            'selling_price_2': _dec(product.selling_price_2),
            'selling_price_3': _dec(product.selling_price_3),
        },
        'quantity': line.quantity,
        'tier': int(line.tier),
        'active_unit_price': _dec(line.active_unit_price),
        'original_unit_price_before_promo': _dec(line.original_unit_price_before_promo),
        'applied_promotion_id': line.applied_promotion_id,
    }


def _line_from_dict(data: Dict[str, Any]) -> CartLine:
    p = data['product']
    product = ProductSnapshot(
        id=int(p['id']),
        name=p['name'],
        unit=p.get('unit') or '',
        stock=int(p['stock']),
        cost_price=_to_dec(p.get('cost_price')) or Decimal('0'),
        selling_price=Decimal(p['selling_price']),
        selling_price_2=_to_dec(p.get('selling_price_2')),
        selling_price_3=_to_dec(p.get('selling_price_3')),
    )
    return CartLine(
        product=product,
        quantity=int(data['quantity']),
        tier=PriceTier(int(data.get('tier', 1))),
        active_unit_price=Decimal(data['active_unit_price']),
        original_unit_price_before_promo=_to_dec(data.get('original_unit_price_before_promo')),
        applied_promotion_id=data.get('applied_promotion_id'),
    )
