"""POS blueprint - session cart and checkout as JSON endpoints."""
from decimal import Decimal
from typing import Any, Dict

from flask import Blueprint, request, session, jsonify, current_app

from pos.database import get_session
from pos.domain import CartLine, DiscountType
from pos.exceptions import BusinessLogicError, InsufficientStockError
from pos.services import catalog_service, price_service
from pos.services.cart_service import CartStore
from pos.services.checkout_service import OverallDiscount, compute_totals, quantize_money
from pos.services.receipt_service import build_receipt
from pos.services.sale_repository import SqlSaleRepository
from pos.services.sales_service import finalize_sale

pos_bp = Blueprint('pos', __name__, url_prefix='/pos')

CART_SESSION_KEY = 'pos_cart'


def _money(value) -> str:
    return str(quantize_money(value)) if value is not None else None


def _payload() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def get_cart(db_session) -> CartStore:
    """Rebuild the cart from the session against the current catalog."""
    return CartStore.from_dict(
        session.get(CART_SESSION_KEY),
        products=catalog_service.list_products(db_session),
        promotions=catalog_service.list_active_promotions(db_session),
    )


def save_cart(cart: CartStore) -> None:
    session[CART_SESSION_KEY] = cart.to_dict()
    session.modified = True


def _serialize_line(line: CartLine) -> Dict[str, Any]:
    return {
        'product_id': line.product_id,
        'product_name': line.product.name,
        'unit': line.product.unit,
        'quantity': line.quantity,
        'stock': line.product.stock,
        'tier': int(line.tier),
        'available_tiers': [int(t) for t in price_service.available_tiers(line.product)],
        'active_unit_price': _money(line.active_unit_price),
        'original_unit_price_before_promo': _money(line.original_unit_price_before_promo),
        'applied_promotion_id': line.applied_promotion_id,
        'is_free_gift': line.is_free_gift,
        'line_total': _money(line.line_total),
    }


def _overall_discount(data: Dict[str, Any]) -> OverallDiscount:
    value = data.get('overall_discount')
    if data.get('overall_discount_type') == DiscountType.PERCENT.value:
        return OverallDiscount.percent(value)
    return OverallDiscount.fixed(value)


def _vat_rate(data: Dict[str, Any]):
    value = data.get('vat_rate')
    if value is None or value == '':
        return Decimal(str(current_app.config.get('DEFAULT_VAT_RATE', 0)))
    return value


def _cart_response(cart: CartStore, data: Dict[str, Any] = None) -> Dict[str, Any]:
    data = data or {}
    totals = compute_totals(
        cart.lines,
        _overall_discount(data),
        _vat_rate(data),
        data.get('payment_method') or 'cash',
        data.get('received_amount'),
    )
    rounded = totals.rounded()
    return {
        'status': 'ok',
        'items': [_serialize_line(line) for line in cart.lines],
        'totals': {
            key: (str(value) if isinstance(value, Decimal) else value)
            for key, value in rounded.items()
        },
    }


def _int_field(raw, name: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise BusinessLogicError(f'A valid {name} is required')


# =====================================================
# CATALOG
# =====================================================

@pos_bp.route('/catalog', methods=['GET'])
def catalog():
    """Products, active promotions and customers for the POS screen."""
    db_session = get_session()
    products = catalog_service.list_products(db_session)
    promotions = catalog_service.list_active_promotions(db_session)
    customers = catalog_service.list_customers(db_session)

    return jsonify({
        'products': [
            {
                'id': p.id,
                'name': p.name,
                'unit': p.unit,
                'stock': p.stock,
                'prices': {int(t): _money(price_service.resolve(p, t)) for t in price_service.available_tiers(p)},
            }
            for p in products
        ],
        'promotions': [
            {'id': promo.id, 'name': promo.name, 'kind': promo.kind, 'priority': promo.priority}
            for promo in promotions
        ],
        'customers': [
            {'id': c.id, 'name': c.name, 'customer_type': c.customer_type.value, 'credit_days': c.credit_days}
            for c in customers
        ],
    })


# =====================================================
# CART
# =====================================================

@pos_bp.route('/cart', methods=['GET'])
def view_cart():
    cart = get_cart(get_session())
    save_cart(cart)
    return jsonify(_cart_response(cart))


@pos_bp.route('/cart/items', methods=['POST'])
def add_item():
    db_session = get_session()
    data = _payload()
    product = catalog_service.get_product(db_session, _int_field(data.get('product_id'), 'product_id'))

    cart = get_cart(db_session)
    cart.add_line(product)
    save_cart(cart)
    return jsonify(_cart_response(cart)), 201


@pos_bp.route('/cart/items/<int:product_id>', methods=['PATCH'])
def update_item(product_id):
    data = _payload()
    cart = get_cart(get_session())
    try:
        cart.set_quantity(product_id, data.get('quantity'), pending=bool(data.get('pending')))
    except InsufficientStockError as e:
        # The clamped quantity is kept; report it with the updated cart
        save_cart(cart)
        response = _cart_response(cart)
        response.update(e.to_dict())
        return jsonify(response), e.status_code

    save_cart(cart)
    return jsonify(_cart_response(cart))


@pos_bp.route('/cart/items/<int:product_id>/confirm', methods=['POST'])
def confirm_item(product_id):
    cart = get_cart(get_session())
    cart.confirm_quantity(product_id)
    save_cart(cart)
    return jsonify(_cart_response(cart))


@pos_bp.route('/cart/items/<int:product_id>/tier', methods=['POST'])
def select_tier(product_id):
    data = _payload()
    cart = get_cart(get_session())
    cart.select_tier(product_id, data.get('tier'), is_free_gift=bool(data.get('is_free_gift')))
    save_cart(cart)
    return jsonify(_cart_response(cart))


@pos_bp.route('/cart/items/<int:product_id>', methods=['DELETE'])
def remove_item(product_id):
    cart = get_cart(get_session())
    cart.remove_line(product_id)
    save_cart(cart)
    return jsonify(_cart_response(cart))


@pos_bp.route('/cart', methods=['DELETE'])
def clear_cart():
    cart = CartStore()
    save_cart(cart)
    return jsonify(_cart_response(cart))


@pos_bp.route('/cart/promotions', methods=['POST'])
def apply_promotions():
    cart = get_cart(get_session())
    changed = cart.apply_promotions()
    save_cart(cart)
    response = _cart_response(cart)
    response['free_gifts_changed'] = changed
    return jsonify(response)


# =====================================================
# CHECKOUT
# =====================================================

@pos_bp.route('/checkout/preview', methods=['POST'])
def checkout_preview():
    """Totals for the checkout modal (discount, VAT, payment inputs)."""
    cart = get_cart(get_session())
    return jsonify(_cart_response(cart, _payload()))


@pos_bp.route('/checkout', methods=['POST'])
def checkout():
    db_session = get_session()
    data = _payload()
    cart = get_cart(db_session)

    customer = None
    if data.get('customer_id'):
        customer = catalog_service.get_customer(db_session, _int_field(data['customer_id'], 'customer_id'))

    sale = finalize_sale(
        cart,
        SqlSaleRepository(db_session),
        payment_method=data.get('payment_method') or 'cash',
        overall_discount=_overall_discount(data),
        vat_rate_percent=_vat_rate(data),
        received_amount=data.get('received_amount'),
        customer=customer,
        operator_id=request.headers.get('X-Operator-Id') or current_app.config.get('DEFAULT_OPERATOR_ID', 'system'),
        operator_name=request.headers.get('X-Operator-Name') or current_app.config.get('DEFAULT_OPERATOR_NAME', ''),
        notes=data.get('notes'),
    )
    save_cart(cart)
    current_app.logger.info(f"Checkout completed: {sale.receipt_number}")
    return jsonify({'status': 'ok', 'receipt': build_receipt(sale)}), 201
