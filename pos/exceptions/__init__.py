"""Custom exceptions for the POS application."""
from decimal import Decimal


def _fmt_qty(value) -> str:
    value = Decimal(str(value))
    if value % 1 == 0:
        return f"{int(value)}"
    return f"{value:.2f}".rstrip('0').rstrip('.')


class PosError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class BusinessLogicError(PosError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class OutOfStockError(BusinessLogicError):
    """Raised when a product with zero stock is added to the cart."""
    def __init__(self, product_name):
        self.product_name = product_name
        super().__init__(
            f"{product_name} is out of stock",
            status_code=409,
            payload={'code': 'out_of_stock'},
        )


class InsufficientStockError(BusinessLogicError):
    """Raised when a requested quantity exceeds the available stock."""
    def __init__(self, product_name, required, available):
        self.product_name = product_name
        self.required = required
        self.available = available
        message = (
            f"Not enough stock for {product_name}: "
            f"requested {_fmt_qty(required)}, available {_fmt_qty(available)}"
        )
        super().__init__(
            message,
            status_code=409,
            payload={'code': 'insufficient_stock', 'available': _fmt_qty(available)},
        )


class InvalidQuantityError(BusinessLogicError):
    """Raised for negative or non-numeric quantity input."""
    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid quantity: {value!r}", payload={'code': 'invalid_quantity'})


class PriceTierUnavailableError(BusinessLogicError):
    """Raised when a price tier is not defined for a product."""
    def __init__(self, product_name, tier):
        self.tier = tier
        super().__init__(
            f"Price tier {tier} is not available for {product_name}",
            payload={'code': 'price_tier_unavailable'},
        )


class FreeGiftLineError(BusinessLogicError):
    """Raised when a cashier tries to edit a promotion-owned gift line."""
    def __init__(self, product_name):
        super().__init__(
            f"Free gift line for {product_name} is managed by promotions",
            payload={'code': 'free_gift_line'},
        )


class EmptyCartError(BusinessLogicError):
    """Raised when checkout is attempted with no cart lines."""
    def __init__(self, message="The cart is empty"):
        super().__init__(message, payload={'code': 'empty_cart'})


class MissingCustomerForCreditError(BusinessLogicError):
    """Raised when a credit sale has no customer selected."""
    def __init__(self, message="A customer must be selected for credit sales"):
        super().__init__(message, payload={'code': 'missing_customer_for_credit'})


class InsufficientPaymentError(BusinessLogicError):
    """Raised when the cash received does not cover the grand total."""
    def __init__(self, grand_total, received):
        self.grand_total = grand_total
        self.received = received
        super().__init__(
            f"Received amount {received} does not cover the grand total {grand_total}",
            payload={'code': 'insufficient_payment'},
        )


class PersistenceError(PosError):
    """Raised when the sale repository fails to store a sale."""
    def __init__(self, message="The sale could not be saved"):
        super().__init__(message, 500, {'code': 'persistence_failure'})
