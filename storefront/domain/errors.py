# storefront/domain/errors.py
from typing import Any, Dict


class ShopError(Exception):
    """Base for every business error a use case may raise."""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None, **extra: Any):
        self.detail = detail or self.default_detail
        self.extra = extra
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.detail, **self.extra}


class ValidationError(ShopError):
    status_code = 400
    default_detail = "Invalid request"


class AccountExists(ValidationError):
    default_detail = "An account with this email already exists. Please login."


class NotFound(ShopError):
    status_code = 404
    default_detail = "Not found"


class ProductNotFound(NotFound):
    def __init__(self, product_id: int):
        super().__init__(f"Product with ID {product_id} not found", product_id=product_id)


class VariantNotFound(NotFound):
    def __init__(self, product_id: int, variant_id: int):
        super().__init__(
            f"Variant with ID {variant_id} not found for product {product_id}",
            product_id=product_id,
            variant_id=variant_id,
        )


class OrderNotFound(NotFound):
    def __init__(self, order_id: int | str):
        super().__init__("Order not found", order_id=order_id)


class CartNotFound(NotFound):
    default_detail = "Cart not found"


class CartItemNotFound(NotFound):
    default_detail = "Cart item not found"


class InsufficientStock(ShopError):
    status_code = 400

    def __init__(self, sku: str | None, available: int | None, requested: int | None, detail: str | None = None):
        super().__init__(
            detail or f"Insufficient stock for {sku}",
            sku=sku,
            available=available,
            requested=requested,
        )
        self.sku = sku
        self.available = available
        self.requested = requested


class StockConflict(InsufficientStock):
    """Lost a concurrent race for the same stock and ran out of retries."""

    status_code = 409

    def __init__(self, sku: str | None = None, available: int | None = None, requested: int | None = None):
        super().__init__(sku, available, requested, detail="Stock changed while placing the order, please retry")


class Unauthorized(ShopError):
    status_code = 401
    default_detail = "Authentication required"


class Forbidden(ShopError):
    status_code = 403
    default_detail = "Not authorized"


class Conflict(ShopError):
    status_code = 409
    default_detail = "Conflict"


class InvalidStatusTransition(Conflict):
    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot change order status from {current} to {requested}",
            current=current,
            requested=requested,
        )
