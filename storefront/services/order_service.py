# storefront/services/order_service.py
import secrets
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, List

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from storefront.data.database import transaction
from storefront.data.models.cart import CART_CONVERTED
from storefront.data.models.order import OrderModel, OrderItemModel, OrderStatusModel
from storefront.domain.errors import (
    Forbidden,
    OrderNotFound,
    ProductNotFound,
    StockConflict,
    ValidationError,
    VariantNotFound,
)
from storefront.domain.pricing import PricingPolicy, money
from storefront.domain.schemas import OrderItemIn, PlaceOrderIn
from storefront.domain.statuses import OrderStatus, PaymentStatus
from storefront.repos.cart_repo import CartRepo
from storefront.repos.inventory_repo import InventoryRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.cart_service import Identity
from storefront.services.notification_service import NotificationService
from storefront.services.user_service import UserService
from storefront.utils.logging import get_logger
from storefront.utils.retry import db_retry
from storefront.utils.settings import DEFAULT_COUNTRY, DEFAULT_PAYMENT_METHOD

logger = get_logger(__name__)

REQUIRED_SHIPPING_FIELDS = ("name", "address", "city", "state", "postal_code", "phone")


def generate_order_number() -> str:
    # 32 random bits per day keeps concurrent collisions negligible; the
    # unique index on order_number is the backstop
    return f"ORD-{datetime.now(timezone.utc):%Y%m%d}-{secrets.token_hex(4).upper()}"


def order_item_dict(item: OrderItemModel) -> Dict[str, Any]:
    return {
        "product_id": item.product_id,
        "variant_id": item.variant_id,
        "product_name": item.product_name,
        "variant_name": item.variant_name,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "total_price": item.total_price,
    }


class OrderService:
    """
    Order Placement and the customer-facing read side.

    Placement is all-or-nothing: product resolution, every stock decrement,
    the optional account, the order rows and the first status entry share
    one transaction. Notifications go out only after commit.
    """

    def __init__(
        self,
        db: Session,
        pricing: PricingPolicy | None = None,
        notifier: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.inventory = InventoryRepo(db)
        self.users = UserService(db)
        self.pricing = pricing or PricingPolicy()
        self.notifier = notifier or NotificationService()

    # =====================================================
    # COMMAND
    # =====================================================
    def place_order(self, payload: PlaceOrderIn, identity: Identity) -> Dict[str, Any]:
        self._validate_shipping(payload)

        try:
            order, new_account = self._place(payload, identity)
        except OperationalError:
            logger.warning("Order placement kept hitting lock errors, giving up")
            raise StockConflict()

        logger.info(f"Order {order.order_number} placed, total {order.total_amount}")

        # outside the transaction: a failed dispatch never touches the order
        self.notifier.send_order_confirmation(order)

        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "total_amount": order.total_amount,
            "status": order.status,
            "items": [order_item_dict(i) for i in order.items],
            "new_account": new_account,
        }

    @db_retry()
    def _place(self, payload: PlaceOrderIn, identity: Identity):
        with transaction(self.db):
            items, cart = self._resolve_lines(payload, identity)

            user_id = identity.user_id
            user = self.users.get_user(user_id) if user_id is not None else None
            email = payload.email or (user.email if user else None)
            if not email:
                raise ValidationError("Contact email is required")

            new_account = None
            if user is None and payload.create_account:
                user, token = self.users.create_guest_account(email, payload.shipping.name)
                user_id = user.id
                self.users.save_default_address(user.id, payload.shipping)
                new_account = {
                    "message": "An account has been created for you",
                    "email": email,
                    "token": token,
                }
            elif user is not None:
                self.users.save_default_address(user.id, payload.shipping)

            if payload.loyalty_points and user is None:
                raise ValidationError("Loyalty points can only be redeemed with an account")

            order_items, subtotal, total_items = self._debit_inventory(items)
            totals = self.pricing.totals(subtotal, payload.discount_code, payload.loyalty_points)

            if user is not None:
                self.users.apply_loyalty(user, payload.loyalty_points, totals.loyalty_points_earned)

            order = OrderModel(
                order_number=self._unique_order_number(),
                user_id=user_id,
                email=email,
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                payment_method=payload.payment_method or DEFAULT_PAYMENT_METHOD,
                shipping_name=payload.shipping.name,
                shipping_address=payload.shipping.address,
                shipping_city=payload.shipping.city,
                shipping_state=payload.shipping.state,
                shipping_zip=payload.shipping.postal_code,
                shipping_country=payload.shipping.country or DEFAULT_COUNTRY,
                contact_phone=payload.shipping.phone,
                notes=payload.notes,
                subtotal=totals.subtotal,
                shipping_fee=totals.shipping_fee,
                tax=totals.tax,
                discount_code=payload.discount_code if totals.discount_amount > 0 else None,
                discount_amount=totals.discount_amount,
                loyalty_points_used=payload.loyalty_points if user is not None else 0,
                loyalty_points_earned=totals.loyalty_points_earned if user is not None else 0,
                total_amount=totals.total_amount,
                total_items=total_items,
                guest_account_created=new_account is not None,
            )
            order.items.extend(order_items)
            order.history.append(OrderStatusModel(status=OrderStatus.PENDING.value, note="Order created"))
            self.repo.create_order(order)

            if cart is not None:
                cart.status = CART_CONVERTED
                cart.touch()
                self.db.flush()

            return order, new_account

    # =====================================================
    # QUERY
    # =====================================================
    def get_order(self, order_id: int, user_id: int | None, is_admin: bool = False) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        if not is_admin and order.user_id != user_id:
            raise Forbidden("Not authorized to view this order")
        return order

    def list_user_orders(self, user_id: int) -> List[OrderModel]:
        return self.repo.list_by_user(user_id)

    def track_guest_order(self, email: str, order_number: str) -> OrderModel:
        order = self.repo.get_guest_order(email, order_number)
        if not order:
            raise OrderNotFound(order_number)
        return order

    # helpers
    @staticmethod
    def _validate_shipping(payload: PlaceOrderIn):
        missing = [f for f in REQUIRED_SHIPPING_FIELDS if not (getattr(payload.shipping, f) or "").strip()]
        if missing:
            raise ValidationError("All shipping information is required", missing=missing)

    def _resolve_lines(self, payload: PlaceOrderIn, identity: Identity):
        """Explicit items win; otherwise the caller's active cart is checked out."""
        if payload.items:
            return payload.items, None

        cart = None
        if identity.user_id is not None:
            cart = self.carts.get_active_cart_by_user(identity.user_id, lock=True)
        elif identity.guest_id:
            cart = self.carts.get_active_cart_by_guest(identity.guest_id, lock=True)

        lines = []
        if cart is not None:
            lines = [
                OrderItemIn(product_id=i.product_id, variant_id=i.variant_id, quantity=i.quantity)
                for i in self.carts.get_cart_items(cart.id)
            ]
        if not lines:
            raise ValidationError("Order must contain at least one item")

        return lines, cart

    def _debit_inventory(self, items: List[OrderItemIn]):
        order_items = []
        subtotal = Decimal("0.00")
        total_items = 0

        for line in items:
            product = self.inventory.get_product(line.product_id)
            if not product:
                raise ProductNotFound(line.product_id)

            variant = None
            if line.variant_id is not None:
                variant = self.inventory.get_variant(line.product_id, line.variant_id)
                if not variant:
                    raise VariantNotFound(line.product_id, line.variant_id)

            # variant rows own their stock; product-level sales feed sales_count
            self.inventory.decrement_stock(product, variant, line.quantity)
            if variant is None:
                self.inventory.increment_sales(product, line.quantity)

            unit_price = money(product.price + (variant.additional_price if variant else Decimal("0")))
            line_total = money(unit_price * line.quantity)
            subtotal += line_total
            total_items += line.quantity

            order_items.append(
                OrderItemModel(
                    product_id=product.id,
                    variant_id=variant.id if variant else None,
                    product_name=product.name,
                    variant_name=variant.name if variant else None,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    total_price=line_total,
                )
            )

        return order_items, subtotal, total_items

    def _unique_order_number(self) -> str:
        for _ in range(5):
            number = generate_order_number()
            if not self.repo.order_number_exists(number):
                return number
        raise RuntimeError("Could not generate a unique order number")
