import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Any, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.database import transaction
from storefront.data.models.cart import CartModel, CART_ACTIVE
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import (
    CartItemNotFound,
    CartNotFound,
    Forbidden,
    InsufficientStock,
    ProductNotFound,
    ValidationError,
    VariantNotFound,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.inventory_repo import InventoryRepo, sku_label
from storefront.utils.logging import get_logger
from storefront.utils.retry import db_retry

logger = get_logger(__name__)


@dataclass
class Identity:
    """Who is touching the cart: an authenticated user, a guest token, or both."""

    user_id: int | None = None
    guest_id: str | None = None


def cart_snapshot(cart: CartModel, items: List[CartItemModel]) -> Dict[str, Any]:
    total_quantity = sum(i.quantity for i in items)
    total_amount = sum((i.price * i.quantity for i in items), Decimal("0.00"))

    return {
        "id": cart.id,
        "items": [
            {
                "id": i.id,
                "product_id": i.product_id,
                "variant_id": i.variant_id,
                "quantity": i.quantity,
                "price": i.price,
                "product_data": i.product_data or {},
            }
            for i in items
        ],
        "total_quantity": total_quantity,
        "total_amount": total_amount,
    }


class CartService:
    """
    Cart Store use cases. Each command is one transaction; the snapshot
    returned reflects the committed state.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)
        self.inventory = InventoryRepo(db)

    # query
    @db_retry(IntegrityError)
    def get_cart(self, identity: Identity) -> Dict[str, Any]:
        with transaction(self.db):
            cart = self._get_or_create(identity)
            snapshot = cart_snapshot(cart, self.repo.get_cart_items(cart.id))

        self._forget_adopted_guest(identity)
        return snapshot

    # commands
    @db_retry(IntegrityError)
    def add_item(self, identity: Identity, product_id: int, variant_id: int | None, quantity: int = 1) -> Dict[str, Any]:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        with transaction(self.db):
            cart = self._get_or_create(identity, lock=True)
            # claim the cart row before reading its lines; concurrent adds queue here
            cart.touch()
            self.db.flush()

            product = self.inventory.get_product(product_id)
            if not product:
                raise ProductNotFound(product_id)

            variant = None
            if variant_id is not None:
                variant = self.inventory.get_variant(product_id, variant_id)
                if not variant:
                    raise VariantNotFound(product_id, variant_id)

            stock = self.inventory.available(product, variant)
            existing_item = self.repo.get_cart_item(cart.id, product_id, variant_id)
            wanted = quantity + (existing_item.quantity if existing_item else 0)

            if stock < wanted:
                raise InsufficientStock(sku_label(product, variant), available=stock, requested=wanted)

            if existing_item:
                logger.info(
                    f"Product {product_id} already in cart {cart.id}, quantity "
                    f"{existing_item.quantity} -> {wanted}"
                )
                existing_item.quantity = wanted
            else:
                price = product.price + (variant.additional_price if variant else Decimal("0"))
                logger.info(f"Adding product {product_id} (variant {variant_id}) to cart {cart.id}")
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_id=product_id,
                        variant_id=variant_id,
                        quantity=quantity,
                        price=price,
                        product_data={
                            "name": product.name,
                            "image": product.image_url,
                            "variant": {
                                "id": variant.id,
                                "name": variant.name,
                                "additional_price": str(variant.additional_price),
                            }
                            if variant
                            else None,
                        },
                    )
                )

            self.db.flush()
            snapshot = cart_snapshot(cart, self.repo.get_cart_items(cart.id))

        self._forget_adopted_guest(identity)
        return snapshot

    def update_item_quantity(self, identity: Identity, item_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        with transaction(self.db):
            item, cart = self._owned_item(identity, item_id)

            product = self.inventory.get_product(item.product_id)
            if not product:
                raise ProductNotFound(item.product_id)

            variant = None
            if item.variant_id is not None:
                variant = self.inventory.get_variant(item.product_id, item.variant_id)
                if not variant:
                    raise VariantNotFound(item.product_id, item.variant_id)

            stock = self.inventory.available(product, variant)
            if stock < quantity:
                raise InsufficientStock(sku_label(product, variant), available=stock, requested=quantity)

            item.quantity = quantity
            cart.touch()
            self.db.flush()
            return cart_snapshot(cart, self.repo.get_cart_items(cart.id))

    def remove_item(self, identity: Identity, item_id: int) -> Dict[str, Any]:
        with transaction(self.db):
            item, cart = self._owned_item(identity, item_id)

            logger.info(f"Removing item {item_id} from cart {cart.id}")
            self.repo.delete_cart_item(item)
            cart.touch()
            self.db.flush()
            return cart_snapshot(cart, self.repo.get_cart_items(cart.id))

    def clear_cart(self, identity: Identity) -> Dict[str, Any]:
        with transaction(self.db):
            cart = self._find_active(identity)
            if not cart:
                raise CartNotFound()

            removed = self.repo.clear_items(cart.id)
            cart.touch()
            logger.info(f"Cleared {removed} items from cart {cart.id}")
            return cart_snapshot(cart, [])

    # helpers
    def _find_active(self, identity: Identity) -> CartModel | None:
        if identity.user_id is not None:
            return self.repo.get_active_cart_by_user(identity.user_id)
        if identity.guest_id:
            return self.repo.get_active_cart_by_guest(identity.guest_id)
        return None

    def _get_or_create(self, identity: Identity, lock: bool = False) -> CartModel:
        """
        Resolves the caller's active cart, creating one when missing. An
        anonymous caller without a token gets one assigned on ``identity``;
        the HTTP layer turns it into the guest cookie.

        Creation relies on the one-active-cart indexes: a concurrent request
        that inserted first makes this flush raise ``IntegrityError`` and the
        retried command picks up the winner's cart.
        """
        if identity.user_id is not None:
            cart = self.repo.get_active_cart_by_user(identity.user_id, lock=lock)
            if cart:
                return cart

            # logged in before the guest cart was associated: adopt it
            if identity.guest_id:
                guest_cart = self.repo.get_active_cart_by_guest(identity.guest_id, lock=lock)
                if guest_cart:
                    logger.info(f"Adopting guest cart {guest_cart.id} for user {identity.user_id}")
                    guest_cart.user_id = identity.user_id
                    guest_cart.guest_id = None
                    guest_cart.touch()
                    self.db.flush()
                    return guest_cart

            created = self.repo.create_cart(CartModel(user_id=identity.user_id, status=CART_ACTIVE))
            logger.info(f"Created cart {created.id} for user {identity.user_id}")
            return created

        if not identity.guest_id:
            identity.guest_id = str(uuid.uuid4())

        cart = self.repo.get_active_cart_by_guest(identity.guest_id, lock=lock)
        if cart:
            return cart

        created = self.repo.create_cart(CartModel(guest_id=identity.guest_id, status=CART_ACTIVE))
        logger.info(f"Created guest cart {created.id}")
        return created

    def _forget_adopted_guest(self, identity: Identity):
        """Drops the guest token once no active cart answers to it any more."""
        if identity.user_id is None or not identity.guest_id:
            return
        if self.repo.get_active_cart_by_guest(identity.guest_id) is None:
            identity.guest_id = None

    def _owned_item(self, identity: Identity, item_id: int):
        item = self.repo.get_item(item_id)
        if not item:
            raise CartItemNotFound()

        cart = self.repo.get_cart(item.cart_id)
        owns = (identity.user_id is not None and cart.user_id == identity.user_id) or (
            identity.guest_id is not None and cart.guest_id == identity.guest_id
        )
        if not owns:
            raise Forbidden("Not authorized to update this cart")
        if cart.status != CART_ACTIVE:
            raise ValidationError("Cart can no longer be modified")

        return item, cart
