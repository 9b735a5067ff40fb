# storefront/services/reconciliation_service.py
from dataclasses import dataclass
from typing import Dict, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.database import transaction
from storefront.data.models.cart import CART_MERGED
from storefront.repos.cart_repo import CartRepo
from storefront.services.cart_service import cart_snapshot
from storefront.utils.logging import get_logger
from storefront.utils.retry import db_retry

logger = get_logger(__name__)

NOOP = "noop"
ADOPTED = "adopted"
MERGED = "merged"


@dataclass
class ReconcileResult:
    action: str
    message: str
    clear_guest_marker: bool
    cart: Dict[str, Any] | None = None


class CartReconciliationService:
    """
    Folds an anonymous guest cart into the user's cart at login.

    - no guest token, or no active guest cart: nothing changes
    - user has no active cart: the guest cart is handed over as-is
    - otherwise lines are merged by (product_id, variant_id) and the guest
      cart ends up ``merged``, which is terminal

    Everything happens in one transaction; a failure leaves both carts as
    they were so the next login simply tries again.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)

    @db_retry(IntegrityError)
    def reconcile(self, user_id: int, guest_id: str | None) -> ReconcileResult:
        if not guest_id:
            logger.info(f"No guest cart token for user {user_id}")
            return ReconcileResult(NOOP, "No guest cart to associate", clear_guest_marker=False)

        with transaction(self.db):
            # lock order: user cart first, then guest cart
            user_cart = self.repo.get_active_cart_by_user(user_id, lock=True)
            guest_cart = self.repo.get_active_cart_by_guest(guest_id, lock=True)

            if not guest_cart:
                logger.info(f"Guest cart {guest_id[:8]}... not found, clearing stale marker")
                return ReconcileResult(NOOP, "No guest cart found to associate", clear_guest_marker=True)

            if not user_cart:
                logger.info(f"User {user_id} has no active cart, adopting guest cart {guest_cart.id}")
                guest_cart.user_id = user_id
                guest_cart.guest_id = None
                guest_cart.touch()
                self.db.flush()
                return ReconcileResult(
                    ADOPTED,
                    "Guest cart associated with user account",
                    clear_guest_marker=True,
                    cart=cart_snapshot(guest_cart, self.repo.get_cart_items(guest_cart.id)),
                )

            guest_items = self.repo.get_cart_items(guest_cart.id)
            user_items = {
                (item.product_id, item.variant_id): item
                for item in self.repo.get_cart_items(user_cart.id)
            }
            logger.info(
                f"Merging {len(guest_items)} guest items into cart {user_cart.id} "
                f"({len(user_items)} items)"
            )

            for guest_item in guest_items:
                key = (guest_item.product_id, guest_item.variant_id)
                existing = user_items.get(key)

                if existing:
                    existing.quantity += guest_item.quantity
                    self.repo.delete_cart_item(guest_item)
                else:
                    # stock is re-validated at checkout, not here
                    guest_item.cart_id = user_cart.id
                    user_items[key] = guest_item

            guest_cart.status = CART_MERGED
            guest_cart.touch()
            user_cart.touch()
            self.db.flush()

            return ReconcileResult(
                MERGED,
                "Guest cart merged with user cart",
                clear_guest_marker=True,
                cart=cart_snapshot(user_cart, self.repo.get_cart_items(user_cart.id)),
            )
