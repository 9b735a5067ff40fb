# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from storefront.api.deps import Caller, get_caller, require_user, sync_guest_cookie
from storefront.data.database import get_db
from storefront.domain.schemas import AssociateOut, CartItemIn, CartItemUpdateIn, CartOut
from storefront.services.cart_service import CartService
from storefront.services.reconciliation_service import CartReconciliationService
from storefront.utils.settings import GUEST_CART_COOKIE

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session):
    return CartService(db)


@router.get("", response_model=CartOut)
def get_cart(response: Response, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    identity = caller.identity()
    cart = get_service(db).get_cart(identity)
    sync_guest_cookie(response, caller.guest_id, identity)
    return cart


@router.post("/items", response_model=CartOut)
def add_item(
    payload: CartItemIn,
    response: Response,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    identity = caller.identity()
    cart = get_service(db).add_item(
        identity,
        product_id=payload.product_id,
        variant_id=payload.variant_id,
        quantity=payload.quantity,
    )
    sync_guest_cookie(response, caller.guest_id, identity)
    return cart


@router.put("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: CartItemUpdateIn,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return get_service(db).update_item_quantity(caller.identity(), item_id, payload.quantity)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(item_id: int, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return get_service(db).remove_item(caller.identity(), item_id)


@router.delete("", response_model=CartOut)
def clear_cart(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return get_service(db).clear_cart(caller.identity())


@router.post("/associate", response_model=AssociateOut)
def associate_cart(response: Response, caller: Caller = Depends(require_user), db: Session = Depends(get_db)):
    """Merges the guest cart named by the cookie into the logged-in user's cart."""
    result = CartReconciliationService(db).reconcile(caller.user_id, caller.guest_id)
    if result.clear_guest_marker:
        response.delete_cookie(GUEST_CART_COOKIE)
    return {"action": result.action, "message": result.message, "cart": result.cart}
