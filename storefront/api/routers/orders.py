# storefront/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import Caller, get_caller, require_user
from storefront.data.database import get_db
from storefront.domain.schemas import GuestOrderLookupIn, OrderOut, OrderPlacedOut, PlaceOrderIn, StatusEntryOut
from storefront.services.order_service import OrderService
from storefront.services.order_status_service import OrderStatusService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session):
    return OrderService(db)


@router.post("", response_model=OrderPlacedOut, status_code=201)
def create_order(payload: PlaceOrderIn, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    """
    Places an order from explicit items, or from the caller's cart when no
    items are sent. Works for guests; ``create_account`` opens an account.
    """
    return get_service(db).place_order(payload, caller.identity())


@router.get("", response_model=List[OrderOut])
def list_orders(caller: Caller = Depends(require_user), db: Session = Depends(get_db)):
    return get_service(db).list_user_orders(caller.user_id)


@router.post("/guest", response_model=OrderOut)
def track_guest_order(payload: GuestOrderLookupIn, db: Session = Depends(get_db)):
    return get_service(db).track_guest_order(payload.email, payload.order_number)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, caller: Caller = Depends(require_user), db: Session = Depends(get_db)):
    return get_service(db).get_order(order_id, caller.user_id, caller.is_admin)


@router.get("/{order_id}/status", response_model=List[StatusEntryOut])
def get_status_history(order_id: int, caller: Caller = Depends(require_user), db: Session = Depends(get_db)):
    # ownership check first, then the ledger
    get_service(db).get_order(order_id, caller.user_id, caller.is_admin)
    return OrderStatusService(db).history(order_id)
