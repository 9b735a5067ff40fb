# storefront/api/routers/admin.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import Caller, require_admin
from storefront.data.database import get_db
from storefront.domain.schemas import OrderOut, StatusEntryOut, StatusUpdateIn
from storefront.services.order_service import OrderService
from storefront.services.order_status_service import OrderStatusService

router = APIRouter(prefix="/admin/orders", tags=["admin"])


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, caller: Caller = Depends(require_admin), db: Session = Depends(get_db)):
    return OrderService(db).get_order(order_id, caller.user_id, is_admin=True)


@router.get("/{order_id}/status", response_model=List[StatusEntryOut])
def get_status_history(order_id: int, _: Caller = Depends(require_admin), db: Session = Depends(get_db)):
    return OrderStatusService(db).history(order_id)


@router.put("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: int,
    payload: StatusUpdateIn,
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    OrderStatusService(db).update_status(order_id, payload.status, payload.note, updated_by=caller.user_id)
    return OrderService(db).get_order(order_id, caller.user_id, is_admin=True)
