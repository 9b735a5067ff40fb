# storefront/services/order_status_service.py
from typing import List

from sqlalchemy.orm import Session

from storefront.data.database import transaction
from storefront.data.models.order import OrderModel, OrderStatusModel
from storefront.domain.errors import InvalidStatusTransition, OrderNotFound, ValidationError
from storefront.domain.statuses import OrderStatus, can_transition
from storefront.repos.order_repo import OrderRepo
from storefront.services.notification_service import NotificationService
from storefront.utils.logging import get_logger
from storefront.utils.retry import db_retry
from storefront.utils.settings import STRICT_STATUS_TRANSITIONS

logger = get_logger(__name__)


class OrderStatusService:
    """
    Order Status Ledger: every change appends a history row and refreshes
    the cached ``orders.status`` in the same transaction.
    """

    def __init__(
        self,
        db: Session,
        notifier: NotificationService | None = None,
        strict: bool = STRICT_STATUS_TRANSITIONS,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.notifier = notifier or NotificationService()
        self.strict = strict

    def update_status(
        self,
        order_id: int,
        status: str,
        note: str | None = None,
        updated_by: int | None = None,
    ) -> OrderModel:
        try:
            new_status = OrderStatus(status)
        except ValueError:
            raise ValidationError("Invalid status", status=status, allowed=[s.value for s in OrderStatus])

        order = self._append(order_id, new_status, note, updated_by)
        logger.info(f"Order {order.order_number} status -> {new_status.value}")

        self.notifier.send_status_update(order, new_status.value)
        return order

    @db_retry()
    def _append(self, order_id: int, new_status: OrderStatus, note: str | None, updated_by: int | None) -> OrderModel:
        with transaction(self.db):
            order = self.repo.get_order(order_id, lock=True)
            if not order:
                raise OrderNotFound(order_id)

            current = OrderStatus(order.status)
            if self.strict and not can_transition(current, new_status):
                raise InvalidStatusTransition(current.value, new_status.value)

            self.repo.add_status(
                OrderStatusModel(
                    order_id=order.id,
                    status=new_status.value,
                    note=note or f"Status changed to {new_status.value}",
                    updated_by=updated_by,
                )
            )
            order.status = new_status.value
            self.db.flush()
            return order

    def history(self, order_id: int) -> List[OrderStatusModel]:
        if not self.repo.get_order(order_id):
            raise OrderNotFound(order_id)
        return self.repo.status_history(order_id)
