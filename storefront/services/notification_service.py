# storefront/services/notification_service.py
from typing import Dict, Any

from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Fire-and-forget notifications, dispatched only after the order commit.
    A failure to enqueue is logged and never reaches the caller.
    """

    @staticmethod
    def send_order_confirmation(order) -> bool:
        payload = {
            "order_id": order.id,
            "order_number": order.order_number,
            "email": order.email,
            "total_amount": str(order.total_amount),
            "items": [
                {"name": i.product_name, "variant": i.variant_name, "quantity": i.quantity}
                for i in order.items
            ],
        }
        try:
            send_order_confirmation_task.delay(payload)
            return True
        except Exception:
            logger.exception(f"Could not dispatch confirmation for order {order.order_number}")
            return False

    @staticmethod
    def send_status_update(order, status: str) -> bool:
        payload = {
            "order_id": order.id,
            "order_number": order.order_number,
            "email": order.email,
            "status": status,
        }
        try:
            send_order_status_task.delay(payload)
            return True
        except Exception:
            logger.exception(f"Could not dispatch status update for order {order.order_number}")
            return False


@celery_app.task(name="storefront.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(payload: Dict[str, Any]):
    """
    Worker side of the confirmation mail. Delivery itself belongs to the
    mail gateway; here the message is rendered and logged.
    """
    lines = ", ".join(
        f"{i['quantity']}x {i['name']}" + (f" ({i['variant']})" if i.get("variant") else "")
        for i in payload.get("items", [])
    )
    logger.info(
        f"[NOTIFICATION] {payload['email']}: order {payload['order_number']} received, "
        f"total {payload['total_amount']}: {lines}"
    )
    return {"order_id": payload["order_id"], "status": "sent"}


@celery_app.task(name="storefront.services.notification_service.send_order_status_task")
def send_order_status_task(payload: Dict[str, Any]):
    logger.info(
        f"[NOTIFICATION] {payload['email']}: order {payload['order_number']} is now {payload['status']}"
    )
    return {"order_id": payload["order_id"], "status": "sent"}
