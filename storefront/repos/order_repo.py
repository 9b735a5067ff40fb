# storefront/repos/order_repo.py
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel, OrderStatusModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def add_status(self, entry: OrderStatusModel) -> OrderStatusModel:
        self.db.add(entry)
        self.db.flush()
        return entry

    def get_order(self, order_id: int, lock: bool = False) -> OrderModel | None:
        stmt = select(OrderModel).where(OrderModel.id == order_id).options(selectinload(OrderModel.items))
        if lock:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def get_guest_order(self, email: str, order_number: str) -> OrderModel | None:
        stmt = (
            select(OrderModel)
            .where(
                OrderModel.email == email,
                OrderModel.order_number == order_number,
                OrderModel.user_id.is_(None),
            )
            .options(selectinload(OrderModel.items))
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_by_user(self, user_id: int) -> List[OrderModel]:
        stmt = (
            select(OrderModel)
            .where(OrderModel.user_id == user_id)
            .options(selectinload(OrderModel.items))
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def order_number_exists(self, order_number: str) -> bool:
        stmt = select(OrderModel.id).where(OrderModel.order_number == order_number)
        return self.db.execute(stmt).first() is not None

    def status_history(self, order_id: int) -> List[OrderStatusModel]:
        # newest first; id breaks ties between rows written in the same instant
        stmt = (
            select(OrderStatusModel)
            .where(OrderStatusModel.order_id == order_id)
            .order_by(OrderStatusModel.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())
