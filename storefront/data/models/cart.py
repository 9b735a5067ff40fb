# storefront/data/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Index, text
from sqlalchemy.orm import relationship

from storefront.data.database import Base

CART_ACTIVE = "active"
CART_MERGED = "merged"
CART_CONVERTED = "converted"
CART_ABANDONED = "abandoned"


def _now():
    return datetime.now(timezone.utc)


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    # exactly one of user_id / guest_id identifies an active cart
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    guest_id = Column(String(64), nullable=True, index=True)

    status = Column(String(20), nullable=False, default=CART_ACTIVE)
    last_activity = Column(DateTime(timezone=True), nullable=False, default=_now)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.id",
    )

    def touch(self):
        self.last_activity = _now()

    __table_args__ = (
        # at most one active cart per user and per guest token
        Index(
            "uq_cart_active_user",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index(
            "uq_cart_active_guest",
            "guest_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )
