# storefront/data/models/order.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Boolean, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    email = Column(String(255), nullable=False, index=True)

    # only status / payment_status change after creation
    status = Column(String(20), nullable=False, default="pending")
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(64), nullable=False)

    shipping_name = Column(String(120), nullable=False)
    shipping_address = Column(String(255), nullable=False)
    shipping_city = Column(String(120), nullable=False)
    shipping_state = Column(String(120), nullable=False)
    shipping_zip = Column(String(32), nullable=False)
    shipping_country = Column(String(120), nullable=False)
    contact_phone = Column(String(32), nullable=False)
    notes = Column(Text, nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    shipping_fee = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    discount_code = Column(String(64), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    loyalty_points_used = Column(Integer, nullable=False, default=0)
    loyalty_points_earned = Column(Integer, nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    total_items = Column(Integer, nullable=False)

    guest_account_created = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    items = relationship("OrderItemModel", back_populates="order", order_by="OrderItemModel.id")
    history = relationship("OrderStatusModel", back_populates="order", order_by="OrderStatusModel.id")


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)
    product_name = Column(String(255), nullable=False)
    variant_name = Column(String(120), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    order = relationship("OrderModel", back_populates="items")


class OrderStatusModel(Base):
    """Append-only status history; rows are never updated or deleted."""

    __tablename__ = "order_statuses"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    note = Column(Text, nullable=True)
    updated_by = Column(Integer, nullable=True)  # admin user id
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    order = relationship("OrderModel", back_populates="history")
