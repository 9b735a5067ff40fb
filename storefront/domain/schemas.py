# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, EmailStr
from typing import List, Optional, Dict, Any
from decimal import Decimal
from datetime import datetime


# ---------- cart ----------

class CartItemIn(BaseModel):
    """Line to add to the caller's cart."""

    product_id: int = Field(..., gt=0)
    variant_id: Optional[int] = Field(None, gt=0)
    quantity: int = Field(1, gt=0)


class CartItemUpdateIn(BaseModel):
    quantity: int


class CartItemOut(BaseModel):
    id: int
    product_id: int
    variant_id: Optional[int] = None
    quantity: int
    price: Decimal
    product_data: Dict[str, Any] = {}

    model_config = ConfigDict(from_attributes=True)


class CartOut(BaseModel):
    id: int
    items: List[CartItemOut]
    total_quantity: int
    total_amount: Decimal


class AssociateOut(BaseModel):
    """Outcome of merging the guest cart into the user's cart."""

    action: str  # noop | adopted | merged
    message: str
    cart: Optional[CartOut] = None


# ---------- orders ----------

class OrderItemIn(BaseModel):
    product_id: int = Field(..., gt=0)
    variant_id: Optional[int] = Field(None, gt=0)
    quantity: int = Field(..., gt=0)


class ShippingIn(BaseModel):
    # emptiness is checked by the order service so every gap is reported at once
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None


class PlaceOrderIn(BaseModel):
    """
    Checkout request. When ``items`` is empty the caller's active cart is
    used instead.
    """

    items: List[OrderItemIn] = []
    shipping: ShippingIn
    email: Optional[EmailStr] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    discount_code: Optional[str] = None
    loyalty_points: int = Field(0, ge=0)
    create_account: bool = False


class OrderItemOut(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    product_name: str
    variant_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class NewAccountOut(BaseModel):
    message: str = "An account has been created for you"
    email: str
    token: str


class OrderPlacedOut(BaseModel):
    order_id: int
    order_number: str
    total_amount: Decimal
    status: str
    items: List[OrderItemOut]
    new_account: Optional[NewAccountOut] = None


class StatusEntryOut(BaseModel):
    id: int
    status: str
    note: Optional[str] = None
    updated_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: int
    order_number: str
    user_id: Optional[int] = None
    email: str
    status: str
    payment_status: str
    payment_method: str
    shipping_name: str
    shipping_address: str
    shipping_city: str
    shipping_state: str
    shipping_zip: str
    shipping_country: str
    contact_phone: str
    notes: Optional[str] = None
    subtotal: Decimal
    shipping_fee: Decimal
    tax: Decimal
    discount_code: Optional[str] = None
    discount_amount: Decimal
    loyalty_points_used: int
    loyalty_points_earned: int
    total_amount: Decimal
    total_items: int
    created_at: datetime
    items: List[OrderItemOut] = []

    model_config = ConfigDict(from_attributes=True)


class StatusUpdateIn(BaseModel):
    status: str
    note: Optional[str] = None


class GuestOrderLookupIn(BaseModel):
    email: EmailStr
    order_number: str = Field(..., min_length=1)
