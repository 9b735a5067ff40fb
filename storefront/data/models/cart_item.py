from sqlalchemy import Column, Integer, ForeignKey, Numeric, JSON, CheckConstraint, Index, func
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=True)

    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(10, 2), nullable=False)  # unit price at add-time
    product_data = Column(JSON, nullable=True)  # name / image / variant label

    cart = relationship("CartModel", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_cart_item_quantity"),
    )


# one line per SKU; NULL variant ids would not collide in a plain unique constraint
Index(
    "uq_cart_item_line",
    CartItemModel.cart_id,
    CartItemModel.product_id,
    func.coalesce(CartItemModel.variant_id, 0),
    unique=True,
)
