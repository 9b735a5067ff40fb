# storefront/data/models/product.py
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    sales_count = Column(Integer, nullable=False, default=0)
    image_url = Column(String(1024), nullable=True)

    variants = relationship("ProductVariantModel", back_populates="product", cascade="all, delete-orphan")


class ProductVariantModel(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    additional_price = Column(Numeric(10, 2), nullable=False, default=0)
    # variant stock is tracked independently of the parent product's stock
    stock = Column(Integer, nullable=False, default=0)
    sku = Column(String(64), nullable=True)

    product = relationship("ProductModel", back_populates="variants")
