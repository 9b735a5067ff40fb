# storefront/repos/inventory_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel, ProductVariantModel
from storefront.domain.errors import InsufficientStock


def sku_label(product: ProductModel, variant: ProductVariantModel | None) -> str:
    if variant is not None:
        return f"{product.name} ({variant.name})"
    return product.name


class InventoryRepo:
    """
    Stock ledger for products and variants.

    Runs on the caller's session, so decrements commit or roll back together
    with the order that caused them.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_variant(self, product_id: int, variant_id: int) -> ProductVariantModel | None:
        # scoped lookup: a variant id belonging to another product resolves to None
        stmt = select(ProductVariantModel).where(
            ProductVariantModel.id == variant_id,
            ProductVariantModel.product_id == product_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    @staticmethod
    def available(product: ProductModel, variant: ProductVariantModel | None) -> int:
        return (variant.stock if variant is not None else product.stock) or 0

    def decrement_stock(
        self,
        product: ProductModel,
        variant: ProductVariantModel | None,
        quantity: int,
    ) -> int:
        """
        Atomic check-and-decrement of the authoritative stock row.

        The guard lives in the WHERE clause, so two transactions racing for
        the last unit serialise on the row lock and the loser matches 0 rows.
        Returns the remaining stock.
        """
        target = variant if variant is not None else product
        model = type(target)

        res = self.db.execute(
            update(model)
            .where(model.id == target.id, model.stock >= quantity)
            .values(stock=model.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(target, ["stock"])

        if res.rowcount == 0:
            raise InsufficientStock(sku_label(product, variant), available=target.stock, requested=quantity)

        return target.stock

    def increment_sales(self, product: ProductModel, quantity: int):
        self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product.id)
            .values(sales_count=ProductModel.sales_count + quantity)
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(product, ["sales_count"])

    def restock(self, product: ProductModel, variant: ProductVariantModel | None, quantity: int) -> int:
        target = variant if variant is not None else product
        model = type(target)
        self.db.execute(
            update(model)
            .where(model.id == target.id)
            .values(stock=model.stock + max(0, quantity))
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(target, ["stock"])
        return target.stock
