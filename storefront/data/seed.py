# storefront/data/seed.py
from decimal import Decimal

from sqlalchemy import select

from storefront.data.database import SessionLocal, transaction
from storefront.data.models.product import ProductModel, ProductVariantModel
from storefront.repos.inventory_repo import InventoryRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCTS = [
    {"name": "Keyboard", "price": "199.99", "stock": 25, "variants": [("US layout", "0", 10), ("DE layout", "5.00", 5)]},
    {"name": "Mouse", "price": "49.50", "stock": 100, "variants": []},
    {"name": "Monitor", "price": "899.00", "stock": 8, "variants": [("27 inch", "0", 4), ("32 inch", "150.00", 2)]},
]


def seed(db=None):
    """
    Creates the demo catalog on an empty database. On a populated one it
    refills demo products and variants that have sold out.
    """
    owned = db is None
    db = db or SessionLocal()
    try:
        existing = {p.name: p for p in db.execute(select(ProductModel)).scalars()}
        if existing:
            _refill(db, existing)
            return

        with transaction(db):
            for p in PRODUCTS:
                product = ProductModel(name=p["name"], price=Decimal(p["price"]), stock=p["stock"])
                for name, extra, stock in p["variants"]:
                    product.variants.append(
                        ProductVariantModel(name=name, additional_price=Decimal(extra), stock=stock)
                    )
                db.add(product)
        logger.info(f"Seeded {len(PRODUCTS)} products")
    finally:
        if owned:
            db.close()


def _refill(db, existing):
    inventory = InventoryRepo(db)
    refilled = 0

    with transaction(db):
        for p in PRODUCTS:
            product = existing.get(p["name"])
            if product is None:
                continue
            if product.stock == 0:
                inventory.restock(product, None, p["stock"])
                refilled += 1

            variants = {v.name: v for v in product.variants}
            for name, _, stock in p["variants"]:
                variant = variants.get(name)
                if variant is not None and variant.stock == 0:
                    inventory.restock(product, variant, stock)
                    refilled += 1

    logger.info(f"Catalog already seeded, refilled {refilled} sold-out items")


if __name__ == "__main__":
    seed()
