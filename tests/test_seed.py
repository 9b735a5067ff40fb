from sqlalchemy import func, select

from storefront.data.models import ProductModel, ProductVariantModel
from storefront.data.seed import PRODUCTS, seed


def by_name(session, name):
    return session.execute(select(ProductModel).where(ProductModel.name == name)).scalar_one()


def test_seed_creates_catalog_once(db, fresh):
    seed(db)
    seed(db)

    with fresh() as s:
        assert s.execute(select(func.count(ProductModel.id))).scalar_one() == len(PRODUCTS)
        assert len(by_name(s, "Keyboard").variants) == 2


def test_reseeding_refills_sold_out_items(db, fresh):
    seed(db)
    mouse = by_name(db, "Mouse")
    mouse.stock = 0
    layout = db.execute(
        select(ProductVariantModel).where(ProductVariantModel.name == "DE layout")
    ).scalar_one()
    layout.stock = 0
    monitor = by_name(db, "Monitor")
    monitor.stock = 3
    db.commit()

    seed(db)

    with fresh() as s:
        assert by_name(s, "Mouse").stock == 100
        assert s.get(ProductVariantModel, layout.id).stock == 5
        # only sold-out rows are touched
        assert by_name(s, "Monitor").stock == 3
