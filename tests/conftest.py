import os

# must be set before storefront.utils.settings is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["DISCOUNT_CODES"] = "WELCOME10:10"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from storefront.data.database import Base, get_db, make_engine
from storefront.data.models import OrderModel, ProductModel, ProductVariantModel, UserModel
from storefront.domain.pricing import money
from storefront.main import create_app
from storefront.utils.security import create_access_token, hash_password
from storefront.utils.settings import LOYALTY_POINT_VALUE


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'storefront.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fresh(session_factory):
    """Reads committed state through a brand new session."""

    def _open():
        return session_factory()

    return _open


@pytest.fixture
def client(session_factory):
    app = create_app(with_lifespan=False)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def make_product(db):
    def _make(name="Product", price="100.00", stock=5, variants=()):
        product = ProductModel(name=name, price=Decimal(price), stock=stock, sales_count=0)
        for v_name, extra, v_stock in variants:
            product.variants.append(
                ProductVariantModel(name=v_name, additional_price=Decimal(extra), stock=v_stock)
            )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def make_user(db):
    def _make(email="shopper@shop.io", role="customer", loyalty_points=0, name="Shopper"):
        user = UserModel(
            email=email,
            name=name,
            password_hash=hash_password("secret"),
            role=role,
            loyalty_points=loyalty_points,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def auth_header():
    def _header(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return _header


SHIPPING = {
    "name": "Jane Doe",
    "address": "1 Main St",
    "city": "Hanoi",
    "state": "HN",
    "postal_code": "100000",
    "phone": "+84123456",
}


@pytest.fixture
def shipping():
    return dict(SHIPPING)


@pytest.fixture
def assert_order_totals(fresh):
    """Recomputes the persisted order arithmetic line by line."""

    def _check(order_id):
        with fresh() as s:
            order = s.get(OrderModel, order_id)
            assert order.items
            for item in order.items:
                assert item.total_price == item.unit_price * item.quantity
            assert order.subtotal == sum((i.total_price for i in order.items), Decimal("0.00"))
            assert order.total_items == sum(i.quantity for i in order.items)

            loyalty_value = money(order.loyalty_points_used * LOYALTY_POINT_VALUE)
            assert order.total_amount == (
                order.subtotal + order.shipping_fee + order.tax - order.discount_amount - loyalty_value
            )
            return order

    return _check
