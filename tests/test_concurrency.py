import threading

import pytest
from sqlalchemy import func, select

from storefront.data.models import CartItemModel, CartModel, OrderModel, ProductModel
from storefront.data.models.cart import CART_ACTIVE
from storefront.domain.errors import InsufficientStock
from storefront.domain.schemas import PlaceOrderIn
from storefront.services.cart_service import CartService, Identity
from storefront.services.order_service import OrderService


def race(session_factory, work, runners=2):
    """Runs ``work(session, n)`` on parallel threads released together."""
    barrier = threading.Barrier(runners)
    results, errors = [], []

    def run(n):
        session = session_factory()
        try:
            barrier.wait()
            results.append(work(session, n))
        except Exception as e:
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=run, args=(n,)) for n in range(runners)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results, errors


def active_carts(session, user_id):
    stmt = select(CartModel.id).where(CartModel.user_id == user_id, CartModel.status == CART_ACTIVE)
    return session.execute(stmt).scalars().all()


@pytest.mark.concurrency
def test_two_buyers_race_for_the_last_unit(session_factory, fresh, make_product, shipping, assert_order_totals):
    product = make_product(stock=1)

    def buy(session, n):
        request = PlaceOrderIn(
            items=[{"product_id": product.id, "quantity": 1}],
            shipping=shipping,
            email=f"buyer{n}@shop.io",
        )
        return OrderService(session).place_order(request, Identity())

    placed, errors = race(session_factory, buy)

    assert len(placed) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], InsufficientStock)
    assert_order_totals(placed[0]["order_id"])
    with fresh() as s:
        assert s.get(ProductModel, product.id).stock == 0
        assert s.execute(select(func.count(OrderModel.id))).scalar_one() == 1


@pytest.mark.concurrency
def test_first_requests_share_one_active_cart(session_factory, fresh, make_user):
    user = make_user()

    carts, errors = race(session_factory, lambda s, n: CartService(s).get_cart(Identity(user_id=user.id)))

    assert errors == []
    assert carts[0]["id"] == carts[1]["id"]
    with fresh() as s:
        assert active_carts(s, user.id) == [carts[0]["id"]]


@pytest.mark.concurrency
def test_concurrent_adds_of_one_sku_share_a_line(session_factory, db, fresh, make_product, make_user):
    user = make_user()
    product = make_product(stock=10)
    CartService(db).get_cart(Identity(user_id=user.id))

    def add(session, n):
        return CartService(session).add_item(Identity(user_id=user.id), product.id, None, 1)

    _, errors = race(session_factory, add)

    assert errors == []
    with fresh() as s:
        stmt = select(CartItemModel.quantity).where(CartItemModel.product_id == product.id)
        assert s.execute(stmt).scalars().all() == [2]
        assert len(active_carts(s, user.id)) == 1
