from decimal import Decimal

import pytest
from sqlalchemy import func, select

from storefront.data.models import (
    CartModel,
    OrderModel,
    OrderStatusModel,
    ProductModel,
    ProductVariantModel,
    UserModel,
)
from storefront.data.models.cart import CART_CONVERTED
from storefront.domain.errors import (
    AccountExists,
    InsufficientStock,
    ProductNotFound,
    ValidationError,
    VariantNotFound,
)
from storefront.domain.schemas import PlaceOrderIn
from storefront.services import notification_service
from storefront.services.cart_service import CartService, Identity
from storefront.services.order_service import OrderService


def order_count(session):
    return session.execute(select(func.count(OrderModel.id))).scalar_one()


def payload(shipping, items, **extra):
    extra.setdefault("email", "guest@shop.io")
    return PlaceOrderIn(items=items, shipping=shipping, **extra)


def test_successful_order_decrements_stock(db, fresh, make_product, shipping, assert_order_totals):
    product = make_product(stock=5)

    placed = OrderService(db).place_order(
        payload(shipping, [{"product_id": product.id, "quantity": 2}]), Identity()
    )

    assert placed["status"] == "pending"
    assert placed["order_number"].startswith("ORD-")
    assert_order_totals(placed["order_id"])
    with fresh() as s:
        assert s.get(ProductModel, product.id).stock == 3
        assert s.get(ProductModel, product.id).sales_count == 2
        history = s.execute(
            select(OrderStatusModel).where(OrderStatusModel.order_id == placed["order_id"])
        ).scalars().all()
        assert [h.status for h in history] == ["pending"]


def test_insufficient_stock_creates_nothing(db, fresh, make_product, shipping):
    product = make_product(stock=1)

    with pytest.raises(InsufficientStock):
        OrderService(db).place_order(
            payload(shipping, [{"product_id": product.id, "quantity": 2}]), Identity()
        )

    with fresh() as s:
        assert order_count(s) == 0
        assert s.get(ProductModel, product.id).stock == 1


def test_later_line_failure_rolls_back_earlier_decrements(db, fresh, make_product, shipping):
    a = make_product(name="A", stock=5)
    b = make_product(name="B", stock=0)

    with pytest.raises(InsufficientStock):
        OrderService(db).place_order(
            payload(shipping, [
                {"product_id": a.id, "quantity": 2},
                {"product_id": b.id, "quantity": 1},
            ]),
            Identity(),
        )

    with fresh() as s:
        assert s.get(ProductModel, a.id).stock == 5
        assert s.get(ProductModel, a.id).sales_count == 0
        assert order_count(s) == 0


def test_mixed_product_and_variant_lines(db, fresh, make_product, shipping, assert_order_totals):
    a = make_product(name="A", price="100.00", stock=5)
    b = make_product(name="B", price="50.00", stock=9, variants=[("X", "10.00", 3)])
    x = b.variants[0]

    placed = OrderService(db).place_order(
        payload(shipping, [
            {"product_id": a.id, "quantity": 2},
            {"product_id": b.id, "variant_id": x.id, "quantity": 1},
        ]),
        Identity(),
    )

    assert [i["total_price"] for i in placed["items"]] == [Decimal("200.00"), Decimal("60.00")]
    assert placed["items"][1]["variant_name"] == "X"
    # 260 + 10 shipping + 26 tax
    assert placed["total_amount"] == Decimal("296.00")
    with fresh() as s:
        assert s.get(ProductModel, a.id).stock == 3
        assert s.get(ProductVariantModel, x.id).stock == 2
        assert s.get(ProductModel, b.id).stock == 9
    order = assert_order_totals(placed["order_id"])
    assert order.subtotal == Decimal("260.00")
    assert order.total_items == 3


def test_variant_of_another_product_is_rejected(db, fresh, make_product, shipping):
    a = make_product(name="A", stock=5, variants=[("Red", "0", 5)])
    b = make_product(name="B", stock=5)

    with pytest.raises(VariantNotFound):
        OrderService(db).place_order(
            payload(shipping, [{"product_id": b.id, "variant_id": a.variants[0].id, "quantity": 1}]),
            Identity(),
        )

    with fresh() as s:
        assert s.get(ProductVariantModel, a.variants[0].id).stock == 5
        assert s.get(ProductModel, b.id).stock == 5
        assert order_count(s) == 0


def test_unknown_product(db, shipping):
    with pytest.raises(ProductNotFound):
        OrderService(db).place_order(payload(shipping, [{"product_id": 404, "quantity": 1}]), Identity())


def test_missing_shipping_fields_are_listed(db, make_product, shipping):
    product = make_product()
    shipping.pop("city")
    shipping["phone"] = "  "

    with pytest.raises(ValidationError) as exc:
        OrderService(db).place_order(payload(shipping, [{"product_id": product.id, "quantity": 1}]), Identity())

    assert exc.value.extra["missing"] == ["city", "phone"]


def test_empty_order_is_rejected(db, shipping):
    with pytest.raises(ValidationError):
        OrderService(db).place_order(payload(shipping, []), Identity(guest_id="nothing-here"))


def test_email_is_required_for_guests(db, make_product, shipping):
    product = make_product()
    with pytest.raises(ValidationError):
        OrderService(db).place_order(
            payload(shipping, [{"product_id": product.id, "quantity": 1}], email=None), Identity()
        )


def test_checkout_from_guest_cart_converts_it(db, fresh, make_product, shipping, assert_order_totals):
    product = make_product(stock=4)
    identity = Identity(guest_id="g")
    cart = CartService(db).add_item(identity, product.id, None, 3)

    placed = OrderService(db).place_order(payload(shipping, []), identity)

    assert placed["items"][0]["quantity"] == 3
    assert_order_totals(placed["order_id"])
    with fresh() as s:
        assert s.get(CartModel, cart["id"]).status == CART_CONVERTED
        assert s.get(ProductModel, product.id).stock == 1


def test_guest_can_open_an_account_at_checkout(db, fresh, make_product, shipping, assert_order_totals):
    product = make_product()

    placed = OrderService(db).place_order(
        payload(shipping, [{"product_id": product.id, "quantity": 1}], email="new@shop.io", create_account=True),
        Identity(),
    )

    assert placed["new_account"]["email"] == "new@shop.io"
    assert placed["new_account"]["token"]
    assert_order_totals(placed["order_id"])
    with fresh() as s:
        user = s.execute(select(UserModel).where(UserModel.email == "new@shop.io")).scalar_one()
        assert user.name == shipping["name"]
        assert len(user.addresses) == 1
        assert s.get(OrderModel, placed["order_id"]).user_id == user.id


def test_existing_email_cannot_open_an_account(db, fresh, make_product, make_user, shipping):
    make_user(email="taken@shop.io")
    product = make_product(stock=2)

    with pytest.raises(AccountExists):
        OrderService(db).place_order(
            payload(shipping, [{"product_id": product.id, "quantity": 1}], email="taken@shop.io", create_account=True),
            Identity(),
        )

    with fresh() as s:
        assert s.get(ProductModel, product.id).stock == 2


def test_loyalty_points_are_spent_and_earned(db, fresh, make_product, make_user, shipping, assert_order_totals):
    user = make_user(loyalty_points=500)
    product = make_product(price="100.00")

    placed = OrderService(db).place_order(
        payload(shipping, [{"product_id": product.id, "quantity": 1}], email=None, loyalty_points=500),
        Identity(user_id=user.id),
    )

    # 100 + 10 + 10 - 5
    assert placed["total_amount"] == Decimal("115.00")
    assert assert_order_totals(placed["order_id"]).loyalty_points_used == 500
    with fresh() as s:
        # 500 - 500 + floor(0.1 * 95)
        assert s.get(UserModel, user.id).loyalty_points == 9


def test_discount_code(db, make_product, shipping, assert_order_totals):
    product = make_product(price="100.00")

    placed = OrderService(db).place_order(
        payload(shipping, [{"product_id": product.id, "quantity": 1}], discount_code="WELCOME10"),
        Identity(),
    )

    assert placed["total_amount"] == Decimal("110.00")
    assert assert_order_totals(placed["order_id"]).discount_amount == Decimal("10.00")


def test_failed_notification_does_not_affect_the_order(db, fresh, make_product, shipping, monkeypatch, assert_order_totals):
    product = make_product(stock=2)

    def broken(*args, **kwargs):
        raise ConnectionError("broker down")

    monkeypatch.setattr(notification_service.send_order_confirmation_task, "delay", broken)

    placed = OrderService(db).place_order(
        payload(shipping, [{"product_id": product.id, "quantity": 1}]), Identity()
    )

    assert_order_totals(placed["order_id"])
    with fresh() as s:
        assert s.get(OrderModel, placed["order_id"]).status == "pending"
        assert s.get(ProductModel, product.id).stock == 1


def test_order_reads_are_owner_only(db, make_product, make_user, shipping, assert_order_totals):
    from storefront.domain.errors import Forbidden, OrderNotFound

    owner = make_user(email="owner@shop.io")
    other = make_user(email="other@shop.io")
    product = make_product()
    service = OrderService(db)
    placed = service.place_order(
        payload(shipping, [{"product_id": product.id, "quantity": 1}], email=None),
        Identity(user_id=owner.id),
    )
    assert_order_totals(placed["order_id"])

    assert service.get_order(placed["order_id"], owner.id).id == placed["order_id"]
    assert service.get_order(placed["order_id"], other.id, is_admin=True)
    with pytest.raises(Forbidden):
        service.get_order(placed["order_id"], other.id)
    with pytest.raises(OrderNotFound):
        service.get_order(12345, owner.id)
    assert [o.id for o in service.list_user_orders(owner.id)] == [placed["order_id"]]
