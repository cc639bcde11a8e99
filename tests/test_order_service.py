"""Tests for order placement: pricing, minimum, vouchers, shipping and atomicity."""

from decimal import Decimal

import pytest

from freshbite.errors import (
    BelowMinimumError,
    GuestNotAllowedError,
    InactiveItemError,
    NotFoundError,
    PersonalLimitExhaustedError,
    ValidationError,
)
from freshbite.extensions import db
from freshbite.model import CartItem, Order, OrderItem, UserVoucher, Voucher
from freshbite.model.voucher import PERCENTAGE
from freshbite.services import order_service


def line(product=None, combo=None, quantity=1):
    if combo is not None:
        return {"type": "combo", "combo_id": combo.id, "quantity": quantity}
    return {"type": "product", "product_id": product.id, "quantity": quantity}


class TestTotals:

    def test_guest_order(self, customer_info, make_product):
        p = make_product(60000)
        order = order_service.build_order(customer_info, [line(p, quantity=2)])

        assert order.id is not None
        assert order.user_id is None
        assert order.status == "PENDING"
        assert order.subtotal == Decimal("120000.00")
        assert order.shipping_fee == Decimal("30000.00")
        assert order.discount == Decimal("0.00")
        assert order.total == Decimal("150000.00")
        assert order.order_number.startswith("ORD-")

    def test_client_price_ignored(self, customer_info, make_product):
        p = make_product(60000)
        req = line(p)
        req["unit_price"] = 1
        order = order_service.build_order(customer_info, [req])
        assert order.items[0].unit_price == Decimal("60000.00")

    def test_mixed_products_and_combos(self, customer_info, make_product, make_combo):
        p = make_product(45000)
        c = make_combo(price=120000)
        order = order_service.build_order(customer_info, [line(p, quantity=2), line(combo=c)])

        assert order.subtotal == Decimal("210000.00")
        kinds = sorted(i.as_api()["type"] for i in order.items)
        assert kinds == ["combo", "product"]

    def test_fixed_voucher_scenario(self, customer, customer_info, make_product, make_voucher, grant):
        p = make_product(125000)
        v = make_voucher(code="SAVE20K", value=20000, min_order_amount=Decimal("200000"))
        grant(customer, v)

        order = order_service.build_order(customer_info, [line(p, quantity=2)], "SAVE20K", user=customer)

        assert order.subtotal == Decimal("250000.00")
        assert order.discount == Decimal("20000.00")
        assert order.total == Decimal("260000.00")
        assert order.voucher_code == "SAVE20K"

    def test_percentage_voucher_capped(self, customer, customer_info, make_product, make_voucher, grant):
        p = make_product(500000)
        v = make_voucher(code="VIP15", kind=PERCENTAGE, value=15, max_discount_amount=Decimal("100000"))
        grant(customer, v)

        order = order_service.build_order(customer_info, [line(p, quantity=2)], "vip15", user=customer)

        assert order.discount == Decimal("100000.00")
        assert order.total == Decimal("930000.00")

    def test_total_never_negative(self, app, customer, customer_info, make_product, make_voucher, grant):
        app.config["SHIPPING_FEE"] = Decimal("0")
        p = make_product(60000)
        v = make_voucher(value=90000)
        grant(customer, v)

        order = order_service.build_order(customer_info, [line(p)], v.code, user=customer)
        assert order.discount == Decimal("60000.00")
        assert order.total == Decimal("0.00")

    def test_shipping_fee_from_config(self, app, customer_info, make_product):
        app.config["SHIPPING_FEE"] = Decimal("15000")
        p = make_product(60000)
        order = order_service.build_order(customer_info, [line(p)])
        assert order.shipping_fee == Decimal("15000.00")
        assert order.total == Decimal("75000.00")

    def test_order_numbers_unique(self, customer_info, make_product):
        p = make_product(60000)
        numbers = {order_service.build_order(customer_info, [line(p)]).order_number for _ in range(5)}
        assert len(numbers) == 5


class TestMinimumOrder:

    def test_below_minimum_rejected(self, customer_info, make_product):
        p = make_product(40000)
        with pytest.raises(BelowMinimumError) as exc:
            order_service.build_order(customer_info, [line(p)])
        assert exc.value.minimum == Decimal("50000")
        assert Order.query.count() == 0

    def test_below_minimum_wins_over_voucher(self, customer, customer_info, make_product, make_voucher, grant):
        p = make_product(40000)
        v = make_voucher()
        g = grant(customer, v)
        with pytest.raises(BelowMinimumError):
            order_service.build_order(customer_info, [line(p)], v.code, user=customer)
        assert db.session.get(UserVoucher, g.id).used_count == 0

    def test_exact_minimum_accepted(self, customer_info, make_product):
        p = make_product(50000)
        assert order_service.build_order(customer_info, [line(p)]).subtotal == Decimal("50000.00")


class TestLineValidation:

    @pytest.mark.parametrize("qty", [0, -1, 1.5, "two", None, True, 1001, 10**20, 1e20])
    def test_bad_quantity(self, customer_info, make_product, qty):
        p = make_product(60000)
        with pytest.raises(ValidationError, match="invalid quantity"):
            order_service.build_order(customer_info, [{"type": "product", "product_id": p.id, "quantity": qty}])

    def test_quantity_cap_from_config(self, app, customer_info, make_product):
        app.config["MAX_ITEM_QUANTITY"] = 5
        p = make_product(60000)
        assert order_service.build_order(customer_info, [line(p, quantity=5)]).items[0].quantity == 5
        with pytest.raises(ValidationError, match="invalid quantity"):
            order_service.build_order(customer_info, [line(p, quantity=6)])

    def test_unknown_type(self, customer_info, make_product):
        p = make_product(60000)
        with pytest.raises(ValidationError):
            order_service.build_order(customer_info, [{"type": "drink", "product_id": p.id, "quantity": 1}])

    def test_missing_item(self, customer_info):
        with pytest.raises(NotFoundError):
            order_service.build_order(customer_info, [{"type": "product", "product_id": 999, "quantity": 1}])

    def test_inactive_item(self, customer_info, make_product):
        p = make_product(60000, is_active=False)
        with pytest.raises(InactiveItemError, match="item no longer available"):
            order_service.build_order(customer_info, [line(p)])

    def test_empty_items(self, customer_info):
        with pytest.raises(ValidationError):
            order_service.build_order(customer_info, [])

    def test_failure_on_last_line_persists_nothing(self, customer_info, make_product):
        good = make_product(60000)
        inactive = make_product(60000, is_active=False)
        with pytest.raises(InactiveItemError):
            order_service.build_order(customer_info, [line(good), line(good, quantity=3), line(inactive)])
        assert Order.query.count() == 0
        assert OrderItem.query.count() == 0


class TestCustomerInfo:

    @pytest.mark.parametrize("phone", ["12345", "0123456789", "+1 555 0100", ""])
    def test_bad_phone(self, customer_info, make_product, phone):
        p = make_product(60000)
        with pytest.raises(ValidationError):
            order_service.build_order({**customer_info, "phone": phone}, [line(p)])

    @pytest.mark.parametrize("phone", ["0901234567", "+84901234567", "84381234567"])
    def test_good_phone(self, customer_info, make_product, phone):
        p = make_product(60000)
        order = order_service.build_order({**customer_info, "phone": phone}, [line(p)])
        assert order.customer_phone == phone

    def test_bad_email(self, customer_info, make_product):
        p = make_product(60000)
        with pytest.raises(ValidationError):
            order_service.build_order({**customer_info, "email": "not-an-email"}, [line(p)])

    def test_missing_address(self, customer_info, make_product):
        p = make_product(60000)
        with pytest.raises(ValidationError):
            order_service.build_order({**customer_info, "address": ""}, [line(p)])

    @pytest.mark.parametrize("info", ["bob", ["Nguyen Van A"], 42])
    def test_info_must_be_an_object(self, app, make_product, info):
        p = make_product(60000)
        with pytest.raises(ValidationError, match="customer info must be an object"):
            order_service.build_order(info, [line(p)])
        assert Order.query.count() == 0

    def test_user_profile_fills_gaps(self, make_user, make_product):
        user = make_user(phone="0911111111", email="me@example.com")
        p = make_product(60000)
        order = order_service.build_order({}, [line(p)], user=user)
        assert order.customer_phone == "0911111111"
        assert order.customer_email == "me@example.com"
        assert order.user_id == user.id


class TestVoucherAtCheckout:

    def test_guest_with_voucher_rejected(self, customer_info, make_product, make_voucher):
        p = make_product(60000)
        make_voucher(code="SAVE20K")
        with pytest.raises(GuestNotAllowedError):
            order_service.build_order(customer_info, [line(p)], "SAVE20K")
        assert Order.query.count() == 0

    @pytest.mark.parametrize("code", [42, ["SAVE20K"], {"code": "SAVE20K"}])
    def test_non_string_code_rejected(self, customer, customer_info, make_product, code):
        p = make_product(60000)
        with pytest.raises(ValidationError, match="voucher code must be a string"):
            order_service.build_order(customer_info, [line(p)], code, user=customer)
        assert Order.query.count() == 0

    def test_counters_incremented_once(self, customer, customer_info, make_product, make_voucher, grant):
        p = make_product(60000)
        v = make_voucher(usage_limit=10, per_user_limit=3)
        g = grant(customer, v)
        order_service.build_order(customer_info, [line(p)], v.code, user=customer)
        assert db.session.get(Voucher, v.id).used_count == 1
        assert db.session.get(UserVoucher, g.id).used_count == 1

    def test_personal_limit_blocks_second_order(self, customer, customer_info, make_product, make_voucher, grant):
        p = make_product(60000)
        v = make_voucher(per_user_limit=1)
        grant(customer, v)
        order_service.build_order(customer_info, [line(p)], v.code, user=customer)
        with pytest.raises(PersonalLimitExhaustedError):
            order_service.build_order(customer_info, [line(p)], v.code, user=customer)
        assert Order.query.count() == 1

    def test_late_failure_rolls_back_counters(self, monkeypatch, customer, customer_info,
                                              make_product, make_voucher, grant):
        p = make_product(60000)
        v = make_voucher(usage_limit=10, per_user_limit=3)
        g = grant(customer, v)
        db.session.add(CartItem(user_id=customer.id, product_id=p.id, quantity=1, unit_price=p.price))
        db.session.commit()

        def boom(now=None):
            raise RuntimeError("order number service down")
        monkeypatch.setattr(order_service, "generate_order_number", boom)

        with pytest.raises(RuntimeError):
            order_service.build_order(customer_info, [line(p)], v.code, user=customer)

        assert db.session.get(Voucher, v.id).used_count == 0
        assert db.session.get(UserVoucher, g.id).used_count == 0
        assert Order.query.count() == 0
        assert CartItem.query.filter_by(user_id=customer.id).count() == 1


class TestCart:

    def test_cart_cleared_after_order(self, customer, customer_info, make_product):
        p = make_product(60000)
        db.session.add(CartItem(user_id=customer.id, product_id=p.id, quantity=2, unit_price=p.price))
        db.session.commit()
        order_service.build_order(customer_info, [line(p, quantity=2)], user=customer)
        assert CartItem.query.filter_by(user_id=customer.id).count() == 0

    def test_failed_order_keeps_cart(self, customer, customer_info, make_product):
        p = make_product(40000)
        db.session.add(CartItem(user_id=customer.id, product_id=p.id, quantity=1, unit_price=p.price))
        db.session.commit()
        with pytest.raises(BelowMinimumError):
            order_service.build_order(customer_info, [line(p)], user=customer)
        assert CartItem.query.filter_by(user_id=customer.id).count() == 1
