"""Pytest fixtures for FreshBite tests."""

from datetime import timedelta
from decimal import Decimal
from itertools import count

import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from freshbite import create_app
from freshbite.config import TestConfig
from freshbite.extensions import db
from freshbite.model import Category, Combo, ComboItem, Order, OrderItem, Product, User, UserVoucher, Voucher
from freshbite.model.voucher import FIXED
from freshbite.services.order_service import generate_order_number
from freshbite.utils.dates import utcnow

_seq = count(1)


@pytest.fixture
def app():
    """App on a fresh in-memory database, with an app context pushed."""
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(role="customer", name=None, phone=None, password="secret123", **kw):
        n = next(_seq)
        user = User(
            name=name or f"User {n}",
            phone=phone or f"09{n:08d}",
            password_hash=generate_password_hash(password),
            role=role,
            address=kw.pop("address", "1 Le Loi, District 1"),
            **kw,
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def customer(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", name="Admin")


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def category(app):
    cat = Category(name="Mains", is_active=True)
    db.session.add(cat)
    db.session.commit()
    return cat


@pytest.fixture
def make_product(category):
    def _make(price=100000, name=None, is_active=True, category_id=None):
        p = Product(
            name=name or f"Product {next(_seq)}",
            price=Decimal(str(price)),
            is_active=is_active,
            category_id=category_id or category.id,
        )
        db.session.add(p)
        db.session.commit()
        return p
    return _make


@pytest.fixture
def make_combo(category, make_product):
    def _make(price=120000, original_price=150000, products=None, is_active=True):
        products = products or [make_product(60000), make_product(90000)]
        c = Combo(
            name=f"Combo {next(_seq)}",
            price=Decimal(str(price)),
            original_price=Decimal(str(original_price)) if original_price else None,
            is_active=is_active,
            category_id=category.id,
            items=[ComboItem(product_id=p.id, quantity=1) for p in products],
        )
        db.session.add(c)
        db.session.commit()
        return c
    return _make


@pytest.fixture
def make_voucher(app):
    def _make(code=None, kind=FIXED, value=20000, **kw):
        now = utcnow()
        v = Voucher(
            code=(code or f"V{next(_seq)}").upper(),
            name=kw.pop("name", "Test voucher"),
            discount_kind=kind,
            discount_value=Decimal(str(value)),
            valid_from=kw.pop("valid_from", now - timedelta(days=1)),
            valid_to=kw.pop("valid_to", now + timedelta(days=30)),
            is_active=kw.pop("is_active", True),
            used_count=kw.pop("used_count", 0),
            **kw,
        )
        db.session.add(v)
        db.session.commit()
        return v
    return _make


@pytest.fixture
def grant(app):
    def _grant(user, voucher, used_count=0):
        g = UserVoucher(user_id=user.id, voucher_id=voucher.id, used_count=used_count)
        db.session.add(g)
        db.session.commit()
        return g
    return _grant


@pytest.fixture
def customer_info(app):
    return {
        "name": "Nguyen Van A",
        "phone": "0901234567",
        "email": "a@example.com",
        "address": "12 Nguyen Hue, District 1",
    }


@pytest.fixture
def make_order(customer_info):
    """Persist an order directly in the given status (bypasses placement)."""
    def _make(user=None, status="PENDING", product=None, quantity=1):
        price = Decimal(product.price) if product else Decimal("60000")
        o = Order(
            order_number=generate_order_number(),
            status=status,
            user_id=user.id if user else None,
            customer_name=customer_info["name"],
            customer_phone=customer_info["phone"],
            customer_address=customer_info["address"],
            subtotal=price * quantity,
            shipping_fee=Decimal("30000"),
            discount=Decimal("0"),
            total=price * quantity + Decimal("30000"),
        )
        if product:
            o.items = [OrderItem(product_id=product.id, name=product.name, unit_price=price,
                                 quantity=quantity, line_total=price * quantity)]
        db.session.add(o)
        db.session.commit()
        return o
    return _make

