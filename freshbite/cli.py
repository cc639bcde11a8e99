# freshbite/cli.py
from datetime import timedelta

import click
from werkzeug.security import generate_password_hash

from .extensions import db
from .model import Category, Combo, ComboItem, Product, User, Voucher
from .model.voucher import FIXED, PERCENTAGE
from .services import voucher_service
from .services.order_service import PHONE_RE
from .utils.dates import utcnow


@click.command("create-admin")
@click.option("--phone", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
def create_admin(phone, password, name):
    phone = phone.strip()
    if not PHONE_RE.match(phone):
        raise click.BadParameter("invalid phone number", param_hint="--phone")
    if User.query.filter_by(phone=phone).first():
        click.echo("Phone already exists"); return
    u = User(phone=phone, name=name, password_hash=generate_password_hash(password), role="admin")
    db.session.add(u); db.session.commit()
    click.echo(f"Admin created: {u.id} {u.phone}")

@click.command("grant-voucher")
@click.option("--code", required=True)
@click.option("--phone", required=True)
def grant_voucher(code, phone):
    v = voucher_service.find_voucher(code)
    if not v:
        raise click.ClickException(f"voucher {code} not found")
    u = User.query.filter_by(phone=phone.strip()).first()
    if not u:
        raise click.ClickException(f"user {phone} not found")
    _, created = voucher_service.grant_voucher(v, u)
    click.echo(f"Granted {v.code} to {u.phone}" if created else f"{u.phone} already holds {v.code}")


SEED_CATALOG = {
    "Salads": [("Garden Salad", 45000), ("Chicken Caesar", 65000)],
    "Rice Bowls": [("Grilled Pork Rice", 55000), ("Teriyaki Chicken Bowl", 60000)],
    "Drinks": [("Iced Tea", 15000), ("Fresh Orange Juice", 30000)],
}

def _seed_vouchers():
    now = utcnow()
    return [
        dict(code="SAVE20K", name="Save 20K", discount_kind=FIXED, discount_value=20000,
             min_order_amount=200000, usage_limit=100, per_user_limit=1),
        dict(code="WELCOME10", name="Welcome 10%", discount_kind=PERCENTAGE, discount_value=10,
             max_discount_amount=50000, per_user_limit=1),
        dict(code="VIP15", name="VIP 15%", discount_kind=PERCENTAGE, discount_value=15,
             max_discount_amount=100000,
             valid_from=now, valid_to=now + timedelta(days=90)),
    ]

@click.command("seed")
def seed():
    """Demo catalog, one combo and the sample vouchers (skips what exists)."""
    made = 0
    for cat_name, products in SEED_CATALOG.items():
        cat = Category.query.filter_by(name=cat_name).first()
        if not cat:
            cat = Category(name=cat_name, is_active=True)
            db.session.add(cat); db.session.flush(); made += 1
        for name, price in products:
            if not Product.query.filter_by(name=name).first():
                db.session.add(Product(name=name, price=price, category_id=cat.id, is_active=True)); made += 1
    db.session.flush()

    if not Combo.query.filter_by(name="Lunch Combo").first():
        salad = Product.query.filter_by(name="Chicken Caesar").first()
        drink = Product.query.filter_by(name="Iced Tea").first()
        combo = Combo(name="Lunch Combo", price=70000, original_price=80000, is_active=True,
                      category_id=salad.category_id,
                      items=[ComboItem(product_id=salad.id, quantity=1),
                             ComboItem(product_id=drink.id, quantity=1)])
        db.session.add(combo); made += 1
    db.session.commit()

    for payload in _seed_vouchers():
        if not voucher_service.find_voucher(payload["code"]):
            voucher_service.create_voucher(payload); made += 1

    click.echo(f"Seeded {made} rows")

def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(grant_voucher)
    app.cli.add_command(seed)
