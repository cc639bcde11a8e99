"""
Order placement and the order status workflow.

build_order() re-prices every line from the catalog, applies the shop-wide
minimum, the optional voucher and the shipping fee, and writes the order in
one transaction. Any failure rolls the whole session back: no order rows, no
voucher uses consumed, cart left untouched.

Status workflow:

    PENDING -> CONFIRMED -> PREPARING -> READY -> DELIVERED
       \\__________________________________________/
                         -> CANCELLED

DELIVERED and CANCELLED are terminal.
"""
from __future__ import annotations
import re
import secrets

from flask import current_app

from ..extensions import db
from ..errors import (
    BelowMinimumError,
    ForbiddenError,
    GuestNotAllowedError,
    InactiveItemError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..model import CartItem, Combo, Order, OrderItem, Product
from ..model.order import (
    CANCELLED,
    CONFIRMED,
    DELIVERED,
    PENDING,
    PREPARING,
    READY,
    STATUSES,
    TERMINAL_STATUSES,
)
from ..utils.dates import utcnow
from ..utils.api import paginate
from ..utils.decorators import is_admin
from ..utils.logger import get_logger
from ..utils.money import D, ZERO, round_money
from . import voucher_service

log = get_logger("orders")

PHONE_RE = re.compile(r"^(\+84|84|0)[35789][0-9]{8}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

FORWARD_FLOW = (PENDING, CONFIRMED, PREPARING, READY, DELIVERED)

_CATALOG = {"product": Product, "combo": Combo}


# ---- helpers ----------------------------------------------------------------

def generate_order_number(now=None) -> str:
    now = now or utcnow()
    return f"ORD-{now.strftime('%Y%m%d%H%M%S%f')}-{secrets.token_hex(2).upper()}"

def _clean(v):
    return (v or "").strip() if isinstance(v, str) or v is None else str(v).strip()

def validate_customer(info: dict | None, user=None) -> dict:
    """Name/phone/address are required; a logged-in user's profile fills the gaps."""
    info = info or {}
    if not isinstance(info, dict):
        raise ValidationError("customer info must be an object")
    customer = {
        "name": _clean(info.get("name")) or (user.name if user else ""),
        "phone": _clean(info.get("phone")) or (user.phone if user else ""),
        "email": _clean(info.get("email")) or ((user.email or "") if user else ""),
        "address": _clean(info.get("address")) or ((user.address or "") if user else ""),
        "notes": _clean(info.get("notes")) or None,
    }

    missing = [k for k in ("name", "phone", "address") if not customer[k]]
    if missing:
        raise ValidationError(f"customer {', '.join(missing)} required", fields=missing)
    if not PHONE_RE.match(customer["phone"]):
        raise ValidationError("invalid phone number", field="phone")
    if customer["email"] and not EMAIL_RE.match(customer["email"]):
        raise ValidationError("invalid email", field="email")
    customer["email"] = customer["email"] or None
    return customer

def parse_quantity(raw) -> int:
    if isinstance(raw, bool) or raw is None:
        raise ValidationError("invalid quantity")
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValidationError("invalid quantity")
        raw = int(raw)
    try:
        qty = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("invalid quantity")
    if qty < 1 or qty > max_quantity():
        raise ValidationError("invalid quantity")
    return qty

def max_quantity() -> int:
    return int(current_app.config.get("MAX_ITEM_QUANTITY", 1000))

def resolve_line(req: dict):
    """
    Validate one requested line against the catalog.
    Returns (kind, catalog_item, quantity); the price is read from the item.
    """
    if not isinstance(req, dict):
        raise ValidationError("invalid line item")
    kind = _clean(req.get("type")).lower()
    if kind not in _CATALOG:
        raise ValidationError("line item type must be 'product' or 'combo'")

    ref = req.get(f"{kind}_id", req.get("reference_id"))
    try:
        ref = int(ref)
    except (TypeError, ValueError):
        raise ValidationError(f"{kind}_id is required")

    qty = parse_quantity(req.get("quantity"))

    item = db.session.get(_CATALOG[kind], ref)
    if not item:
        raise NotFoundError(f"{kind} {ref} not found", type=kind, id=ref)
    if not item.is_active:
        raise InactiveItemError("item no longer available", type=kind, id=ref, name=item.name)
    return kind, item, qty


# ---- placement --------------------------------------------------------------

def build_order(customer_info, line_requests, voucher_code=None, user=None, *, now=None) -> Order:
    """
    Place an order as ``user`` (None = guest). Returns the committed Order.
    """
    cfg = current_app.config
    shipping_fee = round_money(D(cfg.get("SHIPPING_FEE", 0)))
    min_order = D(cfg.get("MIN_ORDER_AMOUNT", 0))
    voucher_code = voucher_service.normalize_code(voucher_code) or None

    try:
        customer = validate_customer(customer_info, user)

        if not line_requests or not isinstance(line_requests, list):
            raise ValidationError("order must contain at least one item")

        subtotal = ZERO
        lines = []
        for req in line_requests:
            kind, item, qty = resolve_line(req)
            unit_price = round_money(D(item.price))
            line_total = round_money(unit_price * qty)
            subtotal += line_total
            lines.append(OrderItem(
                product_id=item.id if kind == "product" else None,
                combo_id=item.id if kind == "combo" else None,
                name=item.name,
                unit_price=unit_price,
                quantity=qty,
                line_total=line_total,
            ))
        subtotal = round_money(subtotal)

        if subtotal < min_order:
            raise BelowMinimumError(min_order, message=f"order below minimum of {min_order:,.0f}")

        discount = round_money(ZERO)
        if voucher_code:
            if user is None:
                raise GuestNotAllowedError()
            quote = voucher_service.evaluate(voucher_code, subtotal, user.id, commit=True, now=now)
            discount = quote.discount

        # discount never exceeds the subtotal, so it never exceeds subtotal + shipping either
        total = round_money(max(ZERO, subtotal + shipping_fee - discount))

        order = Order(
            order_number=generate_order_number(now),
            status=PENDING,
            user_id=user.id if user else None,
            customer_name=customer["name"],
            customer_phone=customer["phone"],
            customer_email=customer["email"],
            customer_address=customer["address"],
            notes=customer["notes"],
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            discount=discount,
            total=total,
            voucher_code=voucher_code,
            items=lines,
        )
        db.session.add(order)

        if user is not None:
            CartItem.query.filter_by(user_id=user.id).delete(synchronize_session=False)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("order %s placed (%s, %d lines, total=%s, voucher=%s)",
             order.order_number, "guest" if user is None else f"user {user.id}",
             len(lines), order.total, order.voucher_code)
    return order


# ---- reads ------------------------------------------------------------------

def orders_query(actor, status=None):
    q = Order.query
    if not is_admin(actor):
        q = q.filter(Order.user_id == actor.id)
    if status:
        status = status.strip().upper()
        if status not in STATUSES:
            raise ValidationError(f"invalid status {status!r}")
        q = q.filter(Order.status == status)
    return q.order_by(Order.created_at.desc(), Order.id.desc())

def load_order(order_id) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("order not found", id=order_id)
    return order

def list_orders(actor, status=None, page=1, per_page=20) -> dict:
    return paginate(orders_query(actor, status), page, per_page, key="orders")

def get_order(actor, order_id) -> Order:
    order = load_order(order_id)
    if not is_admin(actor) and order.user_id != actor.id:
        raise ForbiddenError("you cannot access this order")
    return order


# ---- status workflow --------------------------------------------------------

def next_status(current: str) -> str | None:
    if current not in FORWARD_FLOW or current == DELIVERED:
        return None
    return FORWARD_FLOW[FORWARD_FLOW.index(current) + 1]

def check_transition(current: str, target: str) -> None:
    """Raise unless ``current -> target`` is a legal move."""
    if target not in STATUSES:
        raise ValidationError(f"invalid status {target!r}", allowed=list(STATUSES))
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(current, target, f"order is already {current}")
    if target == current:
        raise InvalidTransitionError(current, target, f"order is already {current}")
    if target == CANCELLED:
        return
    if target != next_status(current):
        raise InvalidTransitionError(current, target)

def transition(order: Order, new_status, actor) -> Order:
    """Admin-only status change along the forward flow (or to CANCELLED)."""
    if not is_admin(actor):
        raise ForbiddenError("only administrators can change order status")
    target = _clean(new_status).upper()
    check_transition(order.status, target)

    previous = order.status
    order.status = target
    db.session.commit()
    log.info("order %s: %s -> %s by admin %s", order.order_number, previous, target, actor.id)
    return order

def cancel(order: Order, actor) -> Order:
    """Admins cancel any open order; owners only while it is PENDING."""
    if is_admin(actor):
        check_transition(order.status, CANCELLED)
    else:
        if order.user_id is None or order.user_id != actor.id:
            raise ForbiddenError("you cannot cancel this order")
        if order.status != PENDING:
            raise ForbiddenError("only pending orders can be cancelled", status=order.status)

    previous = order.status
    order.status = CANCELLED
    db.session.commit()
    log.info("order %s: %s -> CANCELLED by %s %s",
             order.order_number, previous, actor.role, actor.id)
    return order
