from datetime import timedelta

from flask import request
from sqlalchemy import func, or_

from . import bp
from ..errors import ValidationError
from ..extensions import db
from ..model import Category, Order, OrderItem, Product, User
from ..model.order import CANCELLED, STATUSES
from ..utils.api import ok, paginate
from ..utils.dates import utcnow
from ..utils.decorators import role_required

PERIODS = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
}


@bp.get("/dashboard")
@role_required("admin")
def dashboard():
    period = (request.args.get("period") or "30d").strip()
    if period not in PERIODS:
        raise ValidationError("period must be one of 7d, 30d, 90d, 1y")
    since = utcnow() - PERIODS[period]

    in_period = (Order.created_at >= since, Order.status != CANCELLED)
    order_count, revenue = (db.session.query(func.count(Order.id), func.coalesce(func.sum(Order.total), 0))
                            .filter(*in_period)
                            .one())

    by_status = dict.fromkeys(STATUSES, 0)
    for status, n in (db.session.query(Order.status, func.count(Order.id))
                      .filter(Order.created_at >= since)
                      .group_by(Order.status)):
        by_status[status] = n

    qty = func.sum(OrderItem.quantity)
    top_products = [
        {"product_id": pid, "name": name, "quantity": int(q or 0), "revenue": float(rev or 0)}
        for pid, name, q, rev in (
            db.session.query(OrderItem.product_id, OrderItem.name, qty, func.sum(OrderItem.line_total))
            .join(Order, Order.id == OrderItem.order_id)
            .filter(OrderItem.product_id.isnot(None), *in_period)
            .group_by(OrderItem.product_id, OrderItem.name)
            .order_by(qty.desc())
            .limit(5)
        )
    ]

    recent = Order.query.order_by(Order.created_at.desc(), Order.id.desc()).limit(10).all()

    return ok("Dashboard", {
        "period": period,
        "totals": {
            "customers": User.query.filter_by(role="customer").count(),
            "products": Product.query.filter(Product.is_active.is_(True)).count(),
            "categories": Category.query.filter(Category.is_active.is_(True)).count(),
            "orders": int(order_count or 0),
            "revenue": float(revenue or 0),
        },
        "orders_by_status": by_status,
        "top_products": top_products,
        "recent_orders": [o.as_api() for o in recent],
    })

@bp.get("/users")
@role_required("admin")
def list_users():
    q = User.query
    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(or_(User.name.ilike(like), User.email.ilike(like), User.phone.ilike(like)))
    role = (request.args.get("role") or "").strip().lower()
    if role:
        q = q.filter(User.role == role)

    q = q.order_by(User.id.asc())
    data = paginate(q, request.args.get("page"), request.args.get("per_page"),
                    key="users", serialize=lambda u: u.as_dict())
    return ok("OK", data)
