# freshbite/order/routes.py
from flask import request

from . import bp
from ..services import order_service
from ..utils.api import ok
from ..utils.decorators import current_user, login_required, optional_user


def _place(user):
    """
    Body:
      {
        "customer": {"name", "phone", "email", "address", "notes"},
        "items": [{"type": "product", "product_id": 1, "quantity": 2},
                  {"type": "combo", "combo_id": 3, "quantity": 1}],
        "voucher_code": "SAVE20K"
      }
    Client prices are ignored; the catalog is the source of truth.
    """
    data = request.get_json(silent=True) or {}
    order = order_service.build_order(
        data.get("customer") or data.get("customer_info"),
        data.get("items"),
        voucher_code=data.get("voucher_code"),
        user=user,
    )
    return ok("Order placed", {"order": order.as_api()}, status=201)

@bp.post("")
def place_order():
    return _place(optional_user())

@bp.post("/guest")
def place_guest_order():
    return _place(None)

@bp.get("")
@login_required
def list_orders():
    """
    Query params:
      - status=PENDING|CONFIRMED|PREPARING|READY|DELIVERED|CANCELLED
      - page, per_page
    Admins see every order; customers only their own.
    """
    data = order_service.list_orders(
        current_user(),
        status=request.args.get("status"),
        page=request.args.get("page"),
        per_page=request.args.get("per_page", 20),
    )
    return ok("orders", data)

@bp.get("/<int:order_id>")
@login_required
def get_order(order_id: int):
    order = order_service.get_order(current_user(), order_id)
    return ok("order", {"order": order.as_api()})

@bp.put("/<int:order_id>/status")
@login_required
def update_status(order_id: int):
    """Body: { "status": "CONFIRMED" } (admin only)"""
    actor = current_user()
    data = request.get_json(silent=True) or {}
    order = order_service.transition(order_service.load_order(order_id), data.get("status"), actor)
    return ok("Order status updated", {"order": order.as_api()})

@bp.delete("/<int:order_id>")
@login_required
def cancel_order(order_id: int):
    order = order_service.cancel(order_service.load_order(order_id), current_user())
    return ok("Order cancelled", {"order": order.as_api()})
