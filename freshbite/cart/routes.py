# freshbite/cart/routes.py
from flask import request

from . import bp
from ..services import cart_service
from ..utils.api import ok
from ..utils.decorators import current_user, login_required


@bp.get("")
@login_required
def get_cart():
    return ok("cart", cart_service.cart_summary(current_user().id))

@bp.post("")
@login_required
def add_to_cart():
    """
    Body: { "product_id": 1 } or { "combo_id": 2 }, optional "quantity" (default 1)
    """
    user = current_user()
    data = request.get_json(silent=True) or {}
    line = cart_service.add_item(user.id, data)
    return ok("item added", {"item": line.as_api(), **cart_service.cart_summary(user.id)}, status=201)

@bp.put("/<int:item_id>")
@login_required
def update_cart_item(item_id):
    user = current_user()
    data = request.get_json(silent=True) or {}
    line = cart_service.set_quantity(user.id, item_id, data.get("quantity"))
    return ok("item updated", {"item": line.as_api(), **cart_service.cart_summary(user.id)})

@bp.delete("/<int:item_id>")
@login_required
def remove_cart_item(item_id):
    user = current_user()
    cart_service.remove_item(user.id, item_id)
    return ok("item removed", cart_service.cart_summary(user.id))

@bp.delete("")
@login_required
def clear_cart():
    user = current_user()
    removed = cart_service.clear(user.id)
    return ok("cart cleared", {"removed": removed, **cart_service.cart_summary(user.id)})
