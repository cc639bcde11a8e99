from ..extensions import db
from ..errors import InactiveItemError, NotFoundError, ValidationError
from ..model import CartItem, Combo, Product
from ..model.cart import cart_subtotal
from ..utils.money import round_money, D
from .order_service import max_quantity, parse_quantity


def cart_items(user_id):
    return (CartItem.query
            .filter_by(user_id=user_id)
            .order_by(CartItem.created_at.asc(), CartItem.id.asc())
            .all())

def cart_summary(user_id) -> dict:
    items = cart_items(user_id)
    return {
        "items": [i.as_api() for i in items],
        "subtotal": float(cart_subtotal(items)),
        "item_count": sum(i.quantity for i in items),
    }

def _resolve(data: dict):
    pid, cid = data.get("product_id"), data.get("combo_id")
    if bool(pid) == bool(cid):
        raise ValidationError("exactly one of product_id or combo_id is required")
    model, ref, kind = (Product, pid, "product") if pid else (Combo, cid, "combo")
    try:
        ref = int(ref)
    except (TypeError, ValueError):
        raise ValidationError(f"invalid {kind}_id")
    item = db.session.get(model, ref)
    if not item:
        raise NotFoundError(f"{kind} {ref} not found", type=kind, id=ref)
    if not item.is_active:
        raise InactiveItemError("item no longer available", type=kind, id=ref, name=item.name)
    return kind, item

def add_item(user_id, data: dict) -> CartItem:
    """Add a product or combo; an existing line for the same item grows instead."""
    kind, item = _resolve(data)
    qty = parse_quantity(data.get("quantity", 1))

    key = {"product_id": item.id} if kind == "product" else {"combo_id": item.id}
    line = CartItem.query.filter_by(user_id=user_id, **key).first()
    if line:
        if line.quantity + qty > max_quantity():
            raise ValidationError("invalid quantity")
        line.quantity += qty
    else:
        line = CartItem(user_id=user_id, quantity=qty, **key)
        db.session.add(line)
    line.unit_price = round_money(D(item.price))
    db.session.commit()
    return line

def get_line(user_id, item_id) -> CartItem:
    line = db.session.get(CartItem, item_id)
    # another customer's line looks the same as a missing one
    if not line or line.user_id != user_id:
        raise NotFoundError("cart item not found", id=item_id)
    return line

def set_quantity(user_id, item_id, quantity) -> CartItem:
    line = get_line(user_id, item_id)
    line.quantity = parse_quantity(quantity)
    db.session.commit()
    return line

def remove_item(user_id, item_id) -> None:
    line = get_line(user_id, item_id)
    db.session.delete(line)
    db.session.commit()

def clear(user_id) -> int:
    n = CartItem.query.filter_by(user_id=user_id).delete(synchronize_session=False)
    db.session.commit()
    return n
