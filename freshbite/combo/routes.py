from flask import request
from sqlalchemy import desc, or_

from . import bp
from ..errors import ValidationError
from ..extensions import db
from ..model import Combo
from ..services import catalog_service
from ..utils.api import ok, paginate, parse_bool, to_int
from ..utils.decorators import is_admin, optional_user, role_required


def _apply(combo: Combo, data: dict, creating: bool):
    if creating or "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required")
        combo.name = name
    if "description" in data:
        combo.description = data.get("description")
    if creating or "price" in data:
        combo.price = catalog_service.parse_price(data.get("price"))
    if "original_price" in data:
        combo.original_price = catalog_service.parse_price(data.get("original_price"), "original_price", required=False)
    if creating or "category_id" in data:
        combo.category_id = catalog_service.require_category(data.get("category_id")).id
    if "is_active" in data:
        combo.is_active = parse_bool(data.get("is_active"))
    if creating or "items" in data:
        catalog_service.set_combo_items(combo, data.get("items"))
    if "images" in data:
        catalog_service.set_combo_images(combo, data.get("images"))


@bp.get("")
def list_combos():
    search = (request.args.get("search") or "").strip()
    category_id = to_int(request.args.get("category_id"))

    query = Combo.query
    if not (parse_bool(request.args.get("include_inactive")) and is_admin(optional_user())):
        query = query.filter(Combo.is_active.is_(True))
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Combo.name.ilike(like), Combo.description.ilike(like)))
    if category_id is not None:
        query = query.filter(Combo.category_id == category_id)

    query = query.order_by(desc(Combo.id))
    data = paginate(query, request.args.get("page"), request.args.get("per_page"), key="combos")
    return ok("Combos fetched", data)

@bp.get("/<int:combo_id>")
def get_combo(combo_id):
    combo = catalog_service.get_or_404(Combo, combo_id, "combo")
    return ok("Combo fetched", combo.as_api())

@bp.post("")
@role_required("admin")
def create_combo():
    data = request.get_json(silent=True) or {}
    combo = Combo(is_active=parse_bool(data.get("is_active"), True))
    _apply(combo, data, creating=True)
    db.session.add(combo)
    db.session.commit()
    return ok("Combo created", combo.as_api(), status=201)

@bp.put("/<int:combo_id>")
@role_required("admin")
def update_combo(combo_id):
    combo = catalog_service.get_or_404(Combo, combo_id, "combo")
    _apply(combo, request.get_json(silent=True) or {}, creating=False)
    db.session.commit()
    return ok("Combo updated", combo.as_api())

@bp.delete("/<int:combo_id>")
@role_required("admin")
def delete_combo(combo_id):
    combo = catalog_service.get_or_404(Combo, combo_id, "combo")
    catalog_service.delete_combo(combo)
    return ok(f"Combo {combo_id} deleted", {"id": combo_id})
