# --- category/routes.py ---
from flask import request
from sqlalchemy import desc, func

from . import bp
from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..model import Category
from ..services import catalog_service
from ..utils.api import ok, paginate, parse_bool
from ..utils.decorators import is_admin, optional_user, role_required


def _name_taken(name, exclude_id=None):
    q = Category.query.filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    return q.first() is not None

# ------------------------ CATEGORY ROUTES ------------------------

@bp.get("")
def list_categories():
    """
    search           -> substring match on name
    sort             -> name, -name, id, -id
    include_inactive -> admins only
    page / per_page  -> default 1 / 10 (cap 100)
    """
    search = (request.args.get("search") or request.args.get("q") or "").strip()
    sort = (request.args.get("sort") or "name").strip()

    qry = Category.query
    if not (parse_bool(request.args.get("include_inactive")) and is_admin(optional_user())):
        qry = qry.filter(Category.is_active.is_(True))
    if search:
        qry = qry.filter(Category.name.ilike(f"%{search}%"))

    sort_map = {
        "id": Category.id,
        "-id": desc(Category.id),
        "name": Category.name,
        "-name": desc(Category.name),
    }
    qry = qry.order_by(sort_map.get(sort, Category.name))
    data = paginate(qry, request.args.get("page"), request.args.get("per_page"),
                    key="categories", serialize=lambda c: c.as_dict())
    return ok("Categories fetched", data)

@bp.get("/<int:cid>")
def get_category(cid):
    c = catalog_service.get_or_404(Category, cid, "category")
    return ok("Category fetched", {"category": c.as_dict()})

@bp.post("")
@role_required("admin")
def create_category():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name required")
    if _name_taken(name):
        raise ConflictError("category name already exists")
    c = Category(
        name=name,
        description=data.get("description"),
        image=data.get("image"),
        is_active=parse_bool(data.get("is_active"), True),
    )
    db.session.add(c)
    db.session.commit()
    return ok("Category created", {"category": c.as_dict()}, status=201)

@bp.put("/<int:cid>")
@role_required("admin")
def update_category(cid):
    c = catalog_service.get_or_404(Category, cid, "category")
    data = request.get_json(silent=True) or {}
    if "name" in data:
        new_name = (data.get("name") or "").strip()
        if not new_name:
            raise ValidationError("name cannot be empty")
        if _name_taken(new_name, exclude_id=c.id):
            raise ConflictError("category name already exists")
        c.name = new_name
    for field in ("description", "image"):
        if field in data:
            setattr(c, field, data.get(field))
    if "is_active" in data:
        c.is_active = parse_bool(data.get("is_active"))
    db.session.commit()
    return ok("Category updated", {"category": c.as_dict()})

@bp.delete("/<int:cid>")
@role_required("admin")
def delete_category(cid):
    c = catalog_service.get_or_404(Category, cid, "category")
    catalog_service.delete_category(c)
    return ok("Category deleted", {"id": cid})
