from flask import request, send_file, url_for
from sqlalchemy import asc, desc, or_

from . import bp
from ..errors import ValidationError
from ..extensions import db
from ..model import Product
from ..services import catalog_service, review_service
from ..utils.api import ok, paginate, parse_bool, to_int
from ..utils.decorators import is_admin, optional_user, role_required

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# ---------- helpers ----------
def _ep(name: str) -> str:
    return f"{bp.name}.{name}"

def _sort_products(query, sort):
    sort = (sort or "").strip()
    mapping = {
        "id": asc(Product.id), "-id": desc(Product.id),
        "name": asc(Product.name), "-name": desc(Product.name),
        "price": asc(Product.price), "-price": desc(Product.price),
    }
    return query.order_by(mapping.get(sort, desc(Product.id)))  # newest first

def _with_ratings(products):
    ratings = review_service.ratings_for(p.id for p in products)
    return [p.as_api(ratings[p.id]) for p in products]

# ---------- routes ----------
# GET /api/products
@bp.get("")
def list_products():
    """
    Query params:
      search           -> substring match on name/description
      category_id      -> int
      min_price        -> number
      max_price        -> number
      include_inactive -> admins only
      sort             -> id, -id, name, -name, price, -price
      page / per_page  -> default 1 / 10 (cap 100)
    """
    search = (request.args.get("search") or request.args.get("q") or "").strip()
    category_id = to_int(request.args.get("category_id"))
    min_price = request.args.get("min_price", type=float)
    max_price = request.args.get("max_price", type=float)

    query = Product.query
    if not (parse_bool(request.args.get("include_inactive")) and is_admin(optional_user())):
        query = query.filter(Product.is_active.is_(True))
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(like), Product.description.ilike(like)))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)

    query = _sort_products(query, request.args.get("sort"))
    data = paginate(query, request.args.get("page"), request.args.get("per_page"),
                    key="products", serialize=lambda p: p)
    data["products"] = _with_ratings(data["products"])
    return ok("Products fetched", data)

# GET /api/products/<id>
@bp.get("/<int:pid>")
def get_product(pid):
    product = catalog_service.get_or_404(Product, pid, "product")
    return ok("Product fetched", product.as_api(review_service.product_rating(pid)))

# POST /api/products
@bp.post("")
@role_required("admin")
def create_product():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")
    category = catalog_service.require_category(data.get("category_id"))

    product = Product(
        name=name,
        description=data.get("description"),
        price=catalog_service.parse_price(data.get("price")),
        is_active=parse_bool(data.get("is_active"), True),
        category_id=category.id,
    )
    catalog_service.set_product_images(product, data.get("images"))
    db.session.add(product)
    db.session.commit()

    resp = ok("Product created", product.as_api(), status=201)
    resp.headers["Location"] = url_for(_ep("get_product"), pid=product.id, _external=True)
    return resp

# PUT /api/products/<id>
@bp.put("/<int:pid>")
@role_required("admin")
def update_product(pid):
    product = catalog_service.get_or_404(Product, pid, "product")
    data = request.get_json(silent=True) or {}

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty")
        product.name = name
    if "description" in data:
        product.description = data.get("description")
    if "price" in data:
        product.price = catalog_service.parse_price(data.get("price"))
    if "is_active" in data:
        product.is_active = parse_bool(data.get("is_active"))
    if "category_id" in data:
        product.category_id = catalog_service.require_category(data.get("category_id")).id
    if "images" in data:
        catalog_service.set_product_images(product, data.get("images"))

    db.session.commit()
    return ok("Product updated", product.as_api(review_service.product_rating(pid)))

# DELETE /api/products/<id>
@bp.delete("/<int:pid>")
@role_required("admin")
def delete_product(pid):
    product = catalog_service.get_or_404(Product, pid, "product")
    catalog_service.delete_product(product)
    return ok(f"Product {pid} deleted", {"id": pid})

# GET /api/products/<id>/reviews
@bp.get("/<int:pid>/reviews")
def list_product_reviews(pid):
    catalog_service.get_or_404(Product, pid, "product")
    data = paginate(review_service.reviews_query(pid), request.args.get("page"),
                    request.args.get("per_page"), key="reviews")
    data.update(review_service.product_rating(pid))
    return ok("Reviews fetched", data)

@bp.get("/export")
@role_required("admin")
def export_products():
    """
    Export all products as an Excel file.
    """
    return send_file(
        catalog_service.export_products_xlsx(),
        as_attachment=True,
        download_name="products_export.xlsx",
        mimetype=XLSX_MIMETYPE,
    )

@bp.post("/import")
@role_required("admin")
def import_products():
    """
    Import products from an uploaded .xlsx file.
    """
    file = request.files.get("file")
    if file is None:
        raise ValidationError("No file part")
    if file.filename == "":
        raise ValidationError("No selected file")
    if not file.filename.lower().endswith(".xlsx"):
        raise ValidationError("Only .xlsx files are allowed")

    count = catalog_service.import_products_xlsx(file)
    return ok("Products imported successfully", {"imported": count}, status=201)
