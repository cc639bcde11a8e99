"""Catalog helpers shared by the category, product and combo blueprints."""
from __future__ import annotations
from io import BytesIO

import pandas as pd

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..model import CartItem, Category, Combo, ComboImage, ComboItem, OrderItem, Product, ProductImage
from ..utils.api import to_int
from ..utils.logger import get_logger
from ..utils.money import parse_money

log = get_logger("catalog")

EXPORT_COLUMNS = ["ID", "Name", "Description", "Price", "Active", "Category ID"]
IMPORT_COLUMNS = ["Name", "Price", "Category ID"]


# ---- lookups / parsing ------------------------------------------------------

def get_or_404(model, pk, label):
    obj = db.session.get(model, pk)
    if not obj:
        raise NotFoundError(f"{label} not found", id=pk)
    return obj

def require_category(raw) -> Category:
    try:
        cid = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("category_id is required")
    cat = db.session.get(Category, cid)
    if not cat:
        raise NotFoundError(f"Category {cid} not found", id=cid)
    return cat

def parse_price(raw, field="price", required=True):
    if raw is None or raw == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    value = parse_money(raw)
    if value is None or value <= 0:
        raise ValidationError(f"{field} must be > 0")
    return value

def _images(model, images):
    out = []
    for i, img in enumerate(images or []):
        if isinstance(img, str):
            img = {"url": img}
        url = (img.get("url") or "").strip()
        if not url:
            raise ValidationError("image url is required")
        out.append(model(url=url, public_id=img.get("public_id"), alt=img.get("alt"),
                         sort_order=img.get("sort_order", i)))
    return out

def set_product_images(product: Product, images) -> None:
    product.images = _images(ProductImage, images)

def set_combo_images(combo: Combo, images) -> None:
    combo.images = _images(ComboImage, images)

def set_combo_items(combo: Combo, items) -> None:
    """Replace the combo's contents; every product must exist."""
    if not items:
        raise ValidationError("combo must contain at least one product")
    rows = []
    for it in items:
        try:
            pid = int(it.get("product_id"))
            qty = int(it.get("quantity", 1))
        except (AttributeError, TypeError, ValueError):
            raise ValidationError("combo items need product_id and quantity")
        if qty < 1:
            raise ValidationError("combo item quantity must be >= 1")
        if not db.session.get(Product, pid):
            raise NotFoundError(f"Product {pid} not found", id=pid)
        rows.append(ComboItem(product_id=pid, quantity=qty))
    combo.items = rows


# ---- guarded deletes --------------------------------------------------------

def delete_category(cat: Category) -> None:
    if Product.query.filter_by(category_id=cat.id).first() or Combo.query.filter_by(category_id=cat.id).first():
        raise ConflictError("cannot delete: category still has products or combos")
    db.session.delete(cat)
    db.session.commit()
    log.info("category %s deleted", cat.id)

def delete_product(product: Product) -> None:
    if OrderItem.query.filter_by(product_id=product.id).first():
        raise ConflictError("cannot delete: product is referenced by orders")
    if ComboItem.query.filter_by(product_id=product.id).first():
        raise ConflictError("cannot delete: product is part of a combo")
    # lines still sitting in carts go with it
    dropped = CartItem.query.filter_by(product_id=product.id).delete(synchronize_session=False)
    db.session.delete(product)
    db.session.commit()
    log.info("product %s deleted (%d cart lines dropped)", product.id, dropped)

def delete_combo(combo: Combo) -> None:
    if OrderItem.query.filter_by(combo_id=combo.id).first():
        raise ConflictError("cannot delete: combo is referenced by orders")
    dropped = CartItem.query.filter_by(combo_id=combo.id).delete(synchronize_session=False)
    db.session.delete(combo)
    db.session.commit()
    log.info("combo %s deleted (%d cart lines dropped)", combo.id, dropped)


# ---- spreadsheet ------------------------------------------------------------

def export_products_xlsx() -> BytesIO:
    rows = [{
        "ID": p.id,
        "Name": p.name,
        "Description": p.description,
        "Price": float(p.price),
        "Active": bool(p.is_active),
        "Category ID": p.category_id,
    } for p in Product.query.order_by(Product.id.asc()).all()]
    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)

    output = BytesIO()
    df.to_excel(output, index=False)
    output.seek(0)
    return output

def import_products_xlsx(stream) -> int:
    """Insert every row of the sheet as a new product; all or nothing."""
    df = pd.read_excel(stream)
    missing = [c for c in IMPORT_COLUMNS if c not in df.columns]
    if missing:
        raise ValidationError("Missing required columns in the uploaded file", columns=missing)

    known = {cid for (cid,) in db.session.query(Category.id).all()}
    try:
        count = 0
        for idx, row in df.iterrows():
            line = idx + 2  # header is row 1
            name = str(row["Name"]).strip() if pd.notnull(row["Name"]) else ""
            if not name:
                raise ValidationError(f"row {line}: name is required")
            price = parse_money(row["Price"]) if pd.notnull(row["Price"]) else None
            if price is None or price <= 0:
                raise ValidationError(f"row {line}: price must be > 0")
            cid = to_int(row["Category ID"]) if pd.notnull(row["Category ID"]) else None
            if cid not in known:
                raise ValidationError(f"row {line}: unknown category", category_id=cid)

            description = row.get("Description")
            active = row.get("Active")
            db.session.add(Product(
                name=name,
                description=str(description) if pd.notnull(description) else None,
                price=price,
                is_active=bool(active) if pd.notnull(active) else True,
                category_id=cid,
            ))
            count += 1
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    log.info("imported %d products", count)
    return count
