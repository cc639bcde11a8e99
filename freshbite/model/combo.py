# freshbite/model/combo.py
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import iso
from ..utils.money import to_float

class Combo(db.Model):
    """A bundle of products sold together at its own price."""
    __tablename__ = "combo"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    original_price = db.Column(db.Numeric(12, 2), nullable=True)   # sum of parts, for the "save x%" badge
    is_active = db.Column(db.Boolean, default=True, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    category = db.relationship("Category", lazy="joined")
    items = db.relationship(
        "ComboItem",
        backref="combo",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ComboItem.id.asc()",
    )
    images = db.relationship(
        "ComboImage",
        backref="combo",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ComboImage.sort_order.asc()",
    )

    def discount_percent(self):
        if not self.original_price or float(self.original_price) <= 0:
            return None
        original = float(self.original_price)
        return round((original - float(self.price)) / original * 100)

    def main_image(self):
        return self.images[0].url if self.images else None

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": to_float(self.price),
            "original_price": to_float(self.original_price),
            "discount_percent": self.discount_percent(),
            "is_active": self.is_active,
            "category": self.category.as_dict() if self.category else None,
            "items": [i.as_api() for i in self.items],
            "images": [img.as_api() for img in self.images],
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

class ComboItem(db.Model):
    __tablename__ = "combo_item"
    id = db.Column(db.Integer, primary_key=True)
    combo_id = db.Column(db.Integer, db.ForeignKey("combo.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", lazy="joined")

    def as_api(self):
        return {
            "product_id": self.product_id,
            "name": self.product.name if self.product else None,
            "image_url": self.product.main_image() if self.product else None,
            "quantity": self.quantity,
        }

class ComboImage(db.Model):
    __tablename__ = "combo_image"
    id = db.Column(db.Integer, primary_key=True)
    combo_id = db.Column(db.Integer, db.ForeignKey("combo.id"), nullable=False, index=True)
    url = db.Column(db.String(1024), nullable=False)
    public_id = db.Column(db.String(255))
    alt = db.Column(db.String(255))
    sort_order = db.Column(db.Integer, default=0)

    def as_api(self):
        return {
            "id": self.id,
            "url": self.url,
            "public_id": self.public_id,
            "alt": self.alt,
            "sort_order": self.sort_order,
        }
