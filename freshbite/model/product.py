# freshbite/model/product.py
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import iso
from ..utils.money import to_float

class Product(db.Model):
    __tablename__ = "product"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True, index=True)

    category_id = db.Column(
        db.Integer,
        db.ForeignKey("category.id"),
        nullable=False,
        index=True
    )

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    images = db.relationship(
        "ProductImage",
        backref="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductImage.sort_order.asc()",
    )

    def main_image(self):
        return self.images[0].url if self.images else None

    def as_api(self, rating=None):
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": to_float(self.price),
            "is_active": self.is_active,
            "images": [img.as_api() for img in self.images],
            "category": self.category.as_dict() if self.category else None,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if rating is not None:
            data.update(rating)
        return data

class ProductImage(db.Model):
    __tablename__ = "product_image"
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
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
