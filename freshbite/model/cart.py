# freshbite/model/cart.py
from __future__ import annotations
from decimal import Decimal
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.money import round_money, to_float

class CartItem(db.Model):
    """One line of a logged-in customer's cart: a product OR a combo."""
    __tablename__ = "cart_item"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=True, index=True)
    combo_id = db.Column(db.Integer, db.ForeignKey("combo.id"), nullable=True, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    # price captured when the line was added; checkout re-reads the catalog
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    product = db.relationship("Product", lazy="joined")
    combo = db.relationship("Combo", lazy="joined")

    @property
    def kind(self) -> str:
        return "combo" if self.combo_id else "product"

    @property
    def item(self):
        return self.combo if self.combo_id else self.product

    def line_total_dec(self) -> Decimal:
        return round_money(Decimal(self.unit_price or 0) * Decimal(self.quantity))

    def as_api(self):
        item = self.item
        return {
            "id": self.id,
            "type": self.kind,
            "product_id": self.product_id,
            "combo_id": self.combo_id,
            "name": item.name if item else None,
            "image_url": item.main_image() if item else None,
            "is_active": bool(item and item.is_active),
            "unit_price": to_float(self.unit_price),
            "quantity": self.quantity,
            "line_total": float(self.line_total_dec()),
        }


def cart_subtotal(items) -> Decimal:
    return round_money(sum((i.line_total_dec() for i in items), Decimal("0")))
