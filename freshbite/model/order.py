from ..extensions import db
from ..utils.dates import utcnow, iso
from ..utils.money import to_float

PENDING = "PENDING"
CONFIRMED = "CONFIRMED"
PREPARING = "PREPARING"
READY = "READY"
DELIVERED = "DELIVERED"
CANCELLED = "CANCELLED"

STATUSES = (PENDING, CONFIRMED, PREPARING, READY, DELIVERED, CANCELLED)
TERMINAL_STATUSES = (DELIVERED, CANCELLED)

class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(40), unique=True, nullable=False, index=True)  # e.g. "ORD-20251022093011123456-3F9A"
    status = db.Column(db.String(20), nullable=False, default=PENDING, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)   # None for guests

    # Customer snapshot
    customer_name = db.Column(db.String(180), nullable=False)
    customer_phone = db.Column(db.String(20), nullable=False, index=True)
    customer_email = db.Column(db.String(255))
    customer_address = db.Column(db.String(500), nullable=False)
    notes = db.Column(db.Text)

    # Money snapshot
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    shipping_fee = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    voucher_code = db.Column(db.String(64))

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    user = db.relationship("User")
    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id.asc()",
    )

    @property
    def is_guest(self):
        return self.user_id is None

    def as_api(self):
        return {
            "id": self.id,
            "order_number": self.order_number,
            "status": self.status,
            "user_id": self.user_id,
            "is_guest": self.is_guest,
            "customer": {
                "name": self.customer_name,
                "phone": self.customer_phone,
                "email": self.customer_email,
                "address": self.customer_address,
            },
            "notes": self.notes,
            "money": {
                "subtotal": to_float(self.subtotal),
                "shipping_fee": to_float(self.shipping_fee),
                "discount": to_float(self.discount),
                "total": to_float(self.total),
            },
            "voucher_code": self.voucher_code,
            "items": [i.as_api() for i in self.items],
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=True, index=True)
    combo_id = db.Column(db.Integer, db.ForeignKey("combo.id"), nullable=True, index=True)
    name = db.Column(db.String(255))

    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)

    def as_api(self):
        return {
            "type": "combo" if self.combo_id else "product",
            "product_id": self.product_id,
            "combo_id": self.combo_id,
            "name": self.name,
            "unit_price": to_float(self.unit_price),
            "quantity": self.quantity,
            "line_total": to_float(self.line_total),
        }
