# --- freshbite/model/voucher.py ---

from ..extensions import db
from sqlalchemy.sql import func
from ..utils.dates import iso
from ..utils.money import to_float

PERCENTAGE = "PERCENTAGE"
FIXED = "FIXED"
DISCOUNT_KINDS = (PERCENTAGE, FIXED)

class Voucher(db.Model):
    __tablename__ = "voucher"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)   # stored upper-case
    name = db.Column(db.String(255))
    description = db.Column(db.Text)

    # "PERCENTAGE" or "FIXED"
    discount_kind = db.Column(db.String(16), nullable=False, default=PERCENTAGE)
    discount_value = db.Column(db.Numeric(12, 2), nullable=False)

    # Optional constraints
    min_order_amount = db.Column(db.Numeric(12, 2), nullable=True)     # require subtotal >= this
    max_discount_amount = db.Column(db.Numeric(12, 2), nullable=True)  # PERCENTAGE only
    usage_limit = db.Column(db.Integer, nullable=True)                 # global cap
    per_user_limit = db.Column(db.Integer, nullable=True)
    used_count = db.Column(db.Integer, nullable=False, default=0)

    valid_from = db.Column(db.DateTime, nullable=False, server_default=func.now())
    valid_to = db.Column(db.DateTime, nullable=True)                   # None = open-ended
    is_active = db.Column(db.Boolean, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    grants = db.relationship("UserVoucher", back_populates="voucher", cascade="all, delete-orphan", lazy="selectin")

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "discount_kind": self.discount_kind,
            "discount_value": to_float(self.discount_value),
            "min_order_amount": to_float(self.min_order_amount),
            "max_discount_amount": to_float(self.max_discount_amount),
            "usage_limit": self.usage_limit,
            "per_user_limit": self.per_user_limit,
            "used_count": self.used_count,
            "valid_from": iso(self.valid_from),
            "valid_to": iso(self.valid_to),
            "is_active": self.is_active,
        }

class UserVoucher(db.Model):
    """Grant: entitles one customer to redeem one voucher."""
    __tablename__ = "user_voucher"
    __table_args__ = (db.UniqueConstraint("user_id", "voucher_id", name="uq_user_voucher"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    voucher_id = db.Column(db.Integer, db.ForeignKey("voucher.id", ondelete="CASCADE"), index=True, nullable=False)
    used_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, server_default=func.now())

    voucher = db.relationship("Voucher", back_populates="grants")
    user = db.relationship("User")

    def as_api(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "voucher_id": self.voucher_id,
            "used_count": self.used_count,
        }
