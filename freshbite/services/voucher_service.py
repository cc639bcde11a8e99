"""
Voucher eligibility and discount rules.

``evaluate()`` is the one place the rules live. The preview endpoint calls it
with ``commit=False`` (read only); order placement calls it with
``commit=True`` inside the order transaction, which also consumes one use of
the voucher and of the customer's grant.

Checks run in a fixed order and the first failure wins:

  1) guest caller            -> GuestNotAllowedError
  2) unknown code            -> NotFoundError
  3) no grant for customer   -> VoucherNotEntitledError
  4) voucher switched off    -> VoucherDisabledError
  5) outside validity window -> VoucherNotYetValidError / VoucherExpiredError
  6) subtotal under minimum  -> BelowMinimumError (carries the minimum)
  7) global cap reached      -> UsageExhaustedError
  8) personal cap reached    -> PersonalLimitExhaustedError
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, or_, update

from ..extensions import db
from ..errors import (
    BelowMinimumError,
    ConflictError,
    GuestNotAllowedError,
    NotFoundError,
    PersonalLimitExhaustedError,
    UsageExhaustedError,
    ValidationError,
    VoucherDisabledError,
    VoucherExpiredError,
    VoucherNotEntitledError,
    VoucherNotYetValidError,
)
from ..model import UserVoucher, Voucher
from ..model.voucher import DISCOUNT_KINDS, FIXED, PERCENTAGE
from ..utils.api import parse_bool
from ..utils.dates import parse_iso8601, utcnow
from ..utils.logger import get_logger
from ..utils.money import D, ZERO, Money, parse_money, round_money, to_float

log = get_logger("vouchers")


@dataclass
class VoucherQuote:
    voucher: Voucher
    subtotal: Money
    discount: Money
    new_total: Money

    def as_api(self):
        v = self.voucher
        return {
            "voucher": {
                "id": v.id,
                "code": v.code,
                "name": v.name,
                "description": v.description,
                "discount_kind": v.discount_kind,
                "discount_value": to_float(v.discount_value),
                "min_order_amount": to_float(v.min_order_amount),
                "max_discount_amount": to_float(v.max_discount_amount),
                "applied_discount": float(self.discount),
            },
            "subtotal": float(self.subtotal),
            "discount": float(self.discount),
            "new_total": float(self.new_total),
        }


# ---- lookups ----------------------------------------------------------------

def normalize_code(code) -> str:
    if code is None:
        return ""
    if not isinstance(code, str):
        raise ValidationError("voucher code must be a string")
    return code.strip().upper()

def find_voucher(code) -> Voucher | None:
    return Voucher.query.filter(func.upper(Voucher.code) == normalize_code(code)).first()

def find_grant(user_id, voucher_id) -> UserVoucher | None:
    return UserVoucher.query.filter_by(user_id=user_id, voucher_id=voucher_id).first()


# ---- pure rules -------------------------------------------------------------

def compute_discount(voucher: Voucher, subtotal) -> Money:
    """Discount for ``subtotal``; never more than the subtotal itself."""
    subtotal = D(subtotal)
    if subtotal <= 0:
        return round_money(ZERO)
    value = D(voucher.discount_value)

    if voucher.discount_kind == PERCENTAGE:
        discount = subtotal * value / Decimal("100")
        if voucher.max_discount_amount is not None:
            discount = min(discount, D(voucher.max_discount_amount))
    elif voucher.discount_kind == FIXED:
        discount = value
    else:
        raise ValidationError(f"unknown discount kind {voucher.discount_kind!r}")

    return round_money(max(ZERO, min(discount, subtotal)))

def check_eligibility(voucher: Voucher, grant: UserVoucher, subtotal, now) -> None:
    """Checks 4-8; raises the first EligibilityError that applies."""
    if not voucher.is_active:
        raise VoucherDisabledError(voucher.code)

    if voucher.valid_from and now < voucher.valid_from:
        raise VoucherNotYetValidError(voucher.code, voucher.valid_from)
    if voucher.valid_to and now > voucher.valid_to:
        raise VoucherExpiredError(voucher.code, voucher.valid_to)

    if voucher.min_order_amount is not None and D(subtotal) < D(voucher.min_order_amount):
        raise BelowMinimumError(
            D(voucher.min_order_amount),
            message=f"order below minimum of {D(voucher.min_order_amount):,.0f} for this voucher",
        )

    if voucher.usage_limit is not None and (voucher.used_count or 0) >= voucher.usage_limit:
        raise UsageExhaustedError(voucher.code)

    if voucher.per_user_limit is not None and (grant.used_count or 0) >= voucher.per_user_limit:
        raise PersonalLimitExhaustedError(voucher.code)

def parse_subtotal(subtotal) -> Money:
    value = parse_money(subtotal)
    if value is None:
        raise ValidationError("order subtotal must be a number")
    if value < 0:
        raise ValidationError("order subtotal must be >= 0")
    return value


# ---- entry point ------------------------------------------------------------

def evaluate(code, subtotal, customer_id=None, *, commit=False, now=None) -> VoucherQuote:
    if customer_id is None:
        raise GuestNotAllowedError()
    subtotal = parse_subtotal(subtotal)
    if not normalize_code(code):
        raise ValidationError("voucher code is required")

    voucher = find_voucher(code)
    if not voucher:
        raise NotFoundError("voucher does not exist", code=normalize_code(code))

    grant = find_grant(customer_id, voucher.id)
    if not grant:
        raise VoucherNotEntitledError(voucher.code)

    check_eligibility(voucher, grant, subtotal, now or utcnow())

    discount = compute_discount(voucher, subtotal)
    if commit:
        _redeem(voucher, grant)

    new_total = round_money(max(ZERO, subtotal - discount))
    return VoucherQuote(voucher=voucher, subtotal=round_money(subtotal), discount=discount, new_total=new_total)

def _redeem(voucher: Voucher, grant: UserVoucher) -> None:
    """
    Consume one use of the voucher and of the grant.

    Each counter moves through a conditional UPDATE so two concurrent orders
    cannot both take the last use; an UPDATE that matches no row means the
    cap was reached in between. Nothing is committed here: the caller's
    transaction decides.
    """
    res = db.session.execute(
        update(Voucher)
        .where(
            Voucher.id == voucher.id,
            or_(Voucher.usage_limit.is_(None), Voucher.used_count < Voucher.usage_limit),
        )
        .values(used_count=Voucher.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise UsageExhaustedError(voucher.code)

    stmt = update(UserVoucher).where(UserVoucher.id == grant.id)
    if voucher.per_user_limit is not None:
        stmt = stmt.where(UserVoucher.used_count < voucher.per_user_limit)
    res = db.session.execute(
        stmt.values(used_count=UserVoucher.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise PersonalLimitExhaustedError(voucher.code)

    db.session.expire(voucher, ["used_count"])
    db.session.expire(grant, ["used_count"])
    log.info("voucher %s redeemed by user %s", voucher.code, grant.user_id)


# ---- listings ---------------------------------------------------------------

def _usable(voucher: Voucher, subtotal, now) -> bool:
    if not voucher.is_active:
        return False
    if voucher.valid_from and now < voucher.valid_from:
        return False
    if voucher.valid_to and now > voucher.valid_to:
        return False
    if subtotal is not None and voucher.min_order_amount is not None and D(subtotal) < D(voucher.min_order_amount):
        return False
    return True

def available_for_user(user_id, subtotal=None, now=None) -> list[Voucher]:
    """Granted vouchers the customer could apply right now."""
    now = now or utcnow()
    grants = (UserVoucher.query
              .filter_by(user_id=user_id)
              .order_by(UserVoucher.id.asc())
              .all())
    return [g.voucher for g in grants if _usable(g.voucher, subtotal, now)]

def public_active(subtotal=None, now=None) -> list[Voucher]:
    now = now or utcnow()
    q = (Voucher.query
         .filter(Voucher.is_active.is_(True), Voucher.valid_from <= now)
         .filter(or_(Voucher.valid_to.is_(None), Voucher.valid_to >= now))
         .order_by(Voucher.created_at.desc(), Voucher.id.desc()))
    return [v for v in q.all() if _usable(v, subtotal, now)]


# ---- admin ------------------------------------------------------------------

_MONEY_FIELDS = ("min_order_amount", "max_discount_amount")
_INT_FIELDS = ("usage_limit", "per_user_limit")

def _opt_money(data, field):
    raw = data.get(field)
    if raw is None or raw == "":
        return None
    value = parse_money(raw)
    if value is None or value < 0:
        raise ValidationError(f"{field} must be a number >= 0")
    return value

def _opt_int(data, field):
    raw = data.get(field)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if value < 0:
        raise ValidationError(f"{field} must be >= 0")
    return value

def _opt_datetime(data, field):
    raw = data.get(field)
    if raw is None or raw == "":
        return None
    dt = parse_iso8601(raw)
    if dt is None:
        raise ValidationError(f"Invalid datetime format for {field}")
    return dt

def _apply_payload(v: Voucher, data: dict, creating: bool) -> None:
    if creating or "code" in data:
        code = normalize_code(data.get("code"))
        if not code:
            raise ValidationError("code is required")
        existing = find_voucher(code)
        if existing and existing.id != v.id:
            raise ConflictError("Voucher code already exists", code=code)
        v.code = code

    for field in ("name", "description"):
        if field in data:
            setattr(v, field, data.get(field))

    kind = data.get("discount_kind", data.get("type"))
    if creating or kind is not None:
        kind = kind or PERCENTAGE
        kind = kind.strip().upper() if isinstance(kind, str) else None
        if kind not in DISCOUNT_KINDS:
            raise ValidationError("discount_kind must be 'PERCENTAGE' or 'FIXED'")
        v.discount_kind = kind

    value = data.get("discount_value", data.get("value"))
    if creating or value is not None:
        value = parse_money(value)
        if value is None or value <= 0:
            raise ValidationError("discount_value must be > 0")
        v.discount_value = value
    if v.discount_kind == PERCENTAGE and D(v.discount_value) > 100:
        raise ValidationError("percentage discount must be <= 100")

    for field in _MONEY_FIELDS:
        if field in data:
            setattr(v, field, _opt_money(data, field))
    for field in _INT_FIELDS:
        if field in data:
            setattr(v, field, _opt_int(data, field))

    if "valid_from" in data or creating:
        v.valid_from = _opt_datetime(data, "valid_from") or v.valid_from or utcnow()
    if "valid_to" in data:
        v.valid_to = _opt_datetime(data, "valid_to")
    if v.valid_to and v.valid_from and v.valid_to < v.valid_from:
        raise ValidationError("valid_to must be after valid_from")

    if "is_active" in data:
        v.is_active = parse_bool(data.get("is_active"))

def create_voucher(data: dict) -> Voucher:
    v = Voucher(used_count=0, is_active=True)
    _apply_payload(v, data, creating=True)
    db.session.add(v)
    db.session.commit()
    log.info("voucher %s created (%s %s)", v.code, v.discount_kind, v.discount_value)
    return v

def update_voucher(v: Voucher, data: dict) -> Voucher:
    try:
        _apply_payload(v, data, creating=False)
    except Exception:
        db.session.rollback()
        raise
    db.session.commit()
    log.info("voucher %s updated", v.code)
    return v

def grant_voucher(v: Voucher, user) -> tuple[UserVoucher, bool]:
    """Entitle ``user`` to ``v``; returns (grant, created)."""
    grant = find_grant(user.id, v.id)
    if grant:
        return grant, False
    grant = UserVoucher(user_id=user.id, voucher_id=v.id, used_count=0)
    db.session.add(grant)
    db.session.commit()
    log.info("voucher %s granted to user %s", v.code, user.id)
    return grant, True
