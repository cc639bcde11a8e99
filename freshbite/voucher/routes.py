from flask import request

from . import bp
from ..errors import AuthError, NotFoundError, ValidationError
from ..extensions import db
from ..model import User, Voucher
from ..services import voucher_service
from ..utils.api import ok, paginate, parse_bool, to_int
from ..utils.decorators import current_user, optional_user, role_required


def _get_voucher(vid) -> Voucher:
    v = db.session.get(Voucher, vid)
    if not v:
        raise NotFoundError("voucher not found", id=vid)
    return v


@bp.get("")
def list_vouchers():
    """
    Public active vouchers, or with ?user_vouchers=true the caller's usable grants.
    Optional ?subtotal= hides vouchers whose minimum is not met.
    """
    subtotal = request.args.get("subtotal")
    if subtotal is not None:
        subtotal = voucher_service.parse_subtotal(subtotal)

    if parse_bool(request.args.get("user_vouchers")):
        user = current_user()
        if not user:
            raise AuthError("login required to list your vouchers")
        vouchers = voucher_service.available_for_user(user.id, subtotal)
    else:
        vouchers = voucher_service.public_active(subtotal)
    return ok("Vouchers fetched", {"vouchers": [v.as_api() for v in vouchers]})

@bp.post("/validate")
def validate_voucher():
    """
    Preview a voucher against a subtotal. Nothing is consumed.
    Body: { "code": "SAVE20K", "subtotal": 150000 }
    """
    data = request.get_json(silent=True) or {}
    user = optional_user()
    quote = voucher_service.evaluate(
        data.get("code"),
        data.get("subtotal", data.get("order_amount")),
        user.id if user else None,
    )
    return ok("Voucher is valid", quote.as_api())


# ---- admin ------------------------------------------------------------------

@bp.get("/all")
@role_required("admin")
def list_all_vouchers():
    q = Voucher.query.order_by(Voucher.created_at.desc(), Voucher.id.desc())
    search = (request.args.get("search") or "").strip()
    if search:
        q = q.filter(Voucher.code.ilike(f"%{search}%") | Voucher.name.ilike(f"%{search}%"))
    data = paginate(q, request.args.get("page"), request.args.get("per_page"), key="vouchers")
    return ok("Vouchers fetched", data)

@bp.post("")
@role_required("admin")
def create_voucher():
    v = voucher_service.create_voucher(request.get_json(silent=True) or {})
    return ok("Voucher created", {"voucher": v.as_api()}, status=201)

@bp.put("/<int:vid>")
@role_required("admin")
def update_voucher(vid):
    v = voucher_service.update_voucher(_get_voucher(vid), request.get_json(silent=True) or {})
    return ok("Voucher updated", {"voucher": v.as_api()})

@bp.post("/<int:vid>/grants")
@role_required("admin")
def grant_voucher(vid):
    """Body: { "user_id": 3 } or { "phone": "0901234567" }"""
    v = _get_voucher(vid)
    data = request.get_json(silent=True) or {}
    if data.get("user_id"):
        user = db.session.get(User, to_int(data.get("user_id"), 0))
    elif data.get("phone"):
        user = User.query.filter_by(phone=str(data.get("phone")).strip()).first()
    else:
        raise ValidationError("user_id or phone is required")
    if not user:
        raise NotFoundError("user not found")

    grant, created = voucher_service.grant_voucher(v, user)
    return ok("Voucher granted" if created else "Voucher already granted",
              {"grant": grant.as_api()}, status=201 if created else 200)
