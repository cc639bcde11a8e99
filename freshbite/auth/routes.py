import re
import uuid
from datetime import timedelta

from flask import current_app, request
from flask_jwt_extended import create_access_token
from werkzeug.security import check_password_hash, generate_password_hash

from . import bp
from ..errors import AuthError, ConflictError, ValidationError
from ..extensions import db
from ..model import RefreshToken, User
from ..services.order_service import EMAIL_RE, PHONE_RE
from ..utils.api import ok
from ..utils.dates import utcnow
from ..utils.decorators import current_user, login_required
from ..utils.logger import get_logger

log = get_logger("auth")


# --- helper: create & persist a token pair ---
def _issue_tokens(user_id: int):
    access_token = create_access_token(identity=str(user_id))
    refresh_token_str = uuid.uuid4().hex
    db.session.add(RefreshToken(
        user_id=user_id,
        token=refresh_token_str,
        expires_at=utcnow() + timedelta(days=current_app.config["REFRESH_TOKEN_TTL_DAYS"]),
    ))
    return access_token, refresh_token_str

def _normalize_phone(raw) -> str:
    return re.sub(r"[\s.-]", "", (raw or "").strip())


@bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    phone = _normalize_phone(data.get("phone"))
    password = data.get("password") or ""
    email = (data.get("email") or "").strip().lower() or None
    address = (data.get("address") or "").strip() or None

    if not name:
        raise ValidationError("Name required")
    if not PHONE_RE.match(phone):
        raise ValidationError("Invalid phone number", field="phone")
    if len(password) < 6:
        raise ValidationError("Password required, min 6 chars")
    if email and not EMAIL_RE.match(email):
        raise ValidationError("Invalid email", field="email")
    if User.query.filter_by(phone=phone).first():
        raise ConflictError("Phone already registered", field="phone")
    if email and User.query.filter_by(email=email).first():
        raise ConflictError("Email already registered", field="email")

    # public signups are always customers; admins come from `flask create-admin`
    user = User(name=name, phone=phone, email=email, address=address,
                password_hash=generate_password_hash(password), role="customer")
    db.session.add(user)
    db.session.flush()
    access_token, refresh_token = _issue_tokens(user.id)
    db.session.commit()
    log.info("user %s registered", user.id)

    return ok("Account created successfully", {
        "user": user.as_dict(),
        "user_logged_in": True,
        "token": access_token,
        "refresh_token": refresh_token,
    }, status=201)

@bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    phone = _normalize_phone(data.get("phone"))
    password = data.get("password") or ""
    if not phone or not password:
        raise ValidationError("Phone and password are required")

    user = User.query.filter_by(phone=phone).first()
    if not user or not check_password_hash(user.password_hash, password):
        raise AuthError("Invalid phone or password")

    access_token, refresh_token = _issue_tokens(user.id)
    db.session.commit()

    return ok("You've logged in successfully", {
        "user": user.as_dict(),
        "user_logged_in": True,
        "token": access_token,
        "refresh_token": refresh_token,
    })

@bp.post("/refresh")
def refresh():
    data = request.get_json(silent=True) or {}
    token_str = data.get("refresh_token")
    if not token_str:
        raise ValidationError("refresh_token is required")

    refresh_row = RefreshToken.query.filter_by(token=token_str).first()
    if not refresh_row or refresh_row.expires_at < utcnow():
        raise AuthError("Invalid or expired refresh token")

    user_id = refresh_row.user_id

    # rotate: the presented token is single-use
    db.session.delete(refresh_row)
    db.session.flush()

    new_access, new_refresh = _issue_tokens(user_id)
    db.session.commit()

    return ok("Token refreshed", {"token": new_access, "refresh_token": new_refresh})

@bp.post("/logout")
def logout():
    data = request.get_json(silent=True) or {}
    token_str = data.get("refresh_token")
    if token_str:
        RefreshToken.query.filter_by(token=token_str).delete(synchronize_session=False)
        db.session.commit()
    return ok("Logged out")

@bp.get("/me")
@login_required
def me():
    return ok("OK", {"user": current_user().as_dict()})
