# ------- freshbite/utils/decorators.py -------
from functools import wraps
from flask import jsonify
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..extensions import db
from ..utils.api import api_error
from ..model.user import User

ROLE_LEVEL = {"customer": 1, "admin": 2}

def _load_user(uid):
    try:
        uid = int(uid)
    except (TypeError, ValueError):
        return None
    return db.session.get(User, uid)

def current_user() -> User | None:
    verify_jwt_in_request()
    return _load_user(get_jwt_identity())

def optional_user() -> User | None:
    """Caller if a valid token was sent, None for guests."""
    verify_jwt_in_request(optional=True)
    uid = get_jwt_identity()
    return _load_user(uid) if uid else None

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not current_user():
            return jsonify(api_error("Unauthorized")), 401
        return fn(*args, **kwargs)
    return wrapper

# support a custom error message
def role_required(*roles, message: str | None = None):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            u = current_user()
            if not u:
                return jsonify(api_error("Unauthorized")), 401
            if u.role not in roles:
                return jsonify(api_error(message or "Forbidden")), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator

def is_admin(user: User | None) -> bool:
    return bool(user) and ROLE_LEVEL.get(user.role, 0) >= ROLE_LEVEL["admin"]
