# --- freshbite/utils/api.py ---
from flask import jsonify

from .dates import utcnow
from datetime import timedelta

def _api_time_human():
    now = utcnow() + timedelta(hours=7)  # UTC+7
    return now.strftime("%Y-%m-%d %H:%M:%S")

def api_ok(message, data=None):
    return {
        "status": True,
        "message": message,
        "data": {
            **(data or {}),
            "API_TIME_HUMAN": _api_time_human()
        }
    }

def api_error(message, data=None):
    return {
        "status": False,
        "message": message,
        "data": {
            **(data or {}),
            "API_TIME_HUMAN": _api_time_human()
        }
    }

# unified response helpers shared by the blueprints
def ok(message, data=None, status=200):
    r = jsonify(api_ok(message, data)); r.status_code = status; return r

def err(message, status=400, data=None):
    r = jsonify(api_error(message, data)); r.status_code = status; return r

def paginate(query, page, per_page, key="items", serialize=None):
    page = max(to_int(page, 1), 1)
    per_page = min(max(to_int(per_page, 10), 1), 100)
    paged = query.paginate(page=page, per_page=per_page, error_out=False)
    serialize = serialize or (lambda o: o.as_api())
    return {
        key: [serialize(o) for o in paged.items],
        "pagination": {
            "page": paged.page,
            "per_page": per_page,
            "total": paged.total,
            "total_pages": paged.pages or 1,
        },
    }

def to_int(v, default=None):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default

def parse_bool(v, default=False):
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}
