from flask import Blueprint

bp = Blueprint("combo", __name__, url_prefix="/api/combos")

from . import routes  # noqa: E402,F401
