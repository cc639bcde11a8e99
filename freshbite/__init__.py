# --- freshbite/__init__.py ---
from flask import Flask

from .config import Config
from .errors import register_error_handlers
from .extensions import db, jwt, cors, migrate
from .utils.api import api_error, ok
from .utils.logger import get_logger, set_level

log = get_logger("app")


def _register_jwt_handlers():
    # keep token failures in the standard envelope
    @jwt.unauthorized_loader
    def missing_token(reason):
        return api_error("Unauthorized", {"reason": "unauthorized", "detail": reason}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return api_error("Invalid token", {"reason": "unauthorized", "detail": reason}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return api_error("Token has expired", {"reason": "unauthorized"}), 401


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    config_object = config_object or Config
    app.config.from_object(config_object)
    config_object.init_app(app)
    set_level(app.config.get("LOG_LEVEL", "INFO"))

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})
    migrate.init_app(app, db)
    _register_jwt_handlers()
    register_error_handlers(app)

    # Register blueprints
    from .auth import bp as auth_bp; app.register_blueprint(auth_bp)
    from .category import bp as category_bp; app.register_blueprint(category_bp)
    from .product import bp as product_bp; app.register_blueprint(product_bp)
    from .combo import bp as combo_bp; app.register_blueprint(combo_bp)
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .voucher import bp as voucher_bp; app.register_blueprint(voucher_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .review import bp as review_bp; app.register_blueprint(review_bp)
    from .admin import bp as admin_bp; app.register_blueprint(admin_bp)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return ok("API running")

    log.debug("blueprints: %s", sorted(app.blueprints.keys()))

    with app.app_context():
        from . import model  # noqa: F401
        db.create_all()

    return app
