# --- storefront/__init__.py ---
from flask import Flask, jsonify

from .config import Config
from .errors import register_error_handlers
from .extensions import db, jwt, cors, migrate
from .gateway import init_gateway
from .services.mailer import init_mailer
from .utils.logging import configure_logging


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    cfg = config_object or Config
    app.config.from_object(cfg)
    cfg.init_app(app)
    configure_logging(app)

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": "*"}})
    migrate.init_app(app, db)

    init_gateway(app)
    init_mailer(app)
    register_error_handlers(app)

    # Register blueprints
    from .checkout import bp as checkout_bp; app.register_blueprint(checkout_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .notification import bp as notification_bp; app.register_blueprint(notification_bp)
    from .webhook import bp as webhook_bp; app.register_blueprint(webhook_bp)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    from .cli import register_cli
    register_cli(app)

    with app.app_context():
        # import models so create_all sees every table
        from . import model  # noqa: F401
        db.create_all()

    return app
