import os


def _env_list(name, default):
    v = os.environ.get(name)
    if not v:
        return list(default)
    return [x.strip().upper() for x in v.split(",") if x.strip()]


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024
    ENV = os.getenv("FLASK_ENV", "development")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")

    # payment gateway
    PAYMENT_GATEWAY = os.environ.get("PAYMENT_GATEWAY", "stripe")   # "stripe" | "fake"
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    STRIPE_WEBHOOK_TOLERANCE = int(os.environ.get("STRIPE_WEBHOOK_TOLERANCE", 300))
    CURRENCY = os.environ.get("STORE_CURRENCY", "usd").lower()
    SHIPPING_COUNTRIES = _env_list("SHIPPING_COUNTRIES", ["US", "CA", "GB"])
    STOREFRONT_URL = os.environ.get("STOREFRONT_URL")
    STORE_NAME = os.environ.get("STORE_NAME", "Candles Store")

    # outgoing mail
    MAIL_BACKEND = os.environ.get("MAIL_BACKEND", "console")        # "resend" | "console" | "memory"
    RESEND_API_KEY = os.environ.get("RESEND_API_KEY")
    MAIL_DEFAULT_SENDER = os.environ.get("FROM_EMAIL", "orders@candles.com")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "console")            # "console" | "json"

    @staticmethod
    def init_app(app):
        if app.config.get("SQLALCHEMY_DATABASE_URI"):
            return
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'app.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-with-enough-length-for-hs256"
    PAYMENT_GATEWAY = "fake"
    STRIPE_SECRET_KEY = None
    STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
    STOREFRONT_URL = "http://shop.test"
    MAIL_BACKEND = "memory"
    LOG_LEVEL = "WARNING"
    LOG_FORMAT = "console"
