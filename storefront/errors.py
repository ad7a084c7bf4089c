# storefront/errors.py
from flask import jsonify
from werkzeug.exceptions import HTTPException
import structlog

from .utils.api import api_error

logger = structlog.get_logger(__name__)


class StorefrontError(Exception):
    status_code = 500

    def __init__(self, message: str, data: dict | None = None):
        super().__init__(message)
        self.message = message
        self.data = data or {}


class InvalidRequest(StorefrontError):
    status_code = 400


class Unauthenticated(StorefrontError):
    """Payment event failed signature / shape verification. Never retried."""
    status_code = 400


class CheckoutRejected(StorefrontError):
    status_code = 400


class GatewayError(StorefrontError):
    status_code = 500


class OrderPersistenceError(StorefrontError):
    """The order header itself could not be written; the gateway must retry."""
    status_code = 500


def register_error_handlers(app):
    @app.errorhandler(StorefrontError)
    def handle_storefront_error(e):
        if e.status_code >= 500:
            logger.error("request_failed", error=e.message, kind=type(e).__name__)
        r = jsonify(api_error(e.message, e.data))
        r.status_code = e.status_code
        return r

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        r = jsonify(api_error(e.description or e.name))
        r.status_code = e.code or 500
        return r
