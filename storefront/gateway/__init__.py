"""Payment gateway factory.

`init_gateway(app)` picks the adapter named by ``PAYMENT_GATEWAY`` and
keeps it on ``app.extensions``; `get_gateway()` returns the one bound to
the current app.
"""

from flask import current_app

from .fake_adapter import FakeGateway
from .port import PaymentGateway
from .stripe_adapter import StripeGateway

EXTENSION_KEY = "payment_gateway"


def init_gateway(app) -> PaymentGateway:
    kind = (app.config.get("PAYMENT_GATEWAY") or "stripe").lower()
    if kind == "fake":
        gateway = FakeGateway()
    elif kind == "stripe":
        gateway = StripeGateway(app.config.get("STRIPE_SECRET_KEY"))
    else:
        raise ValueError(f"Unknown PAYMENT_GATEWAY: {kind}")
    app.extensions[EXTENSION_KEY] = gateway
    return gateway


def get_gateway() -> PaymentGateway:
    return current_app.extensions[EXTENSION_KEY]
