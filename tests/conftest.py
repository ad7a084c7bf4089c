import hashlib
import hmac
import json
import time
from decimal import Decimal
from uuid import uuid4

import pytest
from flask_jwt_extended import create_access_token

from storefront import create_app
from storefront.config import TestConfig
from storefront.extensions import db
from storefront.gateway import get_gateway
from storefront.model import Product, User
from storefront.services.mailer import get_mailer

WEBHOOK_SECRET = TestConfig.STRIPE_WEBHOOK_SECRET


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Stripe-format signature header for `payload`."""
    ts = int(timestamp if timestamp is not None else time.time())
    sig = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def make_event(event_type: str, obj: dict, event_id: str | None = None) -> str:
    return json.dumps({
        "id": event_id or f"evt_{uuid4().hex[:16]}",
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    })


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def gateway(app):
    return get_gateway()


@pytest.fixture()
def mailer(app):
    return get_mailer()


@pytest.fixture()
def products(app):
    rows = [
        Product(name="Vanilla Candle", slug="vanilla", price=Decimal("10.00"), quantity=20),
        Product(name="Cedar Candle", slug="cedar", price=Decimal("12.50"), quantity=3),
        Product(name="Gift Card", slug="gift-card", price=Decimal("25.00"), quantity=0, subtract_stock="no"),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


@pytest.fixture()
def admin_headers(app):
    u = User(email="ops@candles.com", name="Ops", role="manager")
    db.session.add(u)
    db.session.commit()
    token = create_access_token(identity=str(u.id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def post_event(client):
    def _post(event_type, obj, event_id=None, secret=WEBHOOK_SECRET):
        body = make_event(event_type, obj, event_id)
        return client.post(
            "/webhooks/stripe",
            data=body,
            headers={"Stripe-Signature": sign(body, secret), "Content-Type": "application/json"},
        )
    return _post


@pytest.fixture()
def paid_session(gateway):
    """Build a completed checkout session on the fake gateway."""
    def _build(lines, *, discount=0, metadata=None, email="ana@example.com", shipping=True,
               payment_status="paid"):
        from storefront.gateway.port import CheckoutSessionRequest, SessionLine

        request = CheckoutSessionRequest(
            lines=[SessionLine(product_id=p.id, name=p.name, unit_amount=int(p.price * 100), quantity=q)
                   for p, q in lines],
            currency="usd",
            success_url="http://shop.test/checkout/success",
            cancel_url="http://shop.test/checkout/canceled",
            discount_amount=discount,
            metadata=metadata or {},
        )
        result = gateway.create_checkout_session(request)
        address = {"line1": "1 Main St", "city": "Springfield", "postal_code": "12345", "country": "US"}
        session = gateway.complete_session(
            result.session_id,
            email=email,
            name="Ana Buyer",
            shipping_address=address if shipping else None,
            billing_address=address,
        )
        if payment_status != "paid":
            gateway.sessions[result.session_id]["payment_status"] = payment_status
            session["payment_status"] = payment_status
        return session
    return _build
