# storefront/checkout/routes.py
from flask import current_app, request

from ..gateway import get_gateway
from ..services.checkout_service import CartSnapshot, initiate_checkout
from ..utils.api import ok
from . import bp


@bp.post("")
def create_checkout_session():
    snapshot = CartSnapshot.from_payload(request.get_json(silent=True) or {})
    cfg = current_app.config
    result = initiate_checkout(
        snapshot,
        get_gateway(),
        base_url=cfg.get("STOREFRONT_URL") or request.host_url,
        currency=cfg.get("CURRENCY", "usd"),
        shipping_countries=cfg.get("SHIPPING_COUNTRIES"),
    )
    return ok("Checkout session created", {
        "redirect_url": result.url,
        "redirectUrl": result.url,
        "session_id": result.session_id,
    })
