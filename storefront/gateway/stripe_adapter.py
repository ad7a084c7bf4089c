"""Stripe payment gateway adapter."""

import json

import stripe
import structlog

from ..errors import GatewayError
from .port import CheckoutSessionRequest, CheckoutSessionResult, PaymentGateway

logger = structlog.get_logger(__name__)

SESSION_EXPAND = ["line_items", "line_items.data.price.product"]


def _to_plain_dict(obj) -> dict:
    # StripeObject renders itself as JSON
    return json.loads(str(obj))


class StripeGateway(PaymentGateway):
    """Production gateway backed by the stripe SDK."""

    def __init__(self, api_key: str | None) -> None:
        self.api_key = api_key

    def _require_key(self):
        if not self.api_key:
            raise GatewayError("payment gateway is not configured")

    def _line_item(self, line, currency):
        product_data = {
            "name": line.name or "Product",
            "metadata": {"product_id": str(line.product_id)},
        }
        # long image URLs are rejected by the hosted page
        if line.image_url and len(line.image_url) < 500:
            product_data["images"] = [line.image_url]
        return {
            "price_data": {
                "currency": currency,
                "product_data": product_data,
                "unit_amount": int(line.unit_amount),
            },
            "quantity": int(line.quantity),
        }

    def create_checkout_session(self, request: CheckoutSessionRequest) -> CheckoutSessionResult:
        self._require_key()
        line_items = []
        for line in request.lines:
            line_items.append(self._line_item(line, request.currency))

        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "billing_address_collection": "required",
            "line_items": line_items,
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "metadata": dict(request.metadata),
            "payment_intent_data": {"metadata": dict(request.metadata)},
            "api_key": self.api_key,
        }
        if request.shipping_countries:
            params["shipping_address_collection"] = {"allowed_countries": list(request.shipping_countries)}

        try:
            if request.discount_amount > 0:
                coupon = stripe.Coupon.create(
                    amount_off=int(request.discount_amount),
                    currency=request.currency,
                    duration="once",
                    name=(request.discount_label or "Discount")[:40],
                    api_key=self.api_key,
                )
                params["discounts"] = [{"coupon": coupon.id}]
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.error("checkout_session_create_failed", error=str(e))
            raise GatewayError(f"could not create checkout session: {e.user_message or e}") from e

        return CheckoutSessionResult(session_id=session.id, url=session.url)

    def retrieve_checkout_session(self, session_id: str) -> dict:
        self._require_key()
        try:
            session = stripe.checkout.Session.retrieve(
                session_id, expand=SESSION_EXPAND, api_key=self.api_key
            )
        except stripe.StripeError as e:
            logger.error("checkout_session_retrieve_failed", session_id=session_id, error=str(e))
            raise GatewayError(f"could not retrieve checkout session {session_id}") from e
        return _to_plain_dict(session)
