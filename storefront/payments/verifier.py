"""Payment event verification.

Authenticates the raw webhook body against the endpoint signing secret
(Stripe's ``t=<ts>,v1=<hmac>`` header, checked for freshness) and turns
it into a `PaymentEvent`. Anything that fails here is rejected with
`Unauthenticated` and never reaches the fulfillment pipeline.
"""

import json
from dataclasses import dataclass, field

import stripe

from ..errors import Unauthenticated

CHECKOUT_COMPLETED = "checkout.completed"
PAYMENT_SUCCEEDED = "payment.succeeded"

# gateway event type -> pipeline event type
GATEWAY_EVENT_TYPES = {
    "checkout.session.completed": CHECKOUT_COMPLETED,
    "payment_intent.succeeded": PAYMENT_SUCCEEDED,
}


@dataclass(frozen=True)
class PaymentEvent:
    event_id: str
    gateway_type: str
    event_type: str | None          # None for types the pipeline does not handle
    transaction_id: str | None
    payload: dict = field(default_factory=dict)

    @property
    def is_known(self) -> bool:
        return self.event_type is not None


def _ref_id(value):
    # expandable fields arrive either as an id or as the expanded object
    if isinstance(value, dict):
        return value.get("id")
    return value


def transaction_id_for(event_type: str | None, obj: dict) -> str | None:
    if event_type == CHECKOUT_COMPLETED:
        return _ref_id(obj.get("payment_intent")) or obj.get("id")
    if event_type == PAYMENT_SUCCEEDED:
        return obj.get("id")
    return None


def verify_event(raw_body: bytes | str, signature_header: str | None, secret: str | None,
                 tolerance: int = 300) -> PaymentEvent:
    if not secret:
        raise Unauthenticated("webhook signing secret is not configured")
    if not signature_header:
        raise Unauthenticated("missing signature header")

    payload = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
    try:
        stripe.WebhookSignature.verify_header(payload, signature_header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        raise Unauthenticated(f"invalid signature: {e}") from e

    try:
        data = json.loads(payload)
    except ValueError as e:
        raise Unauthenticated("malformed event payload") from e

    event_id = data.get("id") if isinstance(data, dict) else None
    gateway_type = data.get("type") if isinstance(data, dict) else None
    obj = (data.get("data") or {}).get("object") if isinstance(data, dict) else None
    if not event_id or not gateway_type or not isinstance(obj, dict):
        raise Unauthenticated("malformed event payload")

    event_type = GATEWAY_EVENT_TYPES.get(gateway_type)
    return PaymentEvent(
        event_id=event_id,
        gateway_type=gateway_type,
        event_type=event_type,
        transaction_id=transaction_id_for(event_type, obj),
        payload=obj,
    )
