"""In-memory payment gateway for development and testing.

Sessions are kept as plain dicts in the same shape the Stripe adapter
returns from `retrieve_checkout_session`, so the webhook pipeline runs
unchanged against either adapter.
"""

import copy
from uuid import uuid4

from ..errors import GatewayError
from .port import CheckoutSessionRequest, CheckoutSessionResult, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "gateway unavailable"
        self.sessions: dict[str, dict] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "gateway unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_checkout_session(self, request: CheckoutSessionRequest) -> CheckoutSessionResult:
        self.calls.append({"method": "create_checkout_session", "request": request})
        if not self.should_succeed:
            raise GatewayError(f"could not create checkout session: {self.failure_reason}")

        session_id = f"cs_test_{uuid4().hex[:16]}"
        line_items = []
        for line in request.lines:
            line_amount = line.unit_amount * line.quantity
            line_items.append({
                "id": f"li_{uuid4().hex[:12]}",
                "description": line.name,
                "quantity": line.quantity,
                "amount_subtotal": line_amount,
                "amount_total": line_amount,
                "price": {
                    "unit_amount": line.unit_amount,
                    "product": {
                        "id": f"prod_fake_{line.product_id}",
                        "name": line.name,
                        "metadata": {"product_id": str(line.product_id)},
                    },
                },
            })
        subtotal = sum(li["amount_subtotal"] for li in line_items)
        discount = min(request.discount_amount, subtotal)

        url = f"https://checkout.fake/pay/{session_id}"
        self.sessions[session_id] = {
            "id": session_id,
            "object": "checkout.session",
            "url": url,
            "mode": "payment",
            "currency": request.currency,
            "payment_intent": None,
            "payment_status": "unpaid",
            "amount_subtotal": subtotal,
            "amount_total": subtotal - discount,
            "total_details": {"amount_discount": discount, "amount_shipping": 0, "amount_tax": 0},
            "metadata": dict(request.metadata),
            "customer_details": None,
            "shipping_details": None,
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "line_items": {"object": "list", "data": line_items},
        }
        return CheckoutSessionResult(session_id=session_id, url=url)

    def complete_session(
        self,
        session_id: str,
        *,
        email: str | None = "customer@example.com",
        name: str | None = "Test Customer",
        shipping_address: dict | None = None,
        billing_address: dict | None = None,
    ) -> dict:
        """Mark a session paid, the way the hosted page would after a successful card payment."""
        session = self.sessions[session_id]
        session["payment_intent"] = session.get("payment_intent") or f"pi_fake_{uuid4().hex[:16]}"
        session["payment_status"] = "paid"
        session["status"] = "complete"
        session["customer_details"] = {
            "email": email,
            "name": name,
            "phone": None,
            "address": billing_address,
        }
        if shipping_address is not None:
            session["shipping_details"] = {"name": name, "address": shipping_address}
        return copy.deepcopy(session)

    def retrieve_checkout_session(self, session_id: str) -> dict:
        self.calls.append({"method": "retrieve_checkout_session", "session_id": session_id})
        if not self.should_succeed:
            raise GatewayError(f"could not retrieve checkout session {session_id}")
        try:
            return copy.deepcopy(self.sessions[session_id])
        except KeyError:
            raise GatewayError(f"unknown checkout session {session_id}") from None
