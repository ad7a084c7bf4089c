# storefront/fulfillment/pipeline.py
"""Turns verified payment events into orders."""
from __future__ import annotations

from dataclasses import dataclass, field

import structlog
from sqlalchemy import update

from ..extensions import db
from ..gateway.port import PaymentGateway
from ..model import Order, OrderHistory
from ..model.types import utcnow
from ..payments.verifier import CHECKOUT_COMPLETED, PAYMENT_SUCCEEDED, PaymentEvent
from . import guard, tasks
from .materializer import materialize

logger = structlog.get_logger(__name__)

CREATED = "created"
DUPLICATE = "duplicate"
UPDATED = "updated"
UNCHANGED = "unchanged"
IGNORED = "ignored"


@dataclass
class ProcessResult:
    status: str
    order: Order | None = None
    side_effects: list = field(default_factory=list)
    reason: str | None = None

    def as_api(self):
        data = {"result": self.status}
        if self.order is not None:
            data["order_number"] = self.order.order_number
        if self.reason:
            data["reason"] = self.reason
        if self.side_effects:
            data["side_effects"] = [o.as_api() for o in self.side_effects]
        return data


def _handle_checkout_completed(event: PaymentEvent, gateway: PaymentGateway) -> ProcessResult:
    if guard.already_processed(event.transaction_id):
        logger.info("payment_event_duplicate", event_id=event.event_id, transaction_id=event.transaction_id)
        return ProcessResult(DUPLICATE, order=guard.find_order(event.transaction_id))

    # the event body is thin; line items and shipping come from the full session
    session = gateway.retrieve_checkout_session(event.payload["id"])
    m = materialize(session, event.transaction_id)
    if not m.created:
        return ProcessResult(DUPLICATE, order=m.order)

    outcomes = tasks.dispatch_side_effects(m)
    return ProcessResult(CREATED, order=m.order, side_effects=outcomes)


def _handle_payment_succeeded(event: PaymentEvent) -> ProcessResult:
    order = guard.find_order(event.transaction_id)
    if order is None:
        # never create an order from a bare payment; the checkout event will
        logger.info("payment_without_order", transaction_id=event.transaction_id)
        return ProcessResult(IGNORED, reason="no_order")

    previous = order.payment_status
    res = db.session.execute(
        update(Order)
        .where(Order.id == order.id, Order.payment_status != "paid")
        .values(payment_status="paid", updated_at=utcnow())
    )
    if res.rowcount != 1:
        db.session.rollback()
        return ProcessResult(UNCHANGED, order=order)

    db.session.add(OrderHistory(
        order_id=order.id,
        status_from=previous,
        status_to="paid",
        note=f"Payment confirmed ({event.event_id})",
    ))
    db.session.commit()
    db.session.refresh(order)
    logger.info("order_marked_paid", order_number=order.order_number, transaction_id=event.transaction_id)
    return ProcessResult(UPDATED, order=order)


def process_event(event: PaymentEvent, gateway: PaymentGateway) -> ProcessResult:
    if event.event_type == CHECKOUT_COMPLETED:
        return _handle_checkout_completed(event, gateway)
    if event.event_type == PAYMENT_SUCCEEDED:
        return _handle_payment_succeeded(event)
    logger.info("payment_event_ignored", event_id=event.event_id, gateway_type=event.gateway_type)
    return ProcessResult(IGNORED, reason="unhandled event type")
