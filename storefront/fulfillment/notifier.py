# storefront/fulfillment/notifier.py
"""Order confirmation and back-office notices.

Both are best effort and attempted once per newly created order; a
failure is reported to the caller, never retried here.
"""
from __future__ import annotations

from dataclasses import dataclass

import structlog
from flask import current_app

from ..extensions import db
from ..model import Notification, Order, OrderItem
from ..services.mailer import MailError, OutgoingMail, get_mailer

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    sent: bool
    message_id: str | None = None
    error: str | None = None


def render_confirmation(order: Order, items: list[OrderItem], customer_name: str | None, store_name: str):
    subject = f"Order Confirmation #{order.order_number} - {store_name}"
    lines = [
        f"Thank you for your order, {customer_name or 'there'}!",
        "We've received your order and will begin processing it shortly.",
        "",
        f"Order #{order.order_number}",
    ]
    for it in items:
        lines.append(f"  {it.product_name} (x{it.quantity})  ${float(it.line_total or 0):.2f}")
    if order.discount:
        lines.append(f"  Discount  -${float(order.discount):.2f}")
    lines += [
        f"Total: ${float(order.total or 0):.2f}",
        "",
        "You'll receive a shipping confirmation email once your order is on its way.",
        "",
        store_name,
    ]
    return subject, "\n".join(lines)


def send_confirmation(order: Order, items: list[OrderItem], customer_email: str | None,
                      customer_name: str | None) -> DispatchResult:
    if not customer_email:
        logger.warning("confirmation_failed", order_number=order.order_number, error="no customer email")
        return DispatchResult(False, error="no customer email")

    store_name = current_app.config.get("STORE_NAME", "Store")
    subject, body = render_confirmation(order, items, customer_name, store_name)
    mail = OutgoingMail(
        to=customer_email,
        subject=subject,
        body=body,
        sender=current_app.config.get("MAIL_DEFAULT_SENDER"),
    )
    try:
        message_id = get_mailer().send(mail)
    except MailError as e:
        logger.warning("confirmation_failed", order_number=order.order_number, error=str(e))
        return DispatchResult(False, error=str(e))

    logger.info("confirmation_sent", order_number=order.order_number, message_id=message_id)
    return DispatchResult(True, message_id=message_id)


def post_back_office_notice(order: Order) -> Notification:
    note = Notification(
        title="New order",
        message=f"New order {order.order_number}: ${float(order.total or 0):.2f} from "
                f"{order.customer_email or 'unknown customer'}",
    )
    db.session.add(note)
    db.session.commit()
    return note
