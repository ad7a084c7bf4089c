# storefront/order/routes.py
from datetime import datetime, timedelta

from flask import request
from sqlalchemy import func, or_

from ..extensions import db
from ..model import FULFILLMENT_STATUSES, PAYMENT_STATUSES, Order, OrderHistory, OrderItem
from ..utils.api import err, ok
from ..utils.decorators import current_user_id, role_at_least
from . import bp


def _parse_day(s):
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


@bp.get("")
@role_at_least("manager")
def list_orders():
    """
    Query params:
      - page, per_page (max 100)
      - payment_status=pending|authorized|paid|refunded|failed
      - fulfillment_status=unfulfilled|partially_fulfilled|fulfilled|shipped|delivered
      - email=...
      - order_number=ORD-...
      - incomplete=true   (fewer stored items than the payment carried)
      - start=YYYY-MM-DD
      - end=YYYY-MM-DD (inclusive)
    """
    q = Order.query

    payment_status = request.args.get("payment_status")
    fulfillment_status = request.args.get("fulfillment_status")
    email = request.args.get("email")
    number = request.args.get("order_number")
    start = request.args.get("start")
    end = request.args.get("end")

    if payment_status: q = q.filter(Order.payment_status == payment_status)
    if fulfillment_status: q = q.filter(Order.fulfillment_status == fulfillment_status)
    if email: q = q.filter(func.lower(Order.customer_email) == email.strip().lower())
    if number: q = q.filter(Order.order_number == number.strip().upper())

    if (request.args.get("incomplete") or "").lower() == "true":
        stored = (
            db.select(func.count(OrderItem.id))
            .where(OrderItem.order_id == Order.id)
            .scalar_subquery()
        )
        q = q.filter(or_(stored == 0, stored < Order.line_item_count))

    if start:
        start_dt = _parse_day(start)
        if start_dt is None:
            return err("start must be YYYY-MM-DD")
        q = q.filter(Order.created_at >= start_dt)
    if end:
        end_dt = _parse_day(end)
        if end_dt is None:
            return err("end must be YYYY-MM-DD")
        # make end inclusive for the whole day
        q = q.filter(Order.created_at < end_dt + timedelta(days=1))

    try:
        page = max(int(request.args.get("page", 1)), 1)
        per = min(max(int(request.args.get("per_page", 20)), 1), 100)
    except ValueError:
        return err("page and per_page must be integers")

    q = q.order_by(Order.created_at.desc(), Order.id.desc())
    paged = q.paginate(page=page, per_page=per, error_out=False)

    return ok("orders", {
        "page": page,
        "per_page": per,
        "total": paged.total,
        "items": [o.as_api() for o in paged.items],
    })


@bp.get("/<int:order_id>")
@role_at_least("manager")
def get_order(order_id: int):
    o = db.session.get(Order, order_id)
    if not o:
        return err("order not found", 404)
    return ok("order", o.as_api(detail=True))


@bp.patch("/<int:order_id>/status")
@role_at_least("manager")
def update_status(order_id: int):
    o = db.session.get(Order, order_id)
    if not o:
        return err("order not found", 404)

    data = request.get_json(silent=True) or {}
    payment_status = data.get("payment_status")
    fulfillment_status = data.get("fulfillment_status")
    note = (data.get("note") or "").strip() or None

    if payment_status is None and fulfillment_status is None:
        return err("payment_status or fulfillment_status is required")
    if payment_status is not None and payment_status not in PAYMENT_STATUSES:
        return err(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")
    if fulfillment_status is not None and fulfillment_status not in FULFILLMENT_STATUSES:
        return err(f"fulfillment_status must be one of: {', '.join(FULFILLMENT_STATUSES)}")

    actor = current_user_id()

    changed = []
    for field, new in (("payment_status", payment_status), ("fulfillment_status", fulfillment_status)):
        old = getattr(o, field)
        if new is None or new == old:
            continue
        setattr(o, field, new)
        db.session.add(OrderHistory(order_id=o.id, status_from=old, status_to=new, note=note, created_by=actor))
        changed.append(field)

    if not changed:
        return ok("status unchanged", o.as_api(detail=True))
    db.session.commit()
    db.session.refresh(o)
    return ok("status updated", {**o.as_api(detail=True), "changed": changed})
