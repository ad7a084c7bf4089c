# storefront/fulfillment/tasks.py
"""Side effects of a newly created order.

Each task runs independently after the order header is committed. A task
that fails is logged and reported in its outcome; it never undoes the
order or stops the remaining tasks.
"""
from __future__ import annotations

from dataclasses import dataclass

import structlog

from ..extensions import db
from . import inventory, notifier
from .ledger import DUPLICATE, RECORDED, UNKNOWN_COUPON, CouponLedger
from .materializer import MaterializedOrder

logger = structlog.get_logger(__name__)


class TaskFailed(Exception):
    """A task finished but could not do all of its work; already logged."""


@dataclass(frozen=True)
class TaskOutcome:
    name: str
    ok: bool
    detail: str | None = None

    def as_api(self):
        return {"name": self.name, "ok": self.ok, "detail": self.detail}


def adjust_inventory(m: MaterializedOrder) -> str:
    adjusted, failed = 0, []
    for item in m.items:
        # one product's failure must not keep stock on the others
        try:
            res = inventory.decrement(item.product_id, item.quantity)
        except Exception:
            db.session.rollback()
            logger.exception("stock_adjust_failed", order_number=m.order.order_number,
                             product_id=item.product_id)
            failed.append(item.product_id)
            continue
        if res.adjusted:
            adjusted += 1
    if failed:
        raise TaskFailed(f"stock not adjusted for products {', '.join(map(str, failed))}")
    return f"{adjusted} of {len(m.items)} products adjusted"


_COUPON_DETAILS = {
    RECORDED: "usage recorded",
    DUPLICATE: "usage already recorded",
}


def record_coupon(m: MaterializedOrder) -> str:
    if not m.coupon_ref:
        return "no coupon"
    result = CouponLedger().record(m.coupon_ref, m.order.id, m.order.discount or 0)
    if result == UNKNOWN_COUPON:
        raise TaskFailed(f"coupon {m.coupon_ref} no longer exists")
    return _COUPON_DETAILS[result]


def send_confirmation(m: MaterializedOrder) -> str:
    order = m.order
    res = notifier.send_confirmation(order, m.items, order.customer_email, order.customer_name)
    if not res.sent:
        raise TaskFailed(res.error or "confirmation not sent")
    return res.message_id


def post_back_office_notice(m: MaterializedOrder) -> str:
    note = notifier.post_back_office_notice(m.order)
    return f"notification {note.id}"


SIDE_EFFECTS = (
    ("inventory", adjust_inventory),
    ("coupon", record_coupon),
    ("confirmation", send_confirmation),
    ("back_office_notice", post_back_office_notice),
)


def dispatch_side_effects(m: MaterializedOrder) -> list[TaskOutcome]:
    outcomes = []
    log = logger.bind(order_number=m.order.order_number)
    for name, task in SIDE_EFFECTS:
        try:
            detail = task(m)
        except TaskFailed as e:
            log.warning("side_effect_failed", task=name, error=str(e))
            outcomes.append(TaskOutcome(name, False, str(e)))
            continue
        except Exception as e:
            db.session.rollback()
            log.exception("side_effect_failed", task=name)
            outcomes.append(TaskOutcome(name, False, str(e)))
            continue
        outcomes.append(TaskOutcome(name, True, detail))
    log.info("side_effects_dispatched", failed=[o.name for o in outcomes if not o.ok])
    return outcomes
