# storefront/fulfillment/numbering.py
"""Order number allocation.

Numbers come from the ``order_number`` row of the `counters` table,
bumped with one atomic UPDATE and committed on its own, so two webhook
deliveries can never read the same value. A number whose order insert
later fails is simply skipped; numbers never repeat and never go down.
"""
import re

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..model import Counter, Order

SEQUENCE_NAME = "order_number"
PREFIX = "ORD-"
_TRAILING_INT = re.compile(r"(\d+)\s*$")


def format_order_number(value: int) -> str:
    return f"{PREFIX}{value:06d}"


def _latest_issued() -> int:
    # seed for databases that already hold orders numbered before the counter existed
    latest = db.session.execute(
        select(Order.order_number).order_by(Order.id.desc()).limit(1)
    ).scalar_one_or_none()
    m = _TRAILING_INT.search(latest or "")
    return int(m.group(1)) if m else 0


def _bump(name: str) -> int:
    result = db.session.execute(
        update(Counter).where(Counter.name == name).values(value=Counter.value + 1)
    )
    if result.rowcount == 1:
        value = db.session.execute(select(Counter.value).where(Counter.name == name)).scalar_one()
        db.session.commit()
        return int(value)

    seeded = _latest_issued() + 1
    db.session.add(Counter(name=name, value=seeded))
    try:
        db.session.commit()
    except IntegrityError:
        # another worker created the row first
        db.session.rollback()
        return _bump(name)
    return seeded


def next_order_number() -> str:
    return format_order_number(_bump(SEQUENCE_NAME))
