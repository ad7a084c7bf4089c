# storefront/fulfillment/guard.py
from ..extensions import db
from ..model import Order


def find_order(transaction_id: str | None) -> Order | None:
    if not transaction_id:
        return None
    return db.session.execute(
        db.select(Order).where(Order.transaction_id == transaction_id)
    ).scalar_one_or_none()


def already_processed(transaction_id: str | None) -> bool:
    """True once an order exists for this gateway transaction."""
    return find_order(transaction_id) is not None
