# storefront/fulfillment/inventory.py
from dataclasses import dataclass

import structlog
from sqlalchemy import func, update

from ..extensions import db
from ..model import Product

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AdjustmentResult:
    product_id: int
    adjusted: bool
    remaining: int | None = None
    reason: str | None = None


def decrement(product_id: int, quantity: int) -> AdjustmentResult:
    """Take `quantity` units of a stock-tracked product off the shelf.

    The UPDATE is relative (quantity = quantity - n) so concurrent orders
    never overwrite each other's decrements. Stock is allowed to go below
    zero; that is reported as an oversell for operators to resolve.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        return AdjustmentResult(product_id, False, reason="product not found")
    if not product.tracks_stock():
        return AdjustmentResult(product_id, False, remaining=product.quantity, reason="stock not tracked")

    db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(quantity=func.coalesce(Product.quantity, 0) - int(quantity))
    )
    db.session.commit()

    remaining = db.session.execute(
        db.select(Product.quantity).where(Product.id == product_id)
    ).scalar_one()
    if remaining < 0:
        logger.warning("stock_oversold", product_id=product_id, remaining=remaining)
    else:
        logger.info("stock_decremented", product_id=product_id, quantity=quantity, remaining=remaining)
    return AdjustmentResult(product_id, True, remaining=remaining)
