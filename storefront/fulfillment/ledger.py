# storefront/fulfillment/ledger.py
from decimal import Decimal

import structlog
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..model import CouponUsage
from ..services.coupon_service import find_coupon_by_ref, increment_usage
from ..utils.money import round_money

logger = structlog.get_logger(__name__)

RECORDED = "recorded"
DUPLICATE = "duplicate"
UNKNOWN_COUPON = "unknown_coupon"


class CouponLedger:
    """Records coupon redemptions, once per (coupon, order)."""

    def record(self, coupon_ref: str, order_id: int, discount_amount: Decimal) -> str:
        """Count one redemption; returns RECORDED, DUPLICATE or UNKNOWN_COUPON."""
        rule = find_coupon_by_ref(coupon_ref)
        if rule is None:
            logger.warning("coupon_usage_unknown_coupon", coupon=coupon_ref, order_id=order_id)
            return UNKNOWN_COUPON

        db.session.add(CouponUsage(
            coupon_ref=rule.ref,
            order_id=order_id,
            discount_amount=round_money(discount_amount),
        ))
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            logger.info("coupon_usage_already_recorded", coupon=rule.ref, order_id=order_id)
            return DUPLICATE

        increment_usage(rule.ref)
        db.session.commit()
        logger.info("coupon_usage_recorded", coupon=rule.ref, code=rule.code, order_id=order_id,
                    discount=str(round_money(discount_amount)))
        return RECORDED

    def record_usage(self, coupon_ref: str, order_id: int, discount_amount: Decimal) -> bool:
        """True only when this call counted the redemption."""
        return self.record(coupon_ref, order_id, discount_amount) == RECORDED
