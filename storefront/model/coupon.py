# --- storefront/model/coupon.py ---

from ..extensions import db
from sqlalchemy.sql import func
from .types import utcnow


class Discount(db.Model):
    """Current coupon shape, maintained from the back office."""
    __tablename__ = "discounts"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    description = db.Column(db.String(255))

    # "percentage" or "fixed_amount"
    discount_type = db.Column(db.String(16), nullable=False, default="percentage")
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Optional constraints
    min_purchase_amount = db.Column(db.Numeric(12, 2), nullable=True)
    max_discount_amount = db.Column(db.Numeric(12, 2), nullable=True)   # cap for percentage discounts
    usage_limit = db.Column(db.Integer, nullable=True)
    usage_count = db.Column(db.Integer, nullable=False, default=0)
    starts_at = db.Column(db.DateTime, nullable=True)
    expires_at = db.Column(db.DateTime, nullable=True)

    is_active = db.Column(db.Boolean, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": float(self.discount_value or 0),
            "min_purchase_amount": float(self.min_purchase_amount) if self.min_purchase_amount is not None else None,
            "max_discount_amount": float(self.max_discount_amount) if self.max_discount_amount is not None else None,
            "usage_limit": self.usage_limit,
            "usage_count": self.usage_count,
            "starts_at": self.starts_at.isoformat() if self.starts_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "is_active": self.is_active,
        }


class Coupon(db.Model):
    """Legacy coupon shape. Still redeemable; counted through `times_used`."""
    __tablename__ = "coupon"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)

    # "percent" or "fixed"
    ctype = db.Column(db.String(16), nullable=False, default="percent")
    value = db.Column(db.Float, nullable=False, default=0.0)

    active = db.Column(db.Boolean, default=True, index=True)

    min_subtotal = db.Column(db.Float, nullable=True)      # require cart subtotal >= this
    max_uses = db.Column(db.Integer, nullable=True)        # global usage cap
    times_used = db.Column(db.Integer, nullable=False, default=0)
    starts_at = db.Column(db.DateTime, nullable=True)
    ends_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, server_default=func.now())


class CouponUsage(db.Model):
    __tablename__ = "coupon_usage"
    __table_args__ = (
        db.UniqueConstraint("coupon_ref", "order_id", name="uq_coupon_usage_coupon_order"),
    )

    id = db.Column(db.Integer, primary_key=True)
    coupon_ref = db.Column(db.String(32), nullable=False, index=True)   # "dsc_<id>" | "cpn_<id>"
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    used_at = db.Column(db.DateTime, default=utcnow)
