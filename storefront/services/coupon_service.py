# storefront/services/coupon_service.py
"""Coupon rules and the coupon store.

Two table shapes hold redeemable codes (`discounts` and the legacy
`coupon`). The store normalizes both into a `CouponRule` carrying an
opaque ``ref``; everything above this module works with rules and refs
only.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, update

from ..extensions import db
from ..model import Coupon, Discount
from ..model.types import utcnow
from ..utils.money import D, round_money

PERCENTAGE = "percentage"
FIXED_AMOUNT = "fixed_amount"

_DISCOUNT_PREFIX = "dsc_"
_LEGACY_PREFIX = "cpn_"


@dataclass(frozen=True)
class CouponRule:
    ref: str
    code: str
    kind: str                      # PERCENTAGE | FIXED_AMOUNT
    value: Decimal
    active: bool = True
    min_purchase: Decimal | None = None
    max_discount: Decimal | None = None
    usage_limit: int | None = None
    usage_count: int = 0
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    description: str | None = None


@dataclass(frozen=True)
class CouponEvaluation:
    valid: bool
    discount_amount: Decimal = Decimal("0.00")
    error: str | None = None


# ---- store ------------------------------------------------------------------

def _from_discount(d: Discount) -> CouponRule:
    return CouponRule(
        ref=f"{_DISCOUNT_PREFIX}{d.id}",
        code=d.code,
        kind=FIXED_AMOUNT if d.discount_type == FIXED_AMOUNT else PERCENTAGE,
        value=D(d.discount_value),
        active=bool(d.is_active),
        min_purchase=D(d.min_purchase_amount) if d.min_purchase_amount is not None else None,
        max_discount=D(d.max_discount_amount) if d.max_discount_amount is not None else None,
        usage_limit=d.usage_limit,
        usage_count=int(d.usage_count or 0),
        starts_at=d.starts_at,
        expires_at=d.expires_at,
        description=d.description or f"{d.code} discount",
    )


def _from_legacy(c: Coupon) -> CouponRule:
    return CouponRule(
        ref=f"{_LEGACY_PREFIX}{c.id}",
        code=c.code,
        kind=FIXED_AMOUNT if (c.ctype or "").lower() == "fixed" else PERCENTAGE,
        value=D(c.value),
        active=bool(c.active),
        min_purchase=D(c.min_subtotal) if c.min_subtotal else None,
        usage_limit=c.max_uses,
        usage_count=int(c.times_used or 0),
        starts_at=c.starts_at,
        expires_at=c.ends_at,
        description=f"{c.code} discount",
    )


def _split_ref(ref: str | None) -> tuple[type | None, int | None]:
    ref = (ref or "").strip()
    for prefix, model in ((_DISCOUNT_PREFIX, Discount), (_LEGACY_PREFIX, Coupon)):
        if ref.startswith(prefix) and ref[len(prefix):].isdigit():
            return model, int(ref[len(prefix):])
    return None, None


def find_coupon_by_code(code: str | None) -> CouponRule | None:
    code = (code or "").strip()
    if not code:
        return None
    d = Discount.query.filter(func.upper(Discount.code) == code.upper()).first()
    if d:
        return _from_discount(d)
    c = Coupon.query.filter(func.upper(Coupon.code) == code.upper()).first()
    if c:
        return _from_legacy(c)
    return None


def find_coupon_by_ref(ref: str | None) -> CouponRule | None:
    model, pk = _split_ref(ref)
    if model is None:
        return None
    row = db.session.get(model, pk)
    if row is None:
        return None
    return _from_discount(row) if model is Discount else _from_legacy(row)


def increment_usage(ref: str) -> bool:
    """Atomic +1 on whichever counter the coupon's shape keeps. Caller commits."""
    model, pk = _split_ref(ref)
    if model is Discount:
        stmt = update(Discount).where(Discount.id == pk).values(usage_count=Discount.usage_count + 1)
    elif model is Coupon:
        stmt = update(Coupon).where(Coupon.id == pk).values(times_used=Coupon.times_used + 1)
    else:
        return False
    return db.session.execute(stmt).rowcount == 1


# ---- rules ------------------------------------------------------------------

def evaluate_coupon(rule: CouponRule | None, subtotal, now: datetime | None = None) -> CouponEvaluation:
    """Pure: does `rule` apply to an order of `subtotal`, and for how much."""
    if rule is None or not rule.active:
        return CouponEvaluation(False, error="Invalid or inactive coupon code")

    subtotal = round_money(subtotal)
    now = now or utcnow()

    if rule.min_purchase is not None and subtotal < rule.min_purchase:
        return CouponEvaluation(False, error=f"Minimum order amount of ${rule.min_purchase:.2f} required")
    if rule.usage_limit is not None and rule.usage_count >= rule.usage_limit:
        return CouponEvaluation(False, error="Coupon usage limit exceeded")
    if rule.expires_at and rule.expires_at < now:
        return CouponEvaluation(False, error="This coupon has expired")
    if rule.starts_at and rule.starts_at > now:
        return CouponEvaluation(False, error="This coupon is not yet active")

    if rule.kind == PERCENTAGE:
        pct = min(rule.value, D(100))
        amount = subtotal * pct / D(100)
        if rule.max_discount is not None and amount > rule.max_discount:
            amount = rule.max_discount
    else:
        amount = min(rule.value, subtotal)

    amount = max(D(0), round_money(amount))
    return CouponEvaluation(True, discount_amount=amount)
