# storefront/coupon/routes.py
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from flask import request
from sqlalchemy import func

from ..extensions import db
from ..model import Discount
from ..services.coupon_service import FIXED_AMOUNT, PERCENTAGE, evaluate_coupon, find_coupon_by_code
from ..utils.api import err, ok
from ..utils.decorators import role_at_least
from ..utils.money import to_string_money
from . import bp


def _parse_iso8601(s: str | None):
    if not s:
        return None
    s = s.strip()
    # support trailing 'Z' (UTC)
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)  # stored as naive UTC
    return dt


def _decimal(v):
    if v in (None, ""):
        return None
    try:
        d = Decimal(str(v))
    except (InvalidOperation, ValueError):
        raise ValueError(v) from None
    if not d.is_finite():
        raise ValueError(v)
    return d


@bp.post("/validate")
def validate_coupon():
    data = request.get_json(silent=True) or {}
    code = (data.get("code") or "").strip()
    total = data.get("order_total", data.get("orderTotal"))
    if not code or total in (None, ""):
        return err("Coupon code and order total are required", 400)
    try:
        subtotal = _decimal(total)
    except ValueError:
        return err("order_total must be a number", 400)

    rule = find_coupon_by_code(code)
    evaluation = evaluate_coupon(rule, subtotal)
    payload = {
        "valid": evaluation.valid,
        "coupon_id": rule.ref if rule and evaluation.valid else None,
        "discount_amount": to_string_money(evaluation.discount_amount),
        "type": rule.kind if rule else None,
        "value": to_string_money(rule.value) if rule else None,
        "description": rule.description if rule else None,
        "error": evaluation.error,
    }
    return ok("Coupon is valid" if evaluation.valid else "Coupon is not valid", payload)


@bp.post("")
@role_at_least("manager")
def create_coupon():
    data = request.get_json(silent=True) or {}
    code = (data.get("code") or "").strip().upper()
    dtype = (data.get("discount_type") or PERCENTAGE).lower().strip()

    if not code:
        return err("code is required")
    if dtype not in (PERCENTAGE, FIXED_AMOUNT):
        return err("discount_type must be 'percentage' or 'fixed_amount'")
    try:
        value = _decimal(data.get("discount_value")) or Decimal("0")
        min_purchase = _decimal(data.get("min_purchase_amount"))
        max_discount = _decimal(data.get("max_discount_amount"))
    except ValueError as e:
        return err(f"invalid amount: {e}")
    if value <= 0:
        return err("discount_value must be > 0")
    if dtype == PERCENTAGE and value > 100:
        return err("percentage discount cannot exceed 100")

    # unique case-insensitive
    if Discount.query.filter(func.lower(Discount.code) == code.lower()).first():
        return err("Coupon code already exists")

    starts_at = _parse_iso8601(data.get("starts_at"))
    expires_at = _parse_iso8601(data.get("expires_at"))
    if data.get("starts_at") and not starts_at:
        return err("Invalid datetime format for starts_at")
    if data.get("expires_at") and not expires_at:
        return err("Invalid datetime format for expires_at")

    d = Discount(
        code=code,
        description=data.get("description"),
        discount_type=dtype,
        discount_value=value,
        min_purchase_amount=min_purchase,
        max_discount_amount=max_discount,
        usage_limit=data.get("usage_limit"),
        usage_count=0,
        starts_at=starts_at,
        expires_at=expires_at,
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(d)
    db.session.commit()
    return ok("Coupon created", d.as_api(), 201)


@bp.get("")
@role_at_least("manager")
def list_coupons():
    q = Discount.query
    active = request.args.get("active")
    if active is not None:
        q = q.filter(Discount.is_active == (active.lower() == "true"))
    items = q.order_by(Discount.id.desc()).all()
    return ok("ok", {"items": [d.as_api() for d in items]})
