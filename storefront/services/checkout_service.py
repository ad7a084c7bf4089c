# storefront/services/checkout_service.py
"""Checkout session initiation.

Turns a client-held `CartSnapshot` into a hosted payment session: live
stock is checked for every line, prices come from the catalogue, and the
coupon discount is computed once here and frozen into the session
metadata, where the webhook reads it back.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from uuid import uuid4

import structlog

from ..errors import CheckoutRejected, InvalidRequest
from ..gateway.port import CheckoutSessionRequest, CheckoutSessionResult, PaymentGateway, SessionLine
from ..model import Product
from ..utils.money import D, round_money, to_minor_units, to_string_money
from .coupon_service import evaluate_coupon, find_coupon_by_code, find_coupon_by_ref

logger = structlog.get_logger(__name__)


def _client_amount(value, field_name: str) -> Decimal:
    try:
        amount = D(value)
    except (InvalidOperation, ValueError):
        raise InvalidRequest(f"{field_name} must be a number") from None
    if not amount.is_finite():
        raise InvalidRequest(f"{field_name} must be a number")
    return amount


@dataclass(frozen=True)
class CartLine:
    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    image_ref: str | None = None


@dataclass(frozen=True)
class CouponApplication:
    coupon_id: str | None
    code: str | None
    discount_amount: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class CartSnapshot:
    lines: tuple[CartLine, ...]
    coupon: CouponApplication | None = None

    @classmethod
    def from_payload(cls, data: dict) -> "CartSnapshot":
        items = data.get("items") or []
        if not isinstance(items, list) or not items:
            raise InvalidRequest("No items provided")

        lines = []
        for raw in items:
            if not isinstance(raw, dict):
                raise InvalidRequest("each item must be an object")
            try:
                product_id = int(raw.get("product_id") or raw.get("productId") or raw.get("id"))
            except (TypeError, ValueError):
                raise InvalidRequest("each item needs a numeric product_id") from None
            try:
                qty = int(raw.get("quantity", raw.get("qty", 1)))
            except (TypeError, ValueError):
                raise InvalidRequest("quantity must be an integer") from None
            if qty < 1:
                raise InvalidRequest("quantity must be >= 1")
            lines.append(CartLine(
                product_id=product_id,
                name=(raw.get("name") or "").strip() or "Product",
                unit_price=_client_amount(raw.get("price") or raw.get("unit_price"), "price"),
                quantity=qty,
                image_ref=raw.get("image") or raw.get("image_url"),
            ))

        coupon = None
        c = data.get("coupon") or data.get("couponContext")
        if isinstance(c, dict) and (c.get("coupon_id") or c.get("couponId") or c.get("code")):
            coupon = CouponApplication(
                coupon_id=c.get("coupon_id") or c.get("couponId"),
                code=c.get("code"),
                discount_amount=_client_amount(c.get("discount_amount") or c.get("discountAmount"), "discount_amount"),
            )
        return cls(lines=tuple(lines), coupon=coupon)

    def requested_quantities(self) -> "OrderedDict[int, int]":
        wanted: OrderedDict[int, int] = OrderedDict()
        for line in self.lines:
            wanted[line.product_id] = wanted.get(line.product_id, 0) + line.quantity
        return wanted


@dataclass(frozen=True)
class StockShortage:
    product_id: int
    name: str
    requested: int
    available: int

    def as_api(self):
        return {
            "product_id": self.product_id,
            "name": self.name,
            "requested": self.requested,
            "available": self.available,
        }


def check_stock(snapshot: CartSnapshot) -> tuple[dict[int, Product], list[StockShortage]]:
    wanted = snapshot.requested_quantities()
    products = Product.query.filter(Product.id.in_(list(wanted))).all()
    pmap = {p.id: p for p in products}
    names = {line.product_id: line.name for line in snapshot.lines}

    shortages = []
    for pid, qty in wanted.items():
        p = pmap.get(pid)
        if not p or p.status is False:
            shortages.append(StockShortage(pid, names.get(pid, "Product"), qty, 0))
            continue
        if p.tracks_stock() and int(p.quantity or 0) < qty:
            shortages.append(StockShortage(pid, p.name, qty, max(0, int(p.quantity or 0))))
    return pmap, shortages


def _freeze_coupon(application: CouponApplication, subtotal: Decimal) -> tuple[Decimal, dict]:
    rule = find_coupon_by_ref(application.coupon_id) or find_coupon_by_code(application.code)
    evaluation = evaluate_coupon(rule, subtotal)
    if not evaluation.valid:
        raise CheckoutRejected(evaluation.error or "Invalid coupon", {"coupon": application.code})
    if application.discount_amount and round_money(application.discount_amount) != evaluation.discount_amount:
        logger.info(
            "coupon_amount_recomputed",
            coupon=rule.ref,
            client_amount=to_string_money(application.discount_amount),
            frozen_amount=to_string_money(evaluation.discount_amount),
        )
    metadata = {
        "coupon_id": rule.ref,
        "coupon_code": rule.code,
        "discount_amount": to_string_money(evaluation.discount_amount),
    }
    return evaluation.discount_amount, metadata


def initiate_checkout(
    snapshot: CartSnapshot,
    gateway: PaymentGateway,
    *,
    base_url: str,
    currency: str = "usd",
    shipping_countries: list[str] | None = None,
) -> CheckoutSessionResult:
    pmap, shortages = check_stock(snapshot)
    if shortages:
        detail = ", ".join(f"{s.name} (available: {s.available})" for s in shortages)
        raise CheckoutRejected(
            f"Insufficient stock for: {detail}",
            {"shortages": [s.as_api() for s in shortages]},
        )

    lines = []
    subtotal = D(0)
    for line in snapshot.lines:
        p = pmap[line.product_id]
        price = round_money(p.price)
        subtotal += price * line.quantity
        lines.append(SessionLine(
            product_id=p.id,
            name=p.name,
            unit_amount=to_minor_units(price),
            quantity=line.quantity,
            image_url=line.image_ref or p.image_url,
        ))

    metadata = {"checkout_ref": f"order-{uuid4().hex[:12]}"}
    discount = D(0)
    label = None
    if snapshot.coupon:
        discount, coupon_meta = _freeze_coupon(snapshot.coupon, round_money(subtotal))
        metadata.update(coupon_meta)
        label = coupon_meta["coupon_code"]

    base_url = base_url.rstrip("/")
    request = CheckoutSessionRequest(
        lines=lines,
        currency=currency,
        success_url=f"{base_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base_url}/checkout/canceled",
        shipping_countries=list(shipping_countries or []),
        discount_amount=to_minor_units(discount),
        discount_label=label,
        metadata=metadata,
    )
    result = gateway.create_checkout_session(request)
    logger.info(
        "checkout_session_created",
        session_id=result.session_id,
        lines=len(lines),
        subtotal=to_string_money(subtotal),
        discount=to_string_money(discount),
        coupon=metadata.get("coupon_id"),
    )
    return result
