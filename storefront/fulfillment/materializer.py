# storefront/fulfillment/materializer.py
"""Builds the order aggregate from a completed checkout session.

The header row is committed first and is the durable record of the
purchase; items, addresses and the first history entry are written
after it, each on its own, and a failure in any of them is logged and
skipped rather than undoing the header.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import OrderPersistenceError
from ..extensions import db
from ..model import BillingAddress, Customer, Order, OrderHistory, OrderItem, Product, ShippingAddress
from ..utils.money import D, from_minor_units, round_money
from . import guard
from .numbering import next_order_number

logger = structlog.get_logger(__name__)


@dataclass
class MaterializedOrder:
    order: Order
    items: list[OrderItem] = field(default_factory=list)
    coupon_ref: str | None = None
    created: bool = True


# ---- reading the session ----------------------------------------------------

def _line_items(session: dict) -> list[dict]:
    li = session.get("line_items") or {}
    if isinstance(li, dict):
        return list(li.get("data") or [])
    return list(li)


def _metadata_discount(metadata: dict) -> Decimal | None:
    raw = (metadata or {}).get("discount_amount")
    if raw in (None, ""):
        return None
    try:
        return round_money(Decimal(str(raw)))
    except (InvalidOperation, ValueError):
        logger.warning("discount_metadata_unreadable", value=raw)
        return None


def compute_financials(session: dict) -> dict:
    """Money fields of the order, converted from gateway minor units."""
    totals = session.get("total_details") or {}
    shipping_minor = totals.get("amount_shipping")
    if shipping_minor is None:
        shipping_minor = (session.get("shipping_cost") or {}).get("amount_total")

    # the amount frozen at checkout wins over the gateway's own discount figure
    discount = _metadata_discount(session.get("metadata") or {})
    if discount is None:
        discount = from_minor_units(totals.get("amount_discount"))

    total = from_minor_units(session.get("amount_total"))
    subtotal = session.get("amount_subtotal")
    return {
        "total": total,
        "subtotal": from_minor_units(subtotal) if subtotal is not None else total,
        "tax": from_minor_units(totals.get("amount_tax")),
        "shipping": from_minor_units(shipping_minor),
        "discount": discount,
    }


def _product_ref(line: dict):
    price = line.get("price") or {}
    product = price.get("product")
    candidates = []
    stripe_product_id = None
    if isinstance(product, dict):
        candidates.append((product.get("metadata") or {}).get("product_id"))
        stripe_product_id = product.get("id")
    elif isinstance(product, str):
        stripe_product_id = product
    candidates.append((price.get("metadata") or {}).get("product_id"))
    candidates.append((line.get("metadata") or {}).get("product_id"))
    return [c for c in candidates if c not in (None, "")], stripe_product_id


def resolve_product(line: dict) -> Product | None:
    candidates, stripe_product_id = _product_ref(line)
    for c in candidates:
        try:
            p = db.session.get(Product, int(c))
        except (TypeError, ValueError):
            continue
        if p is not None:
            return p
    if stripe_product_id:
        return Product.query.filter_by(stripe_product_id=stripe_product_id).first()
    return None


def _address_fields(address: dict | None) -> dict | None:
    if not address or not any(address.get(k) for k in ("line1", "city", "postal_code", "country")):
        return None
    return {
        "line1": address.get("line1"),
        "line2": address.get("line2"),
        "city": address.get("city"),
        "region": address.get("state"),
        "postal_code": address.get("postal_code"),
        "country": address.get("country"),
    }


def _shipping_details(session: dict) -> dict | None:
    details = session.get("shipping_details")
    if not details:
        # newer API versions nest it under collected_information
        details = (session.get("collected_information") or {}).get("shipping_details")
    return details or None


# ---- writing the aggregate --------------------------------------------------

def _find_customer(email: str) -> Customer | None:
    return Customer.query.filter_by(email=email).first()


def link_customer(details: dict) -> Customer | None:
    """Get or create the customer row for the buyer's email.

    A database failure here leaves the order unlinked; it does not stop
    the order from being written.
    """
    email = (details.get("email") or "").strip().lower()
    if not email:
        return None
    try:
        customer = _find_customer(email)
        if customer is not None:
            return customer
        customer = Customer(email=email, name=details.get("name"), phone=details.get("phone"))
        db.session.add(customer)
        db.session.commit()
        return customer
    except IntegrityError:
        # created concurrently by another delivery
        db.session.rollback()
        return _find_customer(email)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("customer_link_failed", email=email)
        return None


def _insert_header(session: dict, transaction_id: str) -> tuple[Order, bool]:
    customer = session.get("customer_details") or {}
    money = compute_financials(session)
    linked = link_customer(customer)
    payment_status = "paid" if session.get("payment_status") in ("paid", "no_payment_required") else "pending"

    order = Order(
        order_number=next_order_number(),
        transaction_id=transaction_id,
        checkout_session_id=session.get("id"),
        payment_status=payment_status,
        fulfillment_status="unfulfilled",
        customer_email=customer.get("email"),
        customer_name=customer.get("name"),
        customer_phone=customer.get("phone"),
        customer_id=linked.id if linked is not None else None,
        currency=(session.get("currency") or "usd").upper(),
        line_item_count=len(_line_items(session)),
        **money,
    )
    db.session.add(order)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        existing = guard.find_order(transaction_id)
        if existing is not None:
            # a concurrent delivery of the same event won the insert
            logger.info("order_insert_raced", transaction_id=transaction_id, order_number=existing.order_number)
            return existing, False
        raise OrderPersistenceError("could not persist order header") from e
    except SQLAlchemyError as e:
        db.session.rollback()
        raise OrderPersistenceError("could not persist order header") from e
    return order, True


def _insert_items(order: Order, session: dict) -> list[OrderItem]:
    items = []
    for line in _line_items(session):
        product = resolve_product(line)
        if product is None:
            logger.warning(
                "order_item_skipped",
                order_number=order.order_number,
                reason="unresolvable product",
                description=line.get("description"),
            )
            continue

        qty = int(line.get("quantity") or 1)
        unit_amount = (line.get("price") or {}).get("unit_amount")
        if unit_amount is not None:
            unit_price = from_minor_units(unit_amount)
        else:
            unit_price = round_money(from_minor_units(line.get("amount_subtotal")) / qty)

        item = OrderItem(
            order_id=order.id,
            product_id=product.id,
            product_name=product.name or line.get("description"),
            quantity=qty,
            unit_price=unit_price,
            line_total=round_money(unit_price * D(qty)),
        )
        db.session.add(item)
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("order_item_skipped", order_number=order.order_number, product_id=product.id,
                             reason="insert failed")
            continue
        items.append(item)
    return items


def _insert_address(order: Order, model, name, address, phone=None, kind="shipping"):
    fields = _address_fields(address)
    if fields is None:
        logger.info("address_skipped", order_number=order.order_number, kind=kind, reason="absent")
        return None
    row = model(order_id=order.id, name=name, phone=phone, **fields)
    db.session.add(row)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("address_skipped", order_number=order.order_number, kind=kind, reason="insert failed")
        return None
    return row


def _insert_first_history(order: Order, note: str):
    db.session.add(OrderHistory(order_id=order.id, status_from=None, status_to="unfulfilled", note=note))
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("history_skipped", order_number=order.order_number)


def materialize(session: dict, transaction_id: str) -> MaterializedOrder:
    """Persist the order aggregate for a completed checkout session."""
    order, created = _insert_header(session, transaction_id)
    if not created:
        return MaterializedOrder(order=order, created=False)

    log = logger.bind(order_number=order.order_number, transaction_id=transaction_id)
    items = _insert_items(order, session)

    shipping = _shipping_details(session)
    _insert_address(order, ShippingAddress,
                    (shipping or {}).get("name"), (shipping or {}).get("address"),
                    phone=(shipping or {}).get("phone"), kind="shipping")
    customer = session.get("customer_details") or {}
    _insert_address(order, BillingAddress, customer.get("name"), customer.get("address"),
                    phone=customer.get("phone"), kind="billing")

    _insert_first_history(order, f"Order created from checkout session {session.get('id')}")

    log.info("order_materialized", items=len(items), expected_items=order.line_item_count,
             total=str(order.total))
    coupon_ref = (session.get("metadata") or {}).get("coupon_id") or None
    return MaterializedOrder(order=order, items=items, coupon_ref=coupon_ref, created=True)
