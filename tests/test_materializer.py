from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from storefront.extensions import db
from storefront.fulfillment import inventory, materializer
from storefront.fulfillment.materializer import compute_financials, materialize
from storefront.model import Customer, Notification, Order, OrderHistory, Product


def _session(lines, **extra):
    session = {
        "id": "cs_manual",
        "payment_intent": "pi_manual",
        "payment_status": "paid",
        "currency": "usd",
        "amount_subtotal": sum(li["amount_subtotal"] for li in lines),
        "amount_total": sum(li["amount_subtotal"] for li in lines),
        "total_details": {"amount_discount": 0, "amount_shipping": 0, "amount_tax": 0},
        "metadata": {},
        "customer_details": {"email": "ana@example.com", "name": "Ana Buyer", "address": None},
        "shipping_details": None,
        "line_items": {"data": lines},
    }
    session.update(extra)
    return session


def _line(product_id, unit_amount, quantity=1, stripe_id=None):
    return {
        "description": f"product {product_id}",
        "quantity": quantity,
        "amount_subtotal": unit_amount * quantity,
        "price": {
            "unit_amount": unit_amount,
            "product": {"id": stripe_id or f"prod_{product_id}", "metadata": {"product_id": str(product_id)}},
        },
    }


def test_metadata_discount_wins_over_gateway_total():
    money = compute_financials({
        "amount_subtotal": 2000,
        "amount_total": 1500,
        "total_details": {"amount_discount": 700, "amount_shipping": 0, "amount_tax": 0},
        "metadata": {"discount_amount": "5.00"},
    })
    assert money["discount"] == Decimal("5.00")
    assert money["total"] == Decimal("15.00")
    assert money["subtotal"] == Decimal("20.00")


def test_gateway_discount_used_without_metadata():
    money = compute_financials({
        "amount_total": 1500,
        "total_details": {"amount_discount": 500},
        "metadata": {},
    })
    assert money["discount"] == Decimal("5.00")
    assert money["subtotal"] == Decimal("15.00")


def test_missing_shipping_address_is_skipped(app, products):
    m = materialize(_session([_line(products[0].id, 1000)]), "pi_manual")

    assert m.created
    order = db.session.get(Order, m.order.id)
    assert order.shipping_address is None
    assert order.billing_address is None
    assert len(order.items) == 1
    assert not order.completeness()["shipping_address"]


def test_unresolvable_item_is_skipped(app, products):
    lines = [_line(products[0].id, 1000), _line(99999, 500, stripe_id="prod_gone")]
    m = materialize(_session(lines), "pi_manual")

    order = db.session.get(Order, m.order.id)
    assert len(order.items) == 1
    assert order.line_item_count == 2
    assert order.completeness()["complete"] is False
    assert OrderHistory.query.filter_by(order_id=order.id).count() == 1


def test_resolves_by_gateway_product_id(app, products):
    products[1].stripe_product_id = "prod_cedar"
    db.session.commit()
    line = _line(products[1].id, 1250, stripe_id="prod_cedar")
    line["price"]["product"]["metadata"] = {}

    m = materialize(_session([line]), "pi_manual")
    assert [i.product_id for i in m.items] == [products[1].id]


def test_second_materialize_returns_existing(app, products):
    first = materialize(_session([_line(products[0].id, 1000)]), "pi_manual")
    second = materialize(_session([_line(products[0].id, 1000)]), "pi_manual")

    assert first.created
    assert not second.created
    assert second.order.id == first.order.id
    assert Order.query.count() == 1


def test_inventory_failure_does_not_undo_order(post_event, products, paid_session, monkeypatch, mailer):
    def broken(product_id, quantity):
        raise RuntimeError("stock service down")

    monkeypatch.setattr(inventory, "decrement", broken)
    session = paid_session([(products[0], 1)])

    r = post_event("checkout.session.completed", session)

    assert r.status_code == 200
    outcomes = {o["name"]: o for o in r.get_json()["data"]["side_effects"]}
    assert outcomes["inventory"]["ok"] is False
    assert outcomes["confirmation"]["ok"] is True
    assert Order.query.count() == 1
    assert db.session.get(Product, products[0].id).quantity == 20
    assert len(mailer.outbox) == 1
    assert Notification.query.count() == 1


def test_missing_email_still_creates_order(post_event, products, paid_session, mailer):
    session = paid_session([(products[0], 1)], email=None)

    r = post_event("checkout.session.completed", session)

    assert r.status_code == 200
    outcomes = {o["name"]: o for o in r.get_json()["data"]["side_effects"]}
    assert outcomes["confirmation"]["ok"] is False
    assert Order.query.one().customer_email is None
    assert mailer.outbox == []


def test_mail_failure_is_reported(post_event, products, paid_session, mailer):
    mailer.configure(should_succeed=False)
    r = post_event("checkout.session.completed", paid_session([(products[0], 1)]))

    assert r.status_code == 200
    outcomes = {o["name"]: o for o in r.get_json()["data"]["side_effects"]}
    assert outcomes["confirmation"] == {"name": "confirmation", "ok": False, "detail": "Email delivery failed"}


@pytest.mark.parametrize("quantity,expected", [(2, 1), (5, -2)])
def test_decrement_does_not_clamp(app, products, quantity, expected):
    res = inventory.decrement(products[1].id, quantity)
    assert res.adjusted
    assert res.remaining == expected


def test_decrement_skips_untracked_and_missing(app, products):
    assert inventory.decrement(products[2].id, 1).reason == "stock not tracked"
    assert inventory.decrement(99999, 1).reason == "product not found"


def test_one_stock_failure_does_not_block_other_items(post_event, products, paid_session, monkeypatch):
    real_decrement = inventory.decrement
    failing_id = products[0].id

    def flaky(product_id, quantity):
        if product_id == failing_id:
            raise RuntimeError("row locked")
        return real_decrement(product_id, quantity)

    monkeypatch.setattr(inventory, "decrement", flaky)
    session = paid_session([(products[0], 1), (products[1], 1)])

    r = post_event("checkout.session.completed", session)

    assert r.status_code == 200
    outcomes = {o["name"]: o for o in r.get_json()["data"]["side_effects"]}
    assert outcomes["inventory"]["ok"] is False
    assert str(failing_id) in outcomes["inventory"]["detail"]
    assert db.session.get(Product, products[0].id).quantity == 20
    assert db.session.get(Product, products[1].id).quantity == 2


def test_customer_is_created_and_reused(app, products):
    first = _session([_line(products[0].id, 1000)])
    first["customer_details"] = {"email": "Ana@Example.com", "name": "Ana Buyer", "phone": "555-0100"}
    second = _session([_line(products[0].id, 1000)], id="cs_second")
    second["customer_details"] = {"email": "ana@example.com", "name": "Ana B."}

    a = materialize(first, "pi_first")
    b = materialize(second, "pi_second")

    assert Customer.query.count() == 1
    customer = Customer.query.one()
    assert customer.email == "ana@example.com"
    assert customer.phone == "555-0100"
    assert a.order.customer_id == customer.id
    assert b.order.customer_id == customer.id
    assert a.order.customer_email == "Ana@Example.com"


def test_order_without_email_has_no_customer(app, products):
    session = _session([_line(products[0].id, 1000)])
    session["customer_details"] = {"email": None, "name": "Anon"}

    m = materialize(session, "pi_manual")

    assert m.created
    assert m.order.customer_id is None
    assert Customer.query.count() == 0


def test_customer_failure_does_not_block_order(app, products, monkeypatch):
    def unavailable(email):
        raise OperationalError("SELECT customers", {}, Exception("database is locked"))

    monkeypatch.setattr(materializer, "_find_customer", unavailable)

    m = materialize(_session([_line(products[0].id, 1000)]), "pi_manual")

    assert m.created
    assert m.order.customer_id is None
    assert Order.query.count() == 1
    assert len(m.items) == 1
