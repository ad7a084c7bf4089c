from decimal import Decimal

from storefront.extensions import db
from storefront.fulfillment.notifier import post_back_office_notice, render_confirmation, send_confirmation
from storefront.model import Notification, Order, OrderItem


def _order(app, products, discount=None):
    o = Order(order_number="ORD-000042", transaction_id="pi_42", customer_email="ana@example.com",
              total=Decimal("45.00"), discount=discount)
    db.session.add(o)
    db.session.commit()
    item = OrderItem(order_id=o.id, product_id=products[0].id, product_name="Vanilla Candle", quantity=2,
                     unit_price=Decimal("10.00"), line_total=Decimal("20.00"))
    db.session.add(item)
    db.session.commit()
    return o, [item]


def test_confirmation_is_sent(app, products, mailer):
    order, items = _order(app, products)

    res = send_confirmation(order, items, "ana@example.com", "Ana")

    assert res.sent
    assert res.message_id
    [mail] = mailer.outbox
    assert mail.to == "ana@example.com"
    assert mail.sender == "orders@candles.com"
    assert mail.subject == "Order Confirmation #ORD-000042 - Candles Store"
    assert "Vanilla Candle (x2)" in mail.body
    assert "Total: $45.00" in mail.body


def test_confirmation_without_email_fails(app, products, mailer):
    order, items = _order(app, products)
    res = send_confirmation(order, items, None, "Ana")
    assert not res.sent
    assert mailer.outbox == []


def test_confirmation_is_not_retried(app, products, mailer):
    order, items = _order(app, products)
    mailer.configure(should_succeed=False, failure_reason="smtp down")

    res = send_confirmation(order, items, "ana@example.com", "Ana")

    assert not res.sent
    assert res.error == "smtp down"
    assert mailer.outbox == []


def test_body_lists_discount(app, products):
    order, items = _order(app, products, discount=Decimal("5.00"))
    _, body = render_confirmation(order, items, None, "Candles Store")
    assert "Discount  -$5.00" in body
    assert body.startswith("Thank you for your order, there!")


def test_back_office_notice(app, products):
    order, _ = _order(app, products)
    note = post_back_office_notice(order)

    assert Notification.query.count() == 1
    assert note.user_id is None
    assert note.message == "New order ORD-000042: $45.00 from ana@example.com"
