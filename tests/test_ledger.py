from decimal import Decimal

from storefront.extensions import db
from storefront.fulfillment.ledger import DUPLICATE, RECORDED, UNKNOWN_COUPON, CouponLedger
from storefront.model import Coupon, CouponUsage, Discount, Order


def _order(tx="pi_1"):
    o = Order(order_number=f"ORD-{tx}", transaction_id=tx, total=Decimal("10.00"))
    db.session.add(o)
    db.session.commit()
    return o


def test_records_once_per_order(app):
    d = Discount(code="SAVE5", discount_type="fixed_amount", discount_value=Decimal("5"), usage_count=0)
    db.session.add(d)
    db.session.commit()
    order = _order()
    ledger = CouponLedger()

    assert ledger.record_usage(f"dsc_{d.id}", order.id, Decimal("5")) is True
    assert ledger.record_usage(f"dsc_{d.id}", order.id, Decimal("5")) is False

    assert db.session.get(Discount, d.id).usage_count == 1
    assert CouponUsage.query.count() == 1


def test_separate_orders_each_count(app):
    d = Discount(code="SAVE5", discount_type="fixed_amount", discount_value=Decimal("5"), usage_count=3)
    db.session.add(d)
    db.session.commit()
    ledger = CouponLedger()

    ledger.record_usage(f"dsc_{d.id}", _order("pi_a").id, Decimal("5"))
    ledger.record_usage(f"dsc_{d.id}", _order("pi_b").id, Decimal("5"))

    assert db.session.get(Discount, d.id).usage_count == 5


def test_legacy_coupon_counter(app):
    c = Coupon(code="OLD10", ctype="percent", value=10, times_used=0)
    db.session.add(c)
    db.session.commit()

    assert CouponLedger().record_usage(f"cpn_{c.id}", _order().id, Decimal("1.00"))
    assert db.session.get(Coupon, c.id).times_used == 1


def test_unknown_ref_changes_nothing(app):
    order = _order()
    assert CouponLedger().record_usage("dsc_404", order.id, Decimal("1")) is False
    assert CouponLedger().record_usage("not-a-ref", order.id, Decimal("1")) is False
    assert CouponUsage.query.count() == 0


def test_record_says_why_nothing_was_counted(app):
    d = Discount(code="SAVE5", discount_type="fixed_amount", discount_value=Decimal("5"), usage_count=0)
    db.session.add(d)
    db.session.commit()
    order = _order()
    ledger = CouponLedger()

    assert ledger.record("dsc_404", order.id, Decimal("5")) == UNKNOWN_COUPON
    assert ledger.record(f"dsc_{d.id}", order.id, Decimal("5")) == RECORDED
    assert ledger.record(f"dsc_{d.id}", order.id, Decimal("5")) == DUPLICATE
