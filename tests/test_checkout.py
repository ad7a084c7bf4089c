from decimal import Decimal

import pytest

from storefront.extensions import db
from storefront.model import Discount


def _item(p, qty):
    return {"product_id": p.id, "name": p.name, "price": "0.01", "quantity": qty}


def test_creates_session_with_catalogue_prices(client, gateway, products):
    r = client.post("/checkout", json={"items": [_item(products[0], 2), _item(products[2], 1)]})

    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["redirect_url"].startswith("https://checkout.fake/pay/")
    session = gateway.sessions[data["session_id"]]
    assert [li["price"]["unit_amount"] for li in session["line_items"]["data"]] == [1000, 2500]
    assert session["amount_total"] == 4500
    assert session["success_url"] == "http://shop.test/checkout/success?session_id={CHECKOUT_SESSION_ID}"
    assert session["cancel_url"] == "http://shop.test/checkout/canceled"
    assert session["metadata"]["checkout_ref"].startswith("order-")


def test_insufficient_stock_names_the_product(client, gateway, products):
    r = client.post("/checkout", json={"items": [_item(products[1], 10)]})

    assert r.status_code == 400
    body = r.get_json()
    assert "Cedar Candle (available: 3)" in body["message"]
    assert body["data"]["shortages"] == [
        {"product_id": products[1].id, "name": "Cedar Candle", "requested": 10, "available": 3}
    ]
    assert gateway.sessions == {}


def test_quantities_for_same_product_are_summed(client, gateway, products):
    r = client.post("/checkout", json={"items": [_item(products[1], 2), _item(products[1], 2)]})
    assert r.status_code == 400
    assert gateway.sessions == {}


def test_unknown_product_is_a_shortage(client, gateway, products):
    r = client.post("/checkout", json={"items": [{"product_id": 9999, "name": "Ghost", "quantity": 1}]})
    assert r.status_code == 400
    assert "Ghost (available: 0)" in r.get_json()["message"]


def test_empty_cart_is_rejected(client, products):
    r = client.post("/checkout", json={"items": []})
    assert r.status_code == 400
    assert r.get_json()["message"] == "No items provided"


def test_coupon_discount_is_frozen_into_metadata(client, gateway, products):
    d = Discount(code="SAVE10", discount_type="percentage", discount_value=Decimal("10"))
    db.session.add(d)
    db.session.commit()

    r = client.post("/checkout", json={
        "items": [_item(products[0], 3)],
        "coupon": {"coupon_id": f"dsc_{d.id}", "code": "SAVE10", "discount_amount": "99.00"},
    })

    assert r.status_code == 200
    session = gateway.sessions[r.get_json()["data"]["session_id"]]
    assert session["metadata"]["coupon_id"] == f"dsc_{d.id}"
    assert session["metadata"]["discount_amount"] == "3.00"
    assert session["total_details"]["amount_discount"] == 300
    assert session["amount_total"] == 2700


def test_invalid_coupon_rejects_checkout(client, gateway, products):
    d = Discount(code="BIG", discount_type="fixed_amount", discount_value=Decimal("5"),
                 min_purchase_amount=Decimal("100"))
    db.session.add(d)
    db.session.commit()

    r = client.post("/checkout", json={"items": [_item(products[0], 1)], "coupon": {"code": "BIG"}})

    assert r.status_code == 400
    assert r.get_json()["message"] == "Minimum order amount of $100.00 required"
    assert gateway.sessions == {}


def test_gateway_failure_is_500(client, gateway, products):
    gateway.configure(should_succeed=False)
    r = client.post("/checkout", json={"items": [_item(products[0], 1)]})
    assert r.status_code == 500
    assert r.get_json()["status"] is False


@pytest.mark.parametrize("price", ["abc", "NaN"])
def test_malformed_client_amount_is_rejected(client, gateway, products, price):
    item = {"product_id": products[0].id, "name": "Vanilla Candle", "price": price, "quantity": 1}
    r = client.post("/checkout", json={"items": [item]})
    assert r.status_code == 400
    assert r.get_json()["message"] == "price must be a number"
    assert gateway.sessions == {}
