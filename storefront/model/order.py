# storefront/model/order.py
from ..extensions import db
from .types import utcnow

PAYMENT_STATUSES = ("pending", "authorized", "paid", "refunded", "failed")
FULFILLMENT_STATUSES = ("unfulfilled", "partially_fulfilled", "fulfilled", "shipped", "delivered")


def _money(v):
    return float(v or 0)


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), unique=True, nullable=False, index=True)  # e.g. "ORD-000042"

    # at most one order per gateway transaction
    transaction_id = db.Column(db.String(255), unique=True, nullable=False, index=True)
    checkout_session_id = db.Column(db.String(255), index=True)

    payment_status = db.Column(db.String(20), default="pending", index=True)
    fulfillment_status = db.Column(db.String(20), default="unfulfilled", index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)

    # Customer snapshot
    customer_email = db.Column(db.String(255), index=True)
    customer_name = db.Column(db.String(255))
    customer_phone = db.Column(db.String(50))

    # Money snapshot
    currency = db.Column(db.String(3), default="USD")
    subtotal = db.Column(db.Numeric(12, 2))
    tax = db.Column(db.Numeric(12, 2))
    shipping = db.Column(db.Numeric(12, 2))
    discount = db.Column(db.Numeric(12, 2))
    total = db.Column(db.Numeric(12, 2))

    # how many line items the payment event carried; lets operators spot partial orders
    line_item_count = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id.asc()",
    )
    shipping_address = db.relationship(
        "ShippingAddress", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )
    billing_address = db.relationship(
        "BillingAddress", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )
    history = db.relationship(
        "OrderHistory",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderHistory.id.asc()",
    )

    def completeness(self):
        expected = int(self.line_item_count or 0)
        return {
            "items": len(self.items),
            "expected_items": expected,
            "shipping_address": self.shipping_address is not None,
            "billing_address": self.billing_address is not None,
            "complete": len(self.items) >= expected and len(self.items) > 0,
        }

    def as_api(self, detail=False):
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "transaction_id": self.transaction_id,
            "checkout_session_id": self.checkout_session_id,
            "payment_status": self.payment_status,
            "fulfillment_status": self.fulfillment_status,
            "customer": {
                "id": self.customer_id,
                "email": self.customer_email,
                "name": self.customer_name,
                "phone": self.customer_phone,
            },
            "money": {
                "currency": self.currency,
                "subtotal": _money(self.subtotal),
                "tax": _money(self.tax),
                "shipping": _money(self.shipping),
                "discount": _money(self.discount),
                "total": _money(self.total),
            },
            "completeness": self.completeness(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if detail:
            data["items"] = [i.as_api() for i in self.items]
            data["shipping_address"] = self.shipping_address.as_api() if self.shipping_address else None
            data["billing_address"] = self.billing_address.as_api() if self.billing_address else None
            data["history"] = [h.as_api() for h in self.history]
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255))

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2))
    line_total = db.Column(db.Numeric(12, 2))

    def as_api(self):
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "line_total": _money(self.line_total),
        }


class _AddressMixin:
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255))
    line1 = db.Column(db.String(255))
    line2 = db.Column(db.String(255))
    city = db.Column(db.String(120))
    region = db.Column(db.String(120))
    postal_code = db.Column(db.String(32))
    country = db.Column(db.String(2))
    phone = db.Column(db.String(50))

    def as_api(self):
        return {
            "name": self.name,
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "region": self.region,
            "postal_code": self.postal_code,
            "country": self.country,
            "phone": self.phone,
        }


class ShippingAddress(_AddressMixin, db.Model):
    __tablename__ = "shipping_addresses"
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)


class BillingAddress(_AddressMixin, db.Model):
    __tablename__ = "billing_addresses"
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)


class OrderHistory(db.Model):
    """Append-only audit trail; the first entry of an order has status_from=None."""
    __tablename__ = "order_history"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    status_from = db.Column(db.String(20), nullable=True)
    status_to = db.Column(db.String(20), nullable=False)
    note = db.Column(db.String(255))
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def as_api(self):
        return {
            "status_from": self.status_from,
            "status_to": self.status_to,
            "note": self.note,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
