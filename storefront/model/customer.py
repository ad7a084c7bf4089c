# storefront/model/customer.py
from ..extensions import db
from .types import utcnow


class Customer(db.Model):
    """A buyer, one row per email; orders keep their own snapshot of the details."""
    __tablename__ = "customers"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)  # stored lower-case
    name = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=utcnow)

    orders = db.relationship("Order", backref="customer", lazy="dynamic")

    def as_api(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
        }
