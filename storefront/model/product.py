# storefront/model/product.py
from ..extensions import db
from sqlalchemy.sql import func


class Product(db.Model):
    __tablename__ = "product"
    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(255), index=True)
    name = db.Column(db.String(255), nullable=False, index=True)

    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    quantity = db.Column(db.Integer, default=0)
    subtract_stock = db.Column(db.String(16), default="yes")      # "yes"/"no"
    status = db.Column(db.Boolean, default=True)

    image_url = db.Column(db.String(1024))
    # catalogue mirror on the gateway side, when products are synced there
    stripe_product_id = db.Column(db.String(255), unique=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def tracks_stock(self) -> bool:
        # treat None/"" as "yes"
        return (self.subtract_stock or "yes") == "yes"
