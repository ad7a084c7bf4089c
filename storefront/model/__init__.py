# ------ storefront/model/__init__.py ------

from .user import User
from .product import Product
from .customer import Customer
from .coupon import Discount, Coupon, CouponUsage
from .notification import Notification
from .order import (
    Order,
    OrderItem,
    ShippingAddress,
    BillingAddress,
    OrderHistory,
    PAYMENT_STATUSES,
    FULFILLMENT_STATUSES,
)
from .sequence import Counter

__all__ = [
    "User",
    "Product",
    "Customer",
    "Discount",
    "Coupon",
    "CouponUsage",
    "Notification",
    "Order",
    "OrderItem",
    "ShippingAddress",
    "BillingAddress",
    "OrderHistory",
    "PAYMENT_STATUSES",
    "FULFILLMENT_STATUSES",
    "Counter",
]
