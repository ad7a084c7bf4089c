# storefront/model/types.py
from datetime import datetime, timezone


def utcnow():
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
