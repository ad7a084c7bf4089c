# storefront/model/sequence.py
from ..extensions import db


class Counter(db.Model):
    """Named monotonic counters, bumped with a single UPDATE ... SET value = value + 1."""
    __tablename__ = "counters"

    name = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.BigInteger, nullable=False, default=0)
