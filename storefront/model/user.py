# --- storefront/model/user.py ---

from ..extensions import db


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False, default="")
    role = db.Column(db.String(50), nullable=False, default="user", index=True)  # roles: user, manager, admin
