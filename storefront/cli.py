# storefront/cli.py
from datetime import timedelta
from decimal import Decimal

import click
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from .extensions import db
from .model import Product, User

SAMPLE_PRODUCTS = [
    {"slug": "vanilla-bean-candle", "name": "Vanilla Bean Candle", "price": Decimal("18.00"), "quantity": 40},
    {"slug": "cedar-smoke-candle", "name": "Cedar Smoke Candle", "price": Decimal("22.50"), "quantity": 25},
    {"slug": "lavender-fields-candle", "name": "Lavender Fields Candle", "price": Decimal("16.75"), "quantity": 60},
    {"slug": "sea-salt-candle", "name": "Sea Salt Candle", "price": Decimal("19.99"), "quantity": 30},
    {"slug": "gift-card", "name": "Gift Card", "price": Decimal("25.00"), "quantity": 0, "subtract_stock": "no"},
]


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
def create_admin(email, password, name):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    u = User(email=email, name=name, password_hash=generate_password_hash(password), role="admin")
    db.session.add(u); db.session.commit()
    click.echo(f"Admin created: {u.id} {u.email}")


@click.command("admin-token")
@click.option("--email", required=True)
@click.option("--days", default=1, show_default=True, type=int)
def admin_token(email, days):
    """Print a back-office access token for an existing manager or admin."""
    u = User.query.filter_by(email=email.strip().lower()).first()
    if not u:
        raise click.ClickException("No user with that email")
    if u.role not in ("manager", "admin"):
        raise click.ClickException(f"User role '{u.role}' cannot use the back office")
    click.echo(create_access_token(identity=str(u.id), expires_delta=timedelta(days=days)))


@click.command("seed-products")
def seed_products():
    added = 0
    for data in SAMPLE_PRODUCTS:
        if Product.query.filter_by(slug=data["slug"]).first():
            continue
        db.session.add(Product(**data))
        added += 1
    db.session.commit()
    click.echo(f"{added} sample products added")


def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(admin_token)
    app.cli.add_command(seed_products)
