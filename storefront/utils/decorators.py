# ------- storefront/utils/decorators.py -------
from functools import wraps

from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..extensions import db
from ..model.user import User
from .api import err

# back-office roles, lowest to highest
ROLE_LEVEL = {"user": 1, "manager": 2, "admin": 3}


def current_user_id() -> int | None:
    """Id carried by the request's access token, if it is a valid one."""
    try:
        return int(get_jwt_identity())
    except (TypeError, ValueError):
        return None


def _load_operator():
    verify_jwt_in_request()
    uid = current_user_id()
    return db.session.get(User, uid) if uid else None


def role_at_least(min_role: str, message: str | None = None):
    """Only operators at `min_role` or above reach the view."""
    min_level = ROLE_LEVEL[min_role]

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            operator = _load_operator()
            if operator is None:
                return err("Unauthorized", 401)
            if ROLE_LEVEL.get(operator.role, 0) < min_level:
                return err(message or "Forbidden", 403)
            return fn(*args, **kwargs)
        return wrapper
    return decorator
