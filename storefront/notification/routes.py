from flask import request
from sqlalchemy import or_

from ..extensions import db
from ..model import Notification
from ..utils.api import err, ok
from ..utils.decorators import current_user_id, role_at_least
from . import bp


def _visible_to_operator():
    # user_id NULL is addressed to every operator
    return or_(Notification.user_id.is_(None), Notification.user_id == current_user_id())


@bp.get("")
@role_at_least("manager")
def list_notifications():
    q = Notification.query.filter(_visible_to_operator())
    if (request.args.get("unread") or "").lower() == "true":
        q = q.filter(Notification.is_read.is_(False))
    notes = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(100).all()
    return ok("notifications", {"items": [n.as_api() for n in notes]})


@bp.put("/<int:note_id>/read")
@role_at_least("manager")
def mark_as_read(note_id):
    note = Notification.query.filter(Notification.id == note_id, _visible_to_operator()).first()
    if not note:
        return err("notification not found", 404)
    note.is_read = True
    db.session.commit()
    return ok("Marked as read", note.as_api())
