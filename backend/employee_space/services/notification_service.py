# Overview: Service-layer operations for user notifications.

from __future__ import annotations

from ..extensions import db
from ..models import Notification
from .approval_state import ActionResult, NotAuthorizedError, NotFoundError, WorkflowError
from .concurrency import retrying


def create_notification(
    *,
    user_id: int,
    type: str,
    title: str,
    message: str,
    metadata: dict | None = None,
) -> Notification:
    """Stage a notification in the current session. Caller commits."""
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        metadata_json=metadata or {},
    )
    db.session.add(notification)
    db.session.flush()
    return notification


def list_notifications(user_id: int) -> list[Notification]:
    """Undismissed notifications, newest first."""
    return (
        db.session.query(Notification)
        .filter_by(user_id=user_id, dismissed=False)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .all()
    )


@retrying
def _dismiss(notification_id: int, user_id: int) -> None:
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    if notification.user_id != user_id:
        raise NotAuthorizedError("You are not authorized to dismiss this notification")
    notification.dismissed = True
    notification.read = True
    db.session.commit()


def dismiss_notification(notification_id: int, *, user_id: int) -> ActionResult:
    try:
        _dismiss(notification_id, user_id)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)
    return ActionResult.ok("Notification dismissed")
