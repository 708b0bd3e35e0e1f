# Overview: Flask API routes for a user's notifications.

from flask import Blueprint, jsonify, g

from ..decorators import require_auth
from ..responses import result_response
from ..services import notification_service


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    notifications = notification_service.list_notifications(g.current_user.id)
    return jsonify({"notifications": [n.to_dict() for n in notifications]})


@notifications_bp.post("/<int:notification_id>/dismiss")
@require_auth
def dismiss_notification_route(notification_id: int):
    return result_response(
        notification_service.dismiss_notification(notification_id, user_id=g.current_user.id)
    )
