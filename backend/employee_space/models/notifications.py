from __future__ import annotations

from ..extensions import db
from employee_space.time_utils import to_utc_z


class Notification(db.Model):
    """User-facing message raised by a workflow event (e.g. a rejected timesheet)."""
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_dismissed", "user_id", "dismissed"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    type = db.Column(db.String(64), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    metadata_json = db.Column(db.JSON, nullable=False, default=dict)

    read = db.Column(db.Boolean, nullable=False, default=False)
    dismissed = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "metadata": self.metadata_json or {},
            "read": self.read,
            "dismissed": self.dismissed,
            "created_at": to_utc_z(self.created_at),
        }
