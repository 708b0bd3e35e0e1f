from __future__ import annotations

from ..extensions import db
from employee_space.time_utils import to_utc_z, format_duration


class ToilEntry(db.Model):
    """
    One employee's time-off-in-lieu record for one calendar day.

    requested_minutes: time earned that day.
    used_minutes: time taken off that day.

    LIFECYCLE (status):
    - draft: saved, not yet part of a submitted week
    - pending: the week has been submitted for review
    - approved: counted into the balance
    - rejected: never counted

    UNIQUE: (user_id, date). Writes for an existing day update the row.
    """
    __tablename__ = "toil_entries"
    __table_args__ = (
        db.UniqueConstraint("user_id", "date", name="uq_toil_entries_user_date"),
        db.Index("ix_toil_entries_user_status", "user_id", "status"),
        db.Index("ix_toil_entries_user_week", "user_id", "week_start_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    week_start_date = db.Column(db.Date, nullable=False)

    requested_minutes = db.Column(db.Integer, nullable=False, default=0)
    used_minutes = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="draft")
    comments = db.Column(db.Text, nullable=True)
    admin_comments = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("toil_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "date": self.date.isoformat(),
            "week_start_date": self.week_start_date.isoformat(),
            "requested_hours": format_duration(self.requested_minutes),
            "used_hours": format_duration(self.used_minutes),
            "status": self.status,
            "comments": self.comments,
            "admin_comments": self.admin_comments,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ToilBalance(db.Model):
    """
    Cached running TOIL balance, one row per user.

    DERIVED: always recomputed from the user's approved entries
    (sum requested - sum used). Never patched incrementally.
    """
    __tablename__ = "toil_balances"

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), primary_key=True)
    total_minutes = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "total_hours": format_duration(self.total_minutes),
            "total_minutes": self.total_minutes,
            "updated_at": to_utc_z(self.updated_at),
        }


class ToilSettings(db.Model):
    """Per-user TOIL limits. Created lazily with application defaults."""
    __tablename__ = "toil_settings"

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), primary_key=True)
    max_capacity_minutes = db.Column(db.Integer, nullable=False, default=40 * 60)
    max_streak_minutes = db.Column(db.Integer, nullable=False, default=16 * 60)
    max_streak_days = db.Column(db.Integer, nullable=False, default=2)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "max_capacity": format_duration(self.max_capacity_minutes),
            "max_streak_hours": format_duration(self.max_streak_minutes),
            "max_streak_days": self.max_streak_days,
        }


class ToilSubmission(db.Model):
    """
    A week of TOIL entries presented for review.

    UNIQUE: (user_id, week_start_date). Resubmitting a week updates the row.
    approved_by/approved_at record the reviewer for both outcomes.
    """
    __tablename__ = "toil_submissions"
    __table_args__ = (
        db.UniqueConstraint("user_id", "week_start_date", name="uq_toil_submissions_user_week"),
        db.Index("ix_toil_submissions_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    week_start_date = db.Column(db.Date, nullable=False)
    week_end_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending")
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False)
    comments = db.Column(db.Text, nullable=True)
    admin_comments = db.Column(db.Text, nullable=True)

    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", foreign_keys=[user_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])

    def to_dict(self, entries: list | None = None) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "user_email": self.user.email if self.user else None,
            "week_start_date": self.week_start_date.isoformat(),
            "week_end_date": self.week_end_date.isoformat(),
            "status": self.status,
            "submitted_at": to_utc_z(self.submitted_at),
            "comments": self.comments,
            "admin_comments": self.admin_comments,
            "approved_by": self.approved_by.email if self.approved_by else None,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
        }
        if entries is not None:
            data["entries"] = [e.to_dict() for e in entries]
        return data
