from __future__ import annotations

from ..extensions import db
from employee_space.time_utils import to_utc_z, format_duration


class TimesheetEntry(db.Model):
    """
    Hours one employee logged against one subtask on one day.

    UNIQUE: (user_id, subtask_id, date). A second write for the same key
    updates the existing row.
    """
    __tablename__ = "timesheet_entries"
    __table_args__ = (
        db.UniqueConstraint("user_id", "subtask_id", "date", name="uq_timesheet_entries_user_subtask_date"),
        db.Index("ix_timesheet_entries_user_date", "user_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    subtask_id = db.Column(db.Integer, db.ForeignKey("subtasks.id", ondelete="CASCADE"), nullable=False)

    date = db.Column(db.Date, nullable=False)
    minutes = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User")
    subtask = db.relationship("Subtask")
    tickets = db.relationship(
        "Ticket",
        backref="entry",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="Ticket.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "project_id": self.project_id,
            "task_id": self.task_id,
            "subtask_id": self.subtask_id,
            "date": self.date.isoformat(),
            "hours": format_duration(self.minutes),
            "notes": self.notes,
            "tickets": [t.title for t in self.tickets],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Ticket(db.Model):
    """External ticket reference attached to a timesheet entry."""
    __tablename__ = "tickets"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    timesheet_entry_id = db.Column(
        db.Integer, db.ForeignKey("timesheet_entries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = db.Column(db.String(255), nullable=False)


class TimesheetSubmission(db.Model):
    """
    A week of timesheet entries presented for review.

    LIFECYCLE:
    - PENDING: submitted, awaiting an admin
    - APPROVED: terminal, hours become reportable
    - Rejected submissions do not stay here: they are archived into
      submission_rejections and the row is deleted.
    """
    __tablename__ = "timesheet_submissions"
    __table_args__ = (
        db.UniqueConstraint("user_id", "start_date", name="uq_timesheet_submissions_user_week"),
        db.Index("ix_timesheet_submissions_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending")
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False)
    total_minutes = db.Column(db.Integer, nullable=False, default=0)
    comments = db.Column(db.Text, nullable=True)

    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", foreign_keys=[user_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_email": self.user.email if self.user else None,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "status": self.status,
            "submitted_at": to_utc_z(self.submitted_at),
            "total_hours": format_duration(self.total_minutes),
            "comments": self.comments,
            "approved_by": self.approved_by.email if self.approved_by else None,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
        }


class SubmissionRejection(db.Model):
    """
    Append-only log of rejected submissions.

    WHY: Rejected submissions leave the active table so the pending set stays
    small. The original payload and the reviewer's reason are preserved here.
    Rows are never updated.
    """
    __tablename__ = "submission_rejections"
    __table_args__ = (
        db.Index("ix_submission_rejections_user", "user_id", "rejected_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    submission_type = db.Column(db.String(32), nullable=False, default="timesheet")
    original_submission_id = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    payload = db.Column(db.JSON, nullable=False, default=dict)
    reason = db.Column(db.Text, nullable=False)

    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=False)

    user = db.relationship("User", foreign_keys=[user_id])
    rejected_by = db.relationship("User", foreign_keys=[rejected_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "submission_type": self.submission_type,
            "original_submission_id": self.original_submission_id,
            "user_id": self.user_id,
            "user_email": self.user.email if self.user else None,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "payload": self.payload,
            "reason": self.reason,
            "submitted_at": to_utc_z(self.submitted_at) if self.submitted_at else None,
            "rejected_by": self.rejected_by.email if self.rejected_by else None,
            "rejected_at": to_utc_z(self.rejected_at),
        }
