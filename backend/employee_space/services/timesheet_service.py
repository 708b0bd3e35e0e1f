# Overview: Service-layer operations for timesheet entries and weekly timesheet submissions.

"""
Timesheet Service

WHY: Employees log hours per (subtask, day) and submit each Monday-Sunday
week for approval. Approved weeks are what reports export.

ENTRIES:
- Upsert keyed on (user, subtask, date). Hours accept "HH:MM", decimal or
  whole hours and are rounded to the nearest quarter hour (max 16:00).
- Delete is owner or admin, and deleting a missing entry succeeds.

SUBMISSIONS (same state machine as TOIL, see approval_state):
- submit is strict: an existing submission for the week blocks a new one.
- reject archives the submission into submission_rejections, notifies the
  owner, then deletes the active row so the week can be submitted again.
"""

from __future__ import annotations

from collections import Counter

from flask import current_app

from ..extensions import db
from ..models import Subtask, Task, Ticket, TimesheetEntry, TimesheetSubmission, SubmissionRejection, User
from .approval_state import (
    ActionResult,
    ApprovalStatus,
    NotAuthorizedError,
    NotFoundError,
    SubmissionAction,
    SubmissionStateMachine,
    ValidationError,
    WorkflowError,
    archive_rejection,
    load_actor,
    require_admin,
    require_owner,
)
from .concurrency import WRITE_CONFLICT_ERRORS, retrying
from .notification_service import create_notification
from employee_space.time_utils import format_duration, parse_iso_date, parse_time_input, to_utc_z, utcnow, week_range


SUBMISSION_TYPE = "timesheet"
NO_REASON = "No reason provided"


# =============================================================================
# ENTRIES
# =============================================================================

def _clean_tickets(tickets) -> list[str]:
    if not tickets:
        return []
    if isinstance(tickets, str):
        tickets = tickets.split(",")
    return [t.strip() for t in tickets if t and str(t).strip()]


@retrying(retry_on=WRITE_CONFLICT_ERRORS)
def _upsert_entry(user_id: int, subtask_id: int, day, minutes: int, notes: str | None, tickets) -> TimesheetEntry:
    load_actor(user_id)
    subtask = db.session.get(Subtask, subtask_id)
    if subtask is None:
        raise NotFoundError("Subtask not found")
    task = db.session.get(Task, subtask.task_id)

    now = utcnow()
    entry = db.session.query(TimesheetEntry).filter_by(user_id=user_id, subtask_id=subtask_id, date=day).first()
    if entry:
        entry.minutes = minutes
        entry.notes = notes
        entry.updated_at = now
    else:
        entry = TimesheetEntry(
            user_id=user_id,
            project_id=task.project_id,
            task_id=task.id,
            subtask_id=subtask_id,
            date=day,
            minutes=minutes,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        db.session.add(entry)

    if tickets is not None:
        entry.tickets = [Ticket(title=title) for title in _clean_tickets(tickets)]

    db.session.commit()
    return entry


def upsert_entry(
    user_id: int,
    *,
    subtask_id: int,
    date,
    hours,
    notes: str | None = None,
    tickets=None,
) -> ActionResult:
    """
    Create or update the user's hours for one subtask on one day.

    ``tickets`` replaces the entry's ticket list when given (list of titles
    or a comma-separated string); ``None`` leaves it alone.
    """
    day = parse_iso_date(date)
    if day is None:
        return ActionResult.fail("validation", "A valid date (YYYY-MM-DD) is required")
    if not subtask_id:
        return ActionResult.fail("validation", "subtask_id is required")

    try:
        entry = _upsert_entry(user_id, int(subtask_id), day, parse_time_input(hours), notes, tickets)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)
    return ActionResult.ok("Time entry saved", entry=entry.to_dict())


@retrying
def _delete_entry(entry_id: int, actor_id: int) -> None:
    entry = db.session.get(TimesheetEntry, entry_id)
    if entry is None:
        return
    actor = load_actor(actor_id)
    if entry.user_id != actor.id and not actor.is_admin:
        raise NotAuthorizedError("You are not authorized to delete this entry")
    db.session.delete(entry)
    db.session.commit()


def delete_entry(entry_id: int, *, actor_id: int) -> ActionResult:
    try:
        _delete_entry(entry_id, actor_id)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)
    return ActionResult.ok("Time entry deleted")


def _entries_between(user_id: int, start, end) -> list[TimesheetEntry]:
    return (
        db.session.query(TimesheetEntry)
        .filter(TimesheetEntry.user_id == user_id, TimesheetEntry.date >= start, TimesheetEntry.date <= end)
        .order_by(TimesheetEntry.date, TimesheetEntry.subtask_id)
        .all()
    )


def week_entries(user_id: int, day) -> dict:
    """A user's entries for the week containing ``day`` with the weekly total."""
    start, end = week_range(day)
    entries = _entries_between(user_id, start, end)
    return {
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "entries": [e.to_dict() for e in entries],
        "total_hours": format_duration(sum(e.minutes for e in entries)),
    }


# =============================================================================
# SUBMISSIONS
# =============================================================================

def _get_submission(submission_id: int) -> TimesheetSubmission:
    submission = db.session.get(TimesheetSubmission, submission_id)
    if submission is None:
        raise NotFoundError("Submission not found")
    return submission


@retrying(retry_on=WRITE_CONFLICT_ERRORS)
def _submit(user_id: int, day, comments: str | None) -> TimesheetSubmission:
    load_actor(user_id)
    start, end = week_range(day)

    existing = db.session.query(TimesheetSubmission).filter_by(user_id=user_id, start_date=start).first()
    if existing:
        raise ValidationError(f"You already have a {existing.status} submission for this week")

    entries = _entries_between(user_id, start, end)
    if not entries:
        raise ValidationError("No timesheet entries found for this week")

    submission = TimesheetSubmission(
        user_id=user_id,
        start_date=start,
        end_date=end,
        status=ApprovalStatus.PENDING.value,
        submitted_at=utcnow(),
        total_minutes=sum(e.minutes for e in entries),
        comments=comments,
    )
    db.session.add(submission)
    db.session.commit()
    current_app.logger.info("Timesheet submission %s for week %s submitted by user %s", submission.id, start, user_id)
    return submission


def submit(user_id: int, week_start_date, comments: str | None = None) -> ActionResult:
    day = parse_iso_date(week_start_date)
    if day is None:
        return ActionResult.fail("validation", "A valid week start date (YYYY-MM-DD) is required")
    try:
        submission = _submit(user_id, day, comments)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)
    return ActionResult.ok("Timesheet submitted successfully", submission=submission.to_dict())


@retrying
def _cancel(submission_id: int, actor_id: int) -> None:
    submission = _get_submission(submission_id)
    require_owner(actor_id, submission.user_id)
    SubmissionStateMachine.apply(submission.status, SubmissionAction.CANCEL)
    db.session.delete(submission)
    db.session.commit()
    current_app.logger.info("Timesheet submission %s cancelled by user %s", submission_id, actor_id)


def cancel(submission_id: int, *, actor_id: int) -> ActionResult:
    try:
        _cancel(submission_id, actor_id)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)
    return ActionResult.ok("Timesheet submission cancelled successfully")


@retrying
def _approve(submission_id: int, admin_id: int, comments: str | None) -> TimesheetSubmission:
    require_admin(admin_id)
    submission = _get_submission(submission_id)
    submission.status = SubmissionStateMachine.apply(submission.status, SubmissionAction.APPROVE)
    submission.approved_by_user_id = admin_id
    submission.approved_at = utcnow()
    if comments:
        submission.comments = comments
    db.session.commit()
    current_app.logger.info("Timesheet submission %s approved by user %s", submission_id, admin_id)
    return submission


def approve(submission_id: int, admin_id: int, comments: str | None = None) -> ActionResult:
    try:
        submission = _approve(submission_id, admin_id, comments)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)
    return ActionResult.ok("Timesheet approved successfully", submission=submission.to_dict())


@retrying
def _reject(submission_id: int, admin_id: int, reason: str | None) -> SubmissionRejection:
    admin = require_admin(admin_id)
    submission = _get_submission(submission_id)
    SubmissionStateMachine.apply(submission.status, SubmissionAction.REJECT)
    if not reason or not reason.strip():
        raise ValidationError("A reason is required when rejecting a timesheet")

    entries = _entries_between(submission.user_id, submission.start_date, submission.end_date)
    payload = submission.to_dict()
    payload["entries"] = [e.to_dict() for e in entries]

    start, end = submission.start_date, submission.end_date
    owner_id = submission.user_id
    record = archive_rejection(
        submission,
        submission_type=SUBMISSION_TYPE,
        start_date=start,
        end_date=end,
        payload=payload,
        reason=reason,
        rejected_by_user_id=admin.id,
    )
    create_notification(
        user_id=owner_id,
        type="timesheet_rejection",
        title="Timesheet Rejected",
        message=f"Your timesheet for week {start.isoformat()} - {end.isoformat()} was rejected: {reason}",
        metadata={
            "week_start_date": start.isoformat(),
            "week_end_date": end.isoformat(),
            "rejection_reason": reason,
            "rejected_by": admin.email,
            "archived_submission_id": submission_id,
        },
    )
    db.session.commit()
    current_app.logger.info(
        "Archived timesheet submission %s as rejection %s for user %s", submission_id, record.id, owner_id
    )
    return record


def reject(submission_id: int, admin_id: int, reason: str | None) -> ActionResult:
    """Reject, archive and notify. The week can then be submitted again."""
    try:
        record = _reject(submission_id, admin_id, reason)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)
    return ActionResult.ok("Timesheet rejected successfully", rejection=record.to_dict())


def get_week_submission(user_id: int, day) -> dict:
    start, _ = week_range(day)
    submission = db.session.query(TimesheetSubmission).filter_by(user_id=user_id, start_date=start).first()
    return {
        "submitted": submission is not None,
        "status": submission.status if submission else None,
        "submission": submission.to_dict() if submission else None,
    }


def list_submissions(user_id: int | None = None, status: str | None = None) -> list[TimesheetSubmission]:
    query = db.session.query(TimesheetSubmission)
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(TimesheetSubmission.start_date.desc(), TimesheetSubmission.id.desc()).all()


# =============================================================================
# REJECTION LOG
# =============================================================================

def list_rejections(user_id: int | None = None) -> list[SubmissionRejection]:
    query = db.session.query(SubmissionRejection).filter_by(submission_type=SUBMISSION_TYPE)
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    return query.order_by(SubmissionRejection.rejected_at.desc(), SubmissionRejection.id.desc()).all()


def rejection_statistics() -> dict:
    rejections = list_rejections()
    emails = dict(db.session.query(User.id, User.email).all())

    by_user = Counter(emails.get(r.user_id, str(r.user_id)) for r in rejections)
    by_reason = Counter(r.reason or NO_REASON for r in rejections)

    return {
        "total_rejections": len(rejections),
        "rejections_by_user": dict(by_user),
        "rejections_by_reason": dict(by_reason),
        "recent_rejections": [
            {
                "id": r.id,
                "user_email": emails.get(r.user_id),
                "week_period": f"{r.start_date.isoformat()} - {r.end_date.isoformat()}",
                "rejected_by": emails.get(r.rejected_by_user_id),
                "rejected_at": to_utc_z(r.rejected_at),
                "reason": r.reason,
            }
            for r in rejections[:10]
        ],
    }
