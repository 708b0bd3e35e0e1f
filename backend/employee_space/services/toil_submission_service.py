# Overview: Service-layer operations for the weekly TOIL submission workflow.

"""
TOIL Submission Workflow

WHY: A week of TOIL entries goes to an administrator as one unit. Nothing
counts towards the balance until that unit is approved.

LIFECYCLE:
- submit (owner): upsert by (user, week). New or rejected -> pending;
  a pending week is refreshed in place; an approved week cannot be reopened.
  Every entry in the week is stamped pending.
- cancel (owner): pending only. Entries go back to draft, the row is deleted.
- approve (admin): pending only. Entries become approved, balance recomputed.
- reject (admin): pending only, comments required. Entries become rejected.

Reviewer identity and time are stamped on both approve and reject.
Every transition invalidates the cached pending counts.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import ToilEntry, ToilSubmission, User
from .approval_state import (
    ActionResult,
    ApprovalStatus,
    InvalidTransitionError,
    NotFoundError,
    SubmissionAction,
    SubmissionStateMachine,
    ValidationError,
    WorkflowError,
    load_actor,
    require_admin,
    require_owner,
)
from .cache_service import get_cache
from .concurrency import WRITE_CONFLICT_ERRORS, retrying
from .toil_service import stage_balance
from employee_space.time_utils import parse_iso_date, utcnow, week_range, week_start


CACHE_PREFIX = "toil:"
PENDING_COUNTS_KEY = CACHE_PREFIX + "pending_counts"


def _week_entries(user_id: int, start, end) -> list[ToilEntry]:
    return (
        db.session.query(ToilEntry)
        .filter(ToilEntry.user_id == user_id, ToilEntry.date >= start, ToilEntry.date <= end)
        .order_by(ToilEntry.date)
        .all()
    )


def _get_submission(submission_id: int) -> ToilSubmission:
    submission = db.session.get(ToilSubmission, submission_id)
    if submission is None:
        raise NotFoundError("Submission not found")
    return submission


def _stamp_entries(submission: ToilSubmission, status: str, admin_comments: str | None = None) -> None:
    for entry in _week_entries(submission.user_id, submission.week_start_date, submission.week_end_date):
        entry.status = status
        if admin_comments is not None:
            entry.admin_comments = admin_comments
        entry.updated_at = utcnow()


def _finish(cache, message: str, **payload) -> ActionResult:
    get_cache(cache).invalidate(CACHE_PREFIX)
    return ActionResult.ok(message, **payload)


# =============================================================================
# TRANSITIONS
# =============================================================================

@retrying(retry_on=WRITE_CONFLICT_ERRORS)
def _submit(user_id: int, day, comments: str | None) -> ToilSubmission:
    load_actor(user_id)
    start, end = week_range(day)

    entries = _week_entries(user_id, start, end)
    if not entries:
        raise ValidationError("No TOIL entries to submit for this week")

    now = utcnow()
    submission = db.session.query(ToilSubmission).filter_by(user_id=user_id, week_start_date=start).first()
    if submission is None:
        submission = ToilSubmission(
            user_id=user_id,
            week_start_date=start,
            week_end_date=end,
            status=ApprovalStatus.PENDING.value,
            submitted_at=now,
            comments=comments,
        )
        db.session.add(submission)
    else:
        if not SubmissionStateMachine.can_resubmit(submission.status):
            raise InvalidTransitionError(submission.status, "resubmit")
        submission.status = ApprovalStatus.PENDING.value
        submission.submitted_at = now
        submission.comments = comments
        submission.admin_comments = None
        submission.approved_by_user_id = None
        submission.approved_at = None

    for entry in entries:
        entry.status = ApprovalStatus.PENDING.value
        entry.updated_at = now

    db.session.commit()
    current_app.logger.info(
        "TOIL submission %s for week %s submitted by user %s", submission.id, start.isoformat(), user_id
    )
    return submission


def submit(user_id: int, week_start_date, comments: str | None = None, *, cache=None) -> ActionResult:
    """Submit (or resubmit) the user's week for review."""
    day = parse_iso_date(week_start_date)
    if day is None:
        return ActionResult.fail("validation", "A valid week start date (YYYY-MM-DD) is required")
    try:
        submission = _submit(user_id, day, comments)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)
    return _finish(cache, "TOIL submitted for approval", submission=submission.to_dict())


@retrying
def _cancel(submission_id: int, actor_id: int) -> None:
    submission = _get_submission(submission_id)
    require_owner(actor_id, submission.user_id)
    SubmissionStateMachine.apply(submission.status, SubmissionAction.CANCEL)

    _stamp_entries(submission, ApprovalStatus.DRAFT.value)
    db.session.delete(submission)
    db.session.commit()
    current_app.logger.info("TOIL submission %s cancelled by user %s", submission_id, actor_id)


def cancel(submission_id: int, *, actor_id: int, cache=None) -> ActionResult:
    """Withdraw a pending submission. Only its owner may cancel."""
    try:
        _cancel(submission_id, actor_id)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)
    return _finish(cache, "Submission cancelled")


@retrying
def _approve(submission_id: int, admin_id: int, comments: str | None) -> ToilSubmission:
    require_admin(admin_id)
    submission = _get_submission(submission_id)
    new_status = SubmissionStateMachine.apply(submission.status, SubmissionAction.APPROVE)

    submission.status = new_status
    submission.approved_by_user_id = admin_id
    submission.approved_at = utcnow()
    if comments:
        submission.admin_comments = comments
    _stamp_entries(submission, new_status, comments or None)
    db.session.flush()

    stage_balance(submission.user_id)
    db.session.commit()
    current_app.logger.info("TOIL submission %s approved by user %s", submission_id, admin_id)
    return submission


def approve(submission_id: int, admin_id: int, comments: str | None = None, *, cache=None) -> ActionResult:
    try:
        submission = _approve(submission_id, admin_id, comments)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)
    return _finish(cache, "Submission approved", submission=submission.to_dict())


@retrying
def _reject(submission_id: int, admin_id: int, comments: str | None) -> ToilSubmission:
    require_admin(admin_id)
    submission = _get_submission(submission_id)
    new_status = SubmissionStateMachine.apply(submission.status, SubmissionAction.REJECT)
    if not comments or not comments.strip():
        raise ValidationError("Comments are required when rejecting a submission")

    submission.status = new_status
    submission.approved_by_user_id = admin_id
    submission.approved_at = utcnow()
    submission.admin_comments = comments
    _stamp_entries(submission, new_status, comments)

    db.session.commit()
    current_app.logger.info("TOIL submission %s rejected by user %s", submission_id, admin_id)
    return submission


def reject(submission_id: int, admin_id: int, comments: str | None, *, cache=None) -> ActionResult:
    """Reject a pending submission. Rejected entries never reach the balance."""
    try:
        submission = _reject(submission_id, admin_id, comments)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)
    return _finish(cache, "Submission rejected", submission=submission.to_dict())


# =============================================================================
# READS
# =============================================================================

def get_week_submission(user_id: int, day) -> dict:
    start = week_start(day)
    submission = db.session.query(ToilSubmission).filter_by(user_id=user_id, week_start_date=start).first()
    return {
        "submitted": submission is not None,
        "status": submission.status if submission else None,
        "submission": submission.to_dict() if submission else None,
    }


def list_user_submissions(user_id: int) -> list[ToilSubmission]:
    return (
        db.session.query(ToilSubmission)
        .filter_by(user_id=user_id)
        .order_by(ToilSubmission.week_start_date.desc())
        .all()
    )


def list_pending() -> list[dict]:
    """Pending submissions, oldest first, each with its week's entries."""
    pending = (
        db.session.query(ToilSubmission)
        .filter_by(status=ApprovalStatus.PENDING.value)
        .order_by(ToilSubmission.submitted_at)
        .all()
    )
    return [
        s.to_dict(entries=_week_entries(s.user_id, s.week_start_date, s.week_end_date))
        for s in pending
    ]


def pending_counts(cache=None) -> list[dict]:
    """Number of pending submissions per user, served from the cache."""
    def load():
        rows = (
            db.session.query(User.id, User.email, db.func.count(ToilSubmission.id))
            .join(ToilSubmission, ToilSubmission.user_id == User.id)
            .filter(ToilSubmission.status == ApprovalStatus.PENDING.value)
            .group_by(User.id, User.email)
            .order_by(User.email)
            .all()
        )
        return [{"user_id": uid, "user_email": email, "count": count} for uid, email, count in rows]

    return get_cache(cache).get_or_load(PENDING_COUNTS_KEY, load)
