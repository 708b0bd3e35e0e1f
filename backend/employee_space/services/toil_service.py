# Overview: Service-layer operations for TOIL entries, balances and settings.

"""
TOIL Entry Service

WHY: Employees log time earned (requested) and time taken (used) per day.
Each write is gated by the streak and capacity rules before it is stored,
and the user's balance row is re-derived from approved entries afterwards.

BALANCE INVARIANT:
ToilBalance.total_minutes == sum(requested - used) over approved entries.
It is always recomputed in full, never incremented.

CONCURRENCY: Two writes for the same (user, date) race; last write wins.
Store calls run through the retry wrapper; business-rule failures are not
retried and come back as an ActionResult.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import ToilBalance, ToilEntry, ToilSettings, User
from .approval_state import ActionResult, ApprovalStatus, NotAuthorizedError, ValidationError, WorkflowError, load_actor
from .concurrency import WRITE_CONFLICT_ERRORS, retrying
from .toil_rules import check_capacity_limit, check_streak_limit, compute_balance, streak_window_bounds
from employee_space.time_utils import format_duration, is_duration, parse_duration, parse_iso_date, utcnow, week_start


class ToilError(ValidationError):
    """Raised when a TOIL write breaks a policy rule or has bad input."""
    pass


# =============================================================================
# SETTINGS
# =============================================================================

def _default_settings(user_id: int) -> ToilSettings:
    config = current_app.config
    return ToilSettings(
        user_id=user_id,
        max_capacity_minutes=parse_duration(config["TOIL_DEFAULT_MAX_CAPACITY"], limit=None),
        max_streak_minutes=parse_duration(config["TOIL_DEFAULT_MAX_STREAK_HOURS"], limit=None),
        max_streak_days=int(config["TOIL_DEFAULT_MAX_STREAK_DAYS"]),
    )


def _get_or_create_settings(user_id: int) -> ToilSettings:
    settings = db.session.get(ToilSettings, user_id)
    if settings is None:
        settings = _default_settings(user_id)
        db.session.add(settings)
        db.session.flush()
    return settings


@retrying
def get_settings(user_id: int) -> ToilSettings:
    """Return the user's settings, creating the defaults on first access."""
    settings = _get_or_create_settings(user_id)
    db.session.commit()
    return settings


def _parse_limit(value, field: str) -> int:
    if not is_duration(value):
        raise ToilError(f"{field} must be a duration in HH:MM format")
    return parse_duration(value, limit=None)


@retrying
def update_settings(
    user_id: int,
    *,
    max_capacity: str | None = None,
    max_streak_hours: str | None = None,
    max_streak_days: int | None = None,
) -> ToilSettings:
    """
    Change a user's TOIL limits.

    Durations are "HH:MM" without the 16 hour daily ceiling. Raises ToilError
    on malformed input; nothing is written in that case.
    """
    if not db.session.get(User, user_id):
        raise ToilError("User not found")

    settings = _get_or_create_settings(user_id)
    if max_capacity is not None:
        settings.max_capacity_minutes = _parse_limit(max_capacity, "max_capacity")
    if max_streak_hours is not None:
        settings.max_streak_minutes = _parse_limit(max_streak_hours, "max_streak_hours")
    if max_streak_days is not None:
        try:
            days = int(max_streak_days)
        except (TypeError, ValueError):
            raise ToilError("max_streak_days must be a whole number")
        if days < 1:
            raise ToilError("max_streak_days must be at least 1")
        settings.max_streak_days = days

    db.session.commit()
    return settings


# =============================================================================
# BALANCE
# =============================================================================

def _approved_entries(user_id: int) -> list[ToilEntry]:
    return db.session.query(ToilEntry).filter_by(user_id=user_id, status=ApprovalStatus.APPROVED.value).all()


def stage_balance(user_id: int) -> ToilBalance:
    """Recompute and stage the balance row. Caller commits."""
    total = compute_balance(_approved_entries(user_id))
    balance = db.session.get(ToilBalance, user_id)
    if balance is None:
        balance = ToilBalance(user_id=user_id, total_minutes=total, updated_at=utcnow())
        db.session.add(balance)
    else:
        balance.total_minutes = total
        balance.updated_at = utcnow()
    db.session.flush()
    return balance


@retrying
def recompute_balance(user_id: int) -> ToilBalance:
    balance = stage_balance(user_id)
    db.session.commit()
    return balance


@retrying
def get_balance(user_id: int) -> ToilBalance:
    """Read the stored balance, creating a zero row the first time."""
    balance = db.session.get(ToilBalance, user_id)
    if balance is None:
        balance = ToilBalance(user_id=user_id, total_minutes=0, updated_at=utcnow())
        db.session.add(balance)
        db.session.commit()
    return balance


def recompute_all_balances(user_ids: list[int] | None = None) -> int:
    """Re-derive every balance (or the given users'). Returns how many were written."""
    if user_ids is None:
        user_ids = [row.id for row in db.session.query(User.id).all()]
    for user_id in user_ids:
        recompute_balance(user_id)
    return len(user_ids)


# =============================================================================
# ENTRIES
# =============================================================================

@retrying(retry_on=WRITE_CONFLICT_ERRORS)
def _upsert_entry(user_id: int, day, requested_minutes: int, used_minutes: int, comments: str | None) -> ToilEntry:
    settings = _get_or_create_settings(user_id)

    if used_minutes > 0:
        first, last = streak_window_bounds(day, settings.max_streak_days)
        nearby = (
            db.session.query(ToilEntry)
            .filter(ToilEntry.user_id == user_id, ToilEntry.date >= first, ToilEntry.date <= last)
            .all()
        )
        result = check_streak_limit(settings, nearby, used_minutes, day)
        if not result.allowed:
            raise ToilError(result.message)

    if requested_minutes > 0:
        # The day's own approved entry is being replaced, so leave it out
        others = [e for e in _approved_entries(user_id) if e.date != day]
        result = check_capacity_limit(settings, compute_balance(others), requested_minutes)
        if not result.allowed:
            raise ToilError(result.message)

    entry = db.session.query(ToilEntry).filter_by(user_id=user_id, date=day).first()
    now = utcnow()
    if entry:
        entry.requested_minutes = requested_minutes
        entry.used_minutes = used_minutes
        entry.comments = comments
        entry.updated_at = now
    else:
        entry = ToilEntry(
            user_id=user_id,
            date=day,
            week_start_date=week_start(day),
            requested_minutes=requested_minutes,
            used_minutes=used_minutes,
            status=ApprovalStatus.DRAFT.value,
            comments=comments,
            created_at=now,
            updated_at=now,
        )
        db.session.add(entry)
    db.session.flush()

    stage_balance(user_id)
    db.session.commit()
    return entry


def upsert_entry(
    user_id: int,
    date,
    requested_hours: str | None,
    used_hours: str | None,
    comments: str | None = None,
) -> ActionResult:
    """
    Create or update the user's entry for ``date``.

    Hours are "HH:MM" (00:00-16:00). Malformed hours count as zero. A rule
    failure returns success=False with the remaining allowance in the message.
    New entries start as draft; updates keep the entry's status.
    """
    day = parse_iso_date(date)
    if day is None:
        return ActionResult.fail("validation", "A valid date (YYYY-MM-DD) is required")

    requested_minutes = parse_duration(requested_hours)
    used_minutes = parse_duration(used_hours)

    try:
        entry = _upsert_entry(user_id, day, requested_minutes, used_minutes, comments)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)

    return ActionResult.ok("TOIL entry saved", entry=entry.to_dict())


@retrying
def _delete_entry(entry_id: int, actor_id: int) -> bool:
    entry = db.session.get(ToilEntry, entry_id)
    if entry is None:
        return False

    actor = load_actor(actor_id)
    if entry.user_id != actor.id and not actor.is_admin:
        raise NotAuthorizedError("You are not authorized to delete this entry")

    owner_id = entry.user_id
    db.session.delete(entry)
    db.session.flush()
    stage_balance(owner_id)
    db.session.commit()
    return True


def delete_entry(entry_id: int, *, actor_id: int) -> ActionResult:
    """Delete an entry (owner or admin). A missing entry counts as already deleted."""
    try:
        _delete_entry(entry_id, actor_id)
    except WorkflowError as exc:
        db.session.rollback()
        return ActionResult.from_error(exc)
    return ActionResult.ok("TOIL entry deleted")


def list_entries(user_id: int, week_start_date=None) -> list[ToilEntry]:
    query = db.session.query(ToilEntry).filter_by(user_id=user_id)
    if week_start_date is not None:
        query = query.filter_by(week_start_date=week_start(week_start_date))
    return query.order_by(ToilEntry.date.desc()).all()


def list_all_entries() -> list[ToilEntry]:
    return db.session.query(ToilEntry).order_by(ToilEntry.date.desc(), ToilEntry.user_id).all()


def balance_summary(user_id: int) -> dict:
    """Stored balance plus the not-yet-approved change, for display."""
    balance = get_balance(user_id)
    pending = db.session.query(ToilEntry).filter_by(user_id=user_id, status=ApprovalStatus.PENDING.value).all()
    pending_minutes = sum(e.requested_minutes - e.used_minutes for e in pending)
    data = balance.to_dict()
    data["pending_change"] = format_duration(pending_minutes)
    return data
