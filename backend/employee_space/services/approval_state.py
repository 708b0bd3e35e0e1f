# Overview: Shared submission state machine, workflow errors and action results.

"""
Approval workflow primitives shared by TOIL and timesheet submissions.

States:
- draft (implicit for a week with entries but no submission row)
- pending (submitted, awaiting an administrator)
- approved | rejected (terminal)

Allowed transitions:
- pending -> approved  (approve, admin only)
- pending -> rejected  (reject, admin only)
- pending -> draft     (cancel, owner only; the submission row is removed)

Business-rule failures are raised internally as WorkflowError subclasses and
converted to an ActionResult at the service boundary. Callers always check
``success`` before assuming the action happened.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..extensions import db
from ..models import SubmissionRejection, User
from employee_space.time_utils import utcnow


class ApprovalStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SubmissionAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"


# =============================================================================
# ERRORS
# =============================================================================

class WorkflowError(ValueError):
    """Base class for business-rule failures. ``kind`` maps to an HTTP status in routes."""
    kind = "validation"


class ValidationError(WorkflowError):
    kind = "validation"


class NotFoundError(WorkflowError):
    kind = "not_found"


class NotAuthorizedError(WorkflowError):
    kind = "not_authorized"


class InvalidTransitionError(WorkflowError):
    kind = "invalid_state"

    def __init__(self, current_status: str, action: str):
        self.current_status = current_status
        self.action = action
        super().__init__(f"Cannot {action} a submission that is already {current_status}")


@dataclass
class ActionResult:
    """Outcome of a user-facing operation: ``{success, message, ...payload}``."""

    success: bool
    message: str | None = None
    error: str | None = None
    data: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str | None = None, **data) -> ActionResult:
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, error: str, message: str) -> ActionResult:
        return cls(success=False, message=message, error=error)

    @classmethod
    def from_error(cls, exc: WorkflowError) -> ActionResult:
        return cls.fail(exc.kind, str(exc))

    def to_dict(self) -> dict:
        body = {"success": self.success}
        if self.message is not None:
            body["message"] = self.message
        if self.error is not None:
            body["error"] = self.error
        body.update(self.data)
        return body


# =============================================================================
# STATE MACHINE
# =============================================================================

class SubmissionStateMachine:
    """Transition table for review submissions."""

    VALID_TRANSITIONS: dict[str, dict[str, str]] = {
        ApprovalStatus.PENDING.value: {
            SubmissionAction.APPROVE.value: ApprovalStatus.APPROVED.value,
            SubmissionAction.REJECT.value: ApprovalStatus.REJECTED.value,
            SubmissionAction.CANCEL.value: ApprovalStatus.DRAFT.value,
        },
        ApprovalStatus.APPROVED.value: {},  # Terminal
        ApprovalStatus.REJECTED.value: {},  # Terminal
    }

    # Statuses a week can be submitted again from (update in place)
    RESUBMITTABLE = {ApprovalStatus.PENDING.value, ApprovalStatus.REJECTED.value}

    @classmethod
    def can_apply(cls, status: str, action: str) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(ApprovalStatus(status).value, {})
        return SubmissionAction(action).value in allowed

    @classmethod
    def apply(cls, status: str, action: str) -> str:
        """Return the status reached by ``action`` or raise InvalidTransitionError."""
        status, action = ApprovalStatus(status).value, SubmissionAction(action).value
        if not cls.can_apply(status, action):
            raise InvalidTransitionError(status, action)
        return cls.VALID_TRANSITIONS[status][action]

    @classmethod
    def can_resubmit(cls, status: str) -> bool:
        return ApprovalStatus(status).value in cls.RESUBMITTABLE


# =============================================================================
# ACTORS
# =============================================================================

def load_actor(user_id: int | None) -> User:
    user = db.session.get(User, user_id) if user_id is not None else None
    if not user or not user.is_active:
        raise NotAuthorizedError("Not authenticated")
    return user


def require_admin(user_id: int | None) -> User:
    user = load_actor(user_id)
    if not user.is_admin:
        raise NotAuthorizedError("Only admins can update submission status")
    return user


def require_owner(user_id: int | None, owner_id: int, what: str = "submission") -> User:
    user = load_actor(user_id)
    if user.id != owner_id:
        raise NotAuthorizedError(f"You are not authorized to modify this {what}")
    return user


# =============================================================================
# ARCHIVAL ON REJECT
# =============================================================================

def archive_rejection(
    submission,
    *,
    submission_type: str,
    start_date,
    end_date,
    payload: dict,
    reason: str,
    rejected_by_user_id: int,
) -> SubmissionRejection:
    """
    Move a rejected submission into the append-only rejection log.

    Writes the log row and deletes the active row in the current session;
    the caller commits.
    """
    record = SubmissionRejection(
        submission_type=submission_type,
        original_submission_id=submission.id,
        user_id=submission.user_id,
        start_date=start_date,
        end_date=end_date,
        payload=payload,
        reason=reason,
        submitted_at=submission.submitted_at,
        rejected_by_user_id=rejected_by_user_id,
        rejected_at=utcnow(),
    )
    db.session.add(record)
    db.session.delete(submission)
    db.session.flush()
    return record
