"""Submission state machine and ActionResult tests."""

import pytest

from employee_space.services.approval_state import (
    ActionResult,
    ApprovalStatus,
    InvalidTransitionError,
    NotAuthorizedError,
    SubmissionAction,
    SubmissionStateMachine,
    load_actor,
    require_admin,
    require_owner,
)


class TestStateMachine:
    @pytest.mark.parametrize(
        "action,expected",
        [
            ("approve", "approved"),
            ("reject", "rejected"),
            ("cancel", "draft"),
        ],
    )
    def test_pending_transitions(self, action, expected):
        assert SubmissionStateMachine.apply("pending", action) == expected

    def test_accepts_enum_members(self):
        assert SubmissionStateMachine.apply(ApprovalStatus.PENDING, SubmissionAction.APPROVE) == "approved"
        assert SubmissionStateMachine.can_resubmit(ApprovalStatus.REJECTED)

    @pytest.mark.parametrize("status", ["approved", "rejected"])
    @pytest.mark.parametrize("action", ["approve", "reject", "cancel"])
    def test_terminal_states_reject_everything(self, status, action):
        assert not SubmissionStateMachine.can_apply(status, action)
        with pytest.raises(InvalidTransitionError) as excinfo:
            SubmissionStateMachine.apply(status, action)
        assert excinfo.value.kind == "invalid_state"
        assert str(excinfo.value) == f"Cannot {action} a submission that is already {status}"

    def test_resubmittable(self):
        assert SubmissionStateMachine.can_resubmit("pending")
        assert SubmissionStateMachine.can_resubmit("rejected")
        assert not SubmissionStateMachine.can_resubmit("approved")


class TestActionResult:
    def test_ok_merges_payload(self):
        result = ActionResult.ok("Saved", entry={"id": 1})
        assert result.to_dict() == {"success": True, "message": "Saved", "entry": {"id": 1}}

    def test_from_error(self):
        result = ActionResult.from_error(NotAuthorizedError("Nope"))
        assert not result.success
        assert result.to_dict() == {"success": False, "message": "Nope", "error": "not_authorized"}


class TestActors:
    def test_missing_or_inactive_user_is_unauthenticated(self, employee):
        with pytest.raises(NotAuthorizedError, match="Not authenticated"):
            load_actor(None)
        with pytest.raises(NotAuthorizedError):
            load_actor(987654)

        employee.is_active = False
        with pytest.raises(NotAuthorizedError):
            load_actor(employee.id)

    def test_admin_and_owner_gates(self, employee, other_employee, admin):
        assert require_admin(admin.id) is admin
        with pytest.raises(NotAuthorizedError, match="Only admins"):
            require_admin(employee.id)

        assert require_owner(employee.id, employee.id) is employee
        with pytest.raises(NotAuthorizedError):
            require_owner(other_employee.id, employee.id)
