"""
Timesheet entry and submission tests.

Verifies:
- Entries upsert per (user, subtask, date) with quarter-hour rounding
- Ticket lists are replaced only when supplied
- Submission is strict: one per user and week
- Rejection archives the submission, notifies the owner and frees the week
"""

from datetime import date, timedelta

from sqlalchemy import insert

from employee_space.extensions import db
from employee_space.models import Notification, SubmissionRejection, TimesheetEntry, TimesheetSubmission
from employee_space.services import timesheet_service
from employee_space.time_utils import utcnow


MONDAY = date(2024, 5, 13)


def log_hours(user, subtask, day=MONDAY, hours="07:30", **kwargs):
    result = timesheet_service.upsert_entry(user.id, subtask_id=subtask.id, date=day.isoformat(), hours=hours, **kwargs)
    assert result.success, result.message
    return result.data["entry"]


class TestEntries:
    def test_create_entry_copies_project_and_task(self, employee, project_tree):
        project, task, subtask = project_tree

        entry = log_hours(employee, subtask, hours="7.4", notes="Hero banner", tickets="WEB-1, WEB-2")

        assert entry["hours"] == "07:30"
        assert entry["project_id"] == project.id
        assert entry["task_id"] == task.id
        assert entry["tickets"] == ["WEB-1", "WEB-2"]

    def test_upsert_updates_same_day(self, employee, project_tree):
        _, _, subtask = project_tree
        log_hours(employee, subtask, hours="02:00", tickets=["WEB-1"])

        entry = log_hours(employee, subtask, hours="03:00", notes="more")

        assert db.session.query(TimesheetEntry).filter_by(user_id=employee.id).count() == 1
        assert entry["hours"] == "03:00"
        assert entry["tickets"] == ["WEB-1"]

        entry = log_hours(employee, subtask, hours="03:00", tickets=[])
        assert entry["tickets"] == []

    def test_unknown_subtask(self, employee):
        result = timesheet_service.upsert_entry(employee.id, subtask_id=9999, date=MONDAY.isoformat(), hours="1")
        assert not result.success
        assert result.error == "not_found"

    def test_concurrent_insert_of_same_cell_is_updated(self, employee, project_tree, concurrent_insert):
        project, task, subtask = project_tree
        now = utcnow()
        fired = concurrent_insert(
            TimesheetEntry,
            insert(TimesheetEntry.__table__).values(
                user_id=employee.id,
                project_id=project.id,
                task_id=task.id,
                subtask_id=subtask.id,
                date=MONDAY,
                minutes=60,
                created_at=now,
                updated_at=now,
            ),
        )

        entry = log_hours(employee, subtask, hours="03:00", tickets=["WEB-9"])

        assert len(fired) == 1
        assert entry["hours"] == "03:00"
        assert db.session.query(TimesheetEntry).filter_by(user_id=employee.id).count() == 1
        assert entry["tickets"] == ["WEB-9"]

    def test_week_entries_total(self, employee, project_tree):
        _, _, subtask = project_tree
        log_hours(employee, subtask, MONDAY, "08:00")
        log_hours(employee, subtask, MONDAY + timedelta(days=1), "06:15")
        log_hours(employee, subtask, MONDAY + timedelta(days=7), "05:00")

        week = timesheet_service.week_entries(employee.id, MONDAY + timedelta(days=4))

        assert week["start_date"] == "2024-05-13"
        assert week["end_date"] == "2024-05-19"
        assert len(week["entries"]) == 2
        assert week["total_hours"] == "14:15"

    def test_delete_is_owner_or_admin(self, employee, other_employee, admin, project_tree):
        _, _, subtask = project_tree
        entry = log_hours(employee, subtask)

        denied = timesheet_service.delete_entry(entry["id"], actor_id=other_employee.id)
        assert not denied.success
        assert denied.error == "not_authorized"

        assert timesheet_service.delete_entry(entry["id"], actor_id=admin.id).success
        assert timesheet_service.delete_entry(entry["id"], actor_id=admin.id).success
        assert db.session.get(TimesheetEntry, entry["id"]) is None


class TestSubmissions:
    def test_submit_totals_week(self, employee, project_tree):
        _, _, subtask = project_tree
        log_hours(employee, subtask, MONDAY, "08:00")
        log_hours(employee, subtask, MONDAY + timedelta(days=1), "04:00")

        result = timesheet_service.submit(employee.id, MONDAY.isoformat(), "All done")

        assert result.success
        assert result.message == "Timesheet submitted successfully"
        assert result.data["submission"]["total_hours"] == "12:00"
        assert result.data["submission"]["status"] == "pending"

    def test_submit_is_strict(self, employee, project_tree):
        _, _, subtask = project_tree
        log_hours(employee, subtask)
        timesheet_service.submit(employee.id, MONDAY.isoformat())

        result = timesheet_service.submit(employee.id, MONDAY.isoformat())

        assert not result.success
        assert result.message == "You already have a pending submission for this week"

    def test_submit_requires_entries(self, employee):
        result = timesheet_service.submit(employee.id, MONDAY.isoformat())
        assert not result.success
        assert result.message == "No timesheet entries found for this week"

    def test_approve(self, employee, admin, project_tree):
        _, _, subtask = project_tree
        log_hours(employee, subtask)
        submission_id = timesheet_service.submit(employee.id, MONDAY.isoformat()).data["submission"]["id"]

        result = timesheet_service.approve(submission_id, admin.id)

        assert result.success
        assert result.data["submission"]["approved_by"] == admin.email
        again = timesheet_service.approve(submission_id, admin.id)
        assert again.error == "invalid_state"

    def test_employee_cannot_approve(self, employee, project_tree):
        _, _, subtask = project_tree
        log_hours(employee, subtask)
        submission_id = timesheet_service.submit(employee.id, MONDAY.isoformat()).data["submission"]["id"]

        result = timesheet_service.approve(submission_id, employee.id)

        assert result.error == "not_authorized"

    def test_cancel_owner_only(self, employee, other_employee, project_tree):
        _, _, subtask = project_tree
        log_hours(employee, subtask)
        submission_id = timesheet_service.submit(employee.id, MONDAY.isoformat()).data["submission"]["id"]

        assert timesheet_service.cancel(submission_id, actor_id=other_employee.id).error == "not_authorized"
        assert timesheet_service.cancel(submission_id, actor_id=employee.id).success
        assert db.session.get(TimesheetSubmission, submission_id) is None


class TestRejection:
    def _submit(self, employee, subtask):
        log_hours(employee, subtask, notes="banner")
        return timesheet_service.submit(employee.id, MONDAY.isoformat()).data["submission"]["id"]

    def test_reason_required(self, employee, admin, project_tree):
        submission_id = self._submit(employee, project_tree[2])

        result = timesheet_service.reject(submission_id, admin.id, "")

        assert not result.success
        assert result.error == "validation"
        assert db.session.get(TimesheetSubmission, submission_id) is not None

    def test_approved_timesheet_reports_state_before_missing_reason(self, employee, admin, project_tree):
        submission_id = self._submit(employee, project_tree[2])
        timesheet_service.approve(submission_id, admin.id)

        result = timesheet_service.reject(submission_id, admin.id, "")

        assert result.error == "invalid_state"
        assert "already approved" in result.message

    def test_reject_archives_and_notifies(self, employee, admin, project_tree):
        submission_id = self._submit(employee, project_tree[2])

        result = timesheet_service.reject(submission_id, admin.id, "Hours look wrong")

        assert result.success
        assert result.message == "Timesheet rejected successfully"
        assert db.session.get(TimesheetSubmission, submission_id) is None

        record = db.session.query(SubmissionRejection).one()
        assert record.original_submission_id == submission_id
        assert record.reason == "Hours look wrong"
        assert record.rejected_by_user_id == admin.id
        assert record.payload["entries"][0]["notes"] == "banner"

        notification = db.session.query(Notification).filter_by(user_id=employee.id).one()
        assert notification.type == "timesheet_rejection"
        assert notification.title == "Timesheet Rejected"
        assert notification.message == (
            "Your timesheet for week 2024-05-13 - 2024-05-19 was rejected: Hours look wrong"
        )
        assert notification.metadata_json["archived_submission_id"] == submission_id

    def test_week_can_be_resubmitted_after_rejection(self, employee, admin, project_tree):
        submission_id = self._submit(employee, project_tree[2])
        timesheet_service.reject(submission_id, admin.id, "Redo")

        assert timesheet_service.submit(employee.id, MONDAY.isoformat()).success

    def test_rejection_log_and_statistics(self, employee, other_employee, admin, project_tree):
        subtask = project_tree[2]
        timesheet_service.reject(self._submit(employee, subtask), admin.id, "Redo")
        timesheet_service.submit(employee.id, MONDAY.isoformat())
        pending = timesheet_service.list_submissions(employee.id, status="pending")[0]
        timesheet_service.reject(pending.id, admin.id, "Redo")

        assert len(timesheet_service.list_rejections(employee.id)) == 2
        assert timesheet_service.list_rejections(other_employee.id) == []

        stats = timesheet_service.rejection_statistics()
        assert stats["total_rejections"] == 2
        assert stats["rejections_by_user"] == {employee.email: 2}
        assert stats["rejections_by_reason"] == {"Redo": 2}
        assert stats["recent_rejections"][0]["week_period"] == "2024-05-13 - 2024-05-19"
        assert stats["recent_rejections"][0]["rejected_by"] == admin.email
