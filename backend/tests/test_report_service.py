"""
Report tests.

Verifies:
- Only hours inside approved submissions are reported
- CSV header, quoting and line endings stay stable
- Only admins and project managers may run reports
"""

import csv
import io
from datetime import date, timedelta

import pytest

from employee_space.extensions import db
from employee_space.services import report_service, timesheet_service
from employee_space.services.approval_state import NotAuthorizedError, ValidationError


MONDAY = date(2024, 5, 13)


@pytest.fixture
def approved_week(employee, admin, project_tree):
    _, _, subtask = project_tree
    timesheet_service.upsert_entry(
        employee.id, subtask_id=subtask.id, date=MONDAY.isoformat(), hours="08:00",
        notes='Said "hi", then left', tickets=["WEB-1", "WEB-2"],
    )
    timesheet_service.upsert_entry(
        employee.id, subtask_id=subtask.id, date=(MONDAY + timedelta(days=1)).isoformat(), hours="02:30",
    )
    submission_id = timesheet_service.submit(employee.id, MONDAY.isoformat()).data["submission"]["id"]
    timesheet_service.approve(submission_id, admin.id)
    return project_tree


class TestProjectCsv:
    def test_header_and_quoting(self, admin, approved_week):
        project, _, _ = approved_week

        content = report_service.project_csv(admin.id, project.id, "2024-05-13", "2024-05-19")

        lines = content.split("\n")
        assert lines[0] == "User,Project,Task,Subtask,Ticket,Date,Hours,Notes"
        assert lines[1] == (
            'jo@example.com,Website,Build,Landing page,"WEB-1, WEB-2",2024-05-13,08:00,"Said ""hi"", then left"'
        )
        assert lines[2] == "jo@example.com,Website,Build,Landing page,,2024-05-14,02:30,"
        assert not content.endswith("\n")

    def test_multiline_notes_are_quoted(self, employee, admin, project_tree):
        project, _, subtask = project_tree
        timesheet_service.upsert_entry(
            employee.id, subtask_id=subtask.id, date=MONDAY.isoformat(), hours="01:00",
            notes="line one\nline two",
        )
        submission_id = timesheet_service.submit(employee.id, MONDAY.isoformat()).data["submission"]["id"]
        timesheet_service.approve(submission_id, admin.id)

        content = report_service.project_csv(admin.id, project.id, "2024-05-13", "2024-05-19")

        assert ',2024-05-13,01:00,"line one\nline two"' in content
        # the embedded newline splits the physical lines, so read records with csv
        assert len(content.split("\n")) == 3
        rows = list(csv.reader(io.StringIO(content)))
        assert len(rows) == 2
        assert rows[1][-1] == "line one\nline two"
        assert rows[1][:4] == ["jo@example.com", "Website", "Build", "Landing page"]

    def test_range_clips_to_intersection(self, admin, approved_week):
        project, _, _ = approved_week
        content = report_service.project_csv(admin.id, project.id, "2024-05-14", "2024-05-31")
        assert len(content.split("\n")) == 2

    def test_pending_hours_not_reported(self, employee, admin, project_tree):
        project, _, subtask = project_tree
        timesheet_service.upsert_entry(employee.id, subtask_id=subtask.id, date=MONDAY.isoformat(), hours="08:00")
        timesheet_service.submit(employee.id, MONDAY.isoformat())

        content = report_service.project_csv(admin.id, project.id, "2024-05-13", "2024-05-19")

        assert content == ",".join(report_service.PROJECT_HEADER)

    def test_employee_not_authorized(self, employee, approved_week):
        project, _, _ = approved_week
        with pytest.raises(NotAuthorizedError):
            report_service.project_csv(employee.id, project.id, "2024-05-13", "2024-05-19")

    def test_manager_authorized(self, employee, approved_week):
        project, _, _ = approved_week
        project.managers = [employee]
        db.session.commit()
        assert report_service.project_csv(employee.id, project.id, "2024-05-13", "2024-05-19")

    def test_bad_range(self, admin, approved_week):
        project, _, _ = approved_week
        with pytest.raises(ValidationError):
            report_service.project_csv(admin.id, project.id, "2024-05-19", "2024-05-13")
        with pytest.raises(ValidationError):
            report_service.project_csv(admin.id, project.id, None, "2024-05-13")


class TestTaskCsvAndSummary:
    def test_task_csv(self, admin, approved_week):
        _, task, _ = approved_week

        content = report_service.task_csv(admin.id, task.id, "2024-05-13", "2024-05-19")

        lines = content.split("\n")
        assert lines[0] == "User,Task,Subtask,Ticket,Date,Hours,Notes"
        assert lines[2] == "jo@example.com,Build,Landing page,,2024-05-14,02:30,"

    def test_project_summary(self, admin, approved_week):
        project, task, subtask = approved_week

        summary = report_service.project_summary(admin.id, project.id, "2024-05-13", "2024-05-19")

        assert summary["total_hours"] == "10:30"
        assert summary["date_range"] == {"start_date": "2024-05-13", "end_date": "2024-05-19"}
        assert summary["employee_breakdown"] == [
            {
                "email": "jo@example.com",
                "total_hours": "10:30",
                "subtask_breakdown": [
                    {
                        "subtask_id": subtask.id,
                        "subtask_title": "Landing page",
                        "task_title": "Build",
                        "hours": "10:30",
                    }
                ],
            }
        ]
        assert summary["task_breakdown"][0]["task_id"] == task.id
        assert summary["task_breakdown"][0]["total_hours"] == "10:30"
