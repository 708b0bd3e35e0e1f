# Overview: Service-layer reporting over approved timesheet hours (summaries and CSV export).

"""
Reporting Service

Only hours inside an APPROVED timesheet submission count. For every approved
submission overlapping the requested range, the owner's entries in the
intersection of the two ranges are included.

CSV FORMAT (consumed by spreadsheets, keep stable):
- Project report: User,Project,Task,Subtask,Ticket,Date,Hours,Notes
- Task report:    User,Task,Subtask,Ticket,Date,Hours,Notes
- Fields containing a comma, quote or newline are quoted, quotes doubled.
- Rows separated by "\n", no trailing newline.
- Ticket titles joined with ", ". Hours as HH:MM.

Only admins and the project's managers may run reports.
"""

from __future__ import annotations

import csv
import io
from collections import defaultdict

from ..extensions import db
from ..models import Project, Task, TimesheetEntry, TimesheetSubmission, User
from .approval_state import ApprovalStatus, NotAuthorizedError, NotFoundError, ValidationError, load_actor
from employee_space.time_utils import format_duration, parse_iso_date


PROJECT_HEADER = ["User", "Project", "Task", "Subtask", "Ticket", "Date", "Hours", "Notes"]
TASK_HEADER = ["User", "Task", "Subtask", "Ticket", "Date", "Hours", "Notes"]


def _parse_range(start_date, end_date):
    start = parse_iso_date(start_date)
    end = parse_iso_date(end_date)
    if start is None or end is None:
        raise ValidationError("start_date and end_date are required (YYYY-MM-DD)")
    if end < start:
        raise ValidationError("end_date must not be before start_date")
    return start, end


def _authorize(actor_id: int, project: Project) -> None:
    actor = load_actor(actor_id)
    if not actor.is_admin and not project.is_manager(actor.id):
        raise NotAuthorizedError("You are not authorized to generate reports for this project")


def approved_entries(start, end, *, project_id: int | None = None, task_id: int | None = None) -> list[TimesheetEntry]:
    """Entries in [start, end] that fall inside an approved submission."""
    submissions = (
        db.session.query(TimesheetSubmission)
        .filter(
            TimesheetSubmission.status == ApprovalStatus.APPROVED.value,
            TimesheetSubmission.start_date <= end,
            TimesheetSubmission.end_date >= start,
        )
        .all()
    )

    entries = []
    for submission in submissions:
        query = db.session.query(TimesheetEntry).filter(
            TimesheetEntry.user_id == submission.user_id,
            TimesheetEntry.date >= max(start, submission.start_date),
            TimesheetEntry.date <= min(end, submission.end_date),
        )
        if project_id is not None:
            query = query.filter(TimesheetEntry.project_id == project_id)
        if task_id is not None:
            query = query.filter(TimesheetEntry.task_id == task_id)
        entries.extend(query.all())

    emails = _emails({e.user_id for e in entries})
    entries.sort(key=lambda e: (e.date, emails.get(e.user_id, ""), e.id))
    return entries


def _emails(user_ids) -> dict[int, str]:
    if not user_ids:
        return {}
    return dict(db.session.query(User.id, User.email).filter(User.id.in_(user_ids)).all())


def _to_csv(header: list[str], rows: list[list[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()[:-1]


def project_csv(actor_id: int, project_id: int, start_date, end_date) -> str:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project not found")
    _authorize(actor_id, project)
    start, end = _parse_range(start_date, end_date)

    entries = approved_entries(start, end, project_id=project.id)
    emails = _emails({e.user_id for e in entries})
    rows = [
        [
            emails.get(e.user_id, ""),
            project.title,
            e.subtask.task.title,
            e.subtask.title,
            ", ".join(t.title for t in e.tickets),
            e.date.isoformat(),
            format_duration(e.minutes),
            e.notes or "",
        ]
        for e in entries
    ]
    return _to_csv(PROJECT_HEADER, rows)


def task_csv(actor_id: int, task_id: int, start_date, end_date) -> str:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task not found")
    _authorize(actor_id, task.project)
    start, end = _parse_range(start_date, end_date)

    entries = approved_entries(start, end, task_id=task.id)
    emails = _emails({e.user_id for e in entries})
    rows = [
        [
            emails.get(e.user_id, ""),
            task.title,
            e.subtask.title,
            ", ".join(t.title for t in e.tickets),
            e.date.isoformat(),
            format_duration(e.minutes),
            e.notes or "",
        ]
        for e in entries
    ]
    return _to_csv(TASK_HEADER, rows)


def project_summary(actor_id: int, project_id: int, start_date, end_date) -> dict:
    """Approved hours for a project broken down by employee and by task."""
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project not found")
    _authorize(actor_id, project)
    start, end = _parse_range(start_date, end_date)

    entries = approved_entries(start, end, project_id=project.id)
    emails = _emails({e.user_id for e in entries})

    by_employee: dict[str, dict] = {}
    by_task: dict[int, dict] = {}
    for e in entries:
        subtask = e.subtask
        task = subtask.task

        email = emails.get(e.user_id, "")
        employee = by_employee.setdefault(email, {"minutes": 0, "subtasks": defaultdict(int), "titles": {}})
        employee["minutes"] += e.minutes
        employee["subtasks"][subtask.id] += e.minutes
        employee["titles"][subtask.id] = (subtask.title, task.title)

        task_row = by_task.setdefault(task.id, {"title": task.title, "minutes": 0, "subtasks": defaultdict(int), "names": {}})
        task_row["minutes"] += e.minutes
        task_row["subtasks"][subtask.id] += e.minutes
        task_row["names"][subtask.id] = subtask.title

    return {
        "project": project.to_dict(include_tasks=False),
        "date_range": {"start_date": start.isoformat(), "end_date": end.isoformat()},
        "total_hours": format_duration(sum(e.minutes for e in entries)),
        "employee_breakdown": [
            {
                "email": email,
                "total_hours": format_duration(row["minutes"]),
                "subtask_breakdown": [
                    {
                        "subtask_id": sid,
                        "subtask_title": row["titles"][sid][0],
                        "task_title": row["titles"][sid][1],
                        "hours": format_duration(minutes),
                    }
                    for sid, minutes in row["subtasks"].items()
                ],
            }
            for email, row in sorted(by_employee.items())
        ],
        "task_breakdown": [
            {
                "task_id": tid,
                "task_title": row["title"],
                "total_hours": format_duration(row["minutes"]),
                "subtasks": [
                    {"subtask_id": sid, "subtask_title": row["names"][sid], "hours": format_duration(minutes)}
                    for sid, minutes in row["subtasks"].items()
                ],
            }
            for tid, row in by_task.items()
        ],
    }
