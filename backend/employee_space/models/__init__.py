from .auth import User, SessionToken
from .projects import Project, Task, Subtask, project_managers, subtask_assignments
from .timesheets import TimesheetEntry, Ticket, TimesheetSubmission, SubmissionRejection
from .notifications import Notification
from .toil import ToilEntry, ToilBalance, ToilSettings, ToilSubmission

__all__ = [
    'User', 'SessionToken',
    'Project', 'Task', 'Subtask', 'project_managers', 'subtask_assignments',
    'TimesheetEntry', 'Ticket', 'TimesheetSubmission', 'SubmissionRejection',
    'Notification',
    'ToilEntry', 'ToilBalance', 'ToilSettings', 'ToilSubmission',
]
