# Overview: Service-layer operations for projects, tasks and subtasks.

"""
Project Service

WHY: Hours are logged against subtasks, so the project tree is the backbone
of timesheets and reports.

PERMISSIONS:
- Admins create, update and delete projects.
- Admins and a project's managers maintain its tasks and subtasks.

DELETES are idempotent: removing something that is already gone succeeds.
Removing a project, task or subtask also removes the timesheet entries
logged against it.

Listings are cached under the "projects:" prefix; every write invalidates it.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Project, Subtask, Task, TimesheetEntry, User
from .approval_state import NotAuthorizedError, NotFoundError, ValidationError, load_actor
from .cache_service import get_cache
from .concurrency import retrying
from employee_space.time_utils import parse_iso_date, utcnow


CACHE_PREFIX = "projects:"


class ProjectError(ValidationError):
    """Raised for invalid project, task or subtask input."""
    pass


def _users_by_email(emails) -> list[User]:
    if not emails:
        return []
    wanted = {e.strip().lower() for e in emails if e and e.strip()}
    users = db.session.query(User).filter(db.func.lower(User.email).in_(wanted)).all()
    found = {u.email.lower() for u in users}
    missing = sorted(wanted - found)
    if missing:
        raise ProjectError(f"Unknown user: {', '.join(missing)}")
    return users


def _require_title(title) -> str:
    if not title or not str(title).strip():
        raise ProjectError("Title is required")
    return str(title).strip()


def _require_admin(actor_id: int) -> User:
    actor = load_actor(actor_id)
    if not actor.is_admin:
        raise NotAuthorizedError("Only admins can manage projects")
    return actor


def _require_manager(actor_id: int, project: Project) -> User:
    actor = load_actor(actor_id)
    if not actor.is_admin and not project.is_manager(actor.id):
        raise NotAuthorizedError("Only admins or project managers can modify this project")
    return actor


def _get_project(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project not found")
    return project


def _get_task(task_id: int) -> Task:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task not found")
    return task


def _get_subtask(subtask_id: int) -> Subtask:
    subtask = db.session.get(Subtask, subtask_id)
    if subtask is None:
        raise NotFoundError("Subtask not found")
    return subtask


def _delete_entries(**filters) -> int:
    # ORM deletes so each entry's tickets go with it
    entries = db.session.query(TimesheetEntry).filter_by(**filters).all()
    for entry in entries:
        db.session.delete(entry)
    return len(entries)


def _commit(cache) -> None:
    db.session.commit()
    get_cache(cache).invalidate(CACHE_PREFIX)


# =============================================================================
# READS
# =============================================================================

def get_project(project_id: int) -> Project | None:
    return db.session.get(Project, project_id)


def list_projects(user_id: int, cache=None) -> list[dict]:
    """
    Projects a user can log time against: ones they manage or hold a subtask
    assignment in. Admins see everything.
    """
    def load():
        user = load_actor(user_id)
        projects = db.session.query(Project).order_by(Project.title).all()
        if user.is_admin:
            return [p.to_dict() for p in projects]
        visible = []
        for project in projects:
            assigned = any(
                any(u.id == user.id for u in subtask.assigned_users)
                for task in project.tasks
                for subtask in task.subtasks
            )
            if assigned or project.is_manager(user.id):
                visible.append(project.to_dict())
        return visible

    return get_cache(cache).get_or_load(f"{CACHE_PREFIX}user:{user_id}", load)


def list_managed_projects(user_id: int, cache=None) -> list[dict]:
    """Projects the user may administer: all for admins, managed ones otherwise."""
    def load():
        user = load_actor(user_id)
        projects = db.session.query(Project).order_by(Project.title).all()
        return [p.to_dict() for p in projects if user.is_admin or p.is_manager(user.id)]

    return get_cache(cache).get_or_load(f"{CACHE_PREFIX}managed:{user_id}", load)


# =============================================================================
# PROJECTS
# =============================================================================

@retrying
def create_project(actor_id: int, *, title: str, description: str | None = None, managers=None, cache=None) -> Project:
    _require_admin(actor_id)
    project = Project(
        title=_require_title(title),
        description=description,
        created_at=utcnow(),
        updated_at=utcnow(),
    )
    project.managers = _users_by_email(managers)
    db.session.add(project)
    _commit(cache)
    return project


@retrying
def update_project(
    actor_id: int,
    project_id: int,
    *,
    title: str | None = None,
    description: str | None = None,
    managers=None,
    cache=None,
) -> Project:
    _require_admin(actor_id)
    project = _get_project(project_id)
    if title is not None:
        project.title = _require_title(title)
    if description is not None:
        project.description = description
    if managers is not None:
        project.managers = _users_by_email(managers)
    project.updated_at = utcnow()
    _commit(cache)
    return project


@retrying
def delete_project(actor_id: int, project_id: int, cache=None) -> bool:
    """Delete a project with its tasks, subtasks and logged time. Missing is fine."""
    _require_admin(actor_id)
    project = db.session.get(Project, project_id)
    if project is None:
        return True
    _delete_entries(project_id=project_id)
    db.session.delete(project)
    _commit(cache)
    return True


# =============================================================================
# TASKS
# =============================================================================

@retrying
def create_task(
    actor_id: int,
    project_id: int,
    *,
    title: str,
    description: str | None = None,
    due_date=None,
    cache=None,
) -> Task:
    project = _get_project(project_id)
    _require_manager(actor_id, project)
    task = Task(
        project_id=project.id,
        title=_require_title(title),
        description=description,
        due_date=parse_iso_date(due_date),
        completed=False,
        created_at=utcnow(),
        updated_at=utcnow(),
    )
    db.session.add(task)
    _commit(cache)
    return task


@retrying
def update_task(
    actor_id: int,
    task_id: int,
    *,
    title: str | None = None,
    description: str | None = None,
    due_date=None,
    completed: bool | None = None,
    cache=None,
) -> Task:
    task = _get_task(task_id)
    _require_manager(actor_id, task.project)
    if title is not None:
        task.title = _require_title(title)
    if description is not None:
        task.description = description
    if due_date is not None:
        task.due_date = parse_iso_date(due_date)
    if completed is not None:
        task.completed = bool(completed)
    task.updated_at = utcnow()
    _commit(cache)
    return task


@retrying
def toggle_task_completion(actor_id: int, task_id: int, cache=None) -> Task:
    task = _get_task(task_id)
    _require_manager(actor_id, task.project)
    task.completed = not task.completed
    task.updated_at = utcnow()
    _commit(cache)
    return task


@retrying
def delete_task(actor_id: int, task_id: int, cache=None) -> bool:
    task = db.session.get(Task, task_id)
    if task is None:
        return True
    _require_manager(actor_id, task.project)
    _delete_entries(task_id=task_id)
    db.session.delete(task)
    _commit(cache)
    return True


# =============================================================================
# SUBTASKS
# =============================================================================

@retrying
def create_subtask(
    actor_id: int,
    task_id: int,
    *,
    title: str,
    description: str | None = None,
    assigned_users=None,
    cache=None,
) -> Subtask:
    task = _get_task(task_id)
    _require_manager(actor_id, task.project)
    subtask = Subtask(
        task_id=task.id,
        title=_require_title(title),
        description=description,
        created_at=utcnow(),
        updated_at=utcnow(),
    )
    subtask.assigned_users = _users_by_email(assigned_users)
    db.session.add(subtask)
    _commit(cache)
    return subtask


@retrying
def update_subtask(
    actor_id: int,
    subtask_id: int,
    *,
    title: str | None = None,
    description: str | None = None,
    assigned_users=None,
    cache=None,
) -> Subtask:
    subtask = _get_subtask(subtask_id)
    _require_manager(actor_id, subtask.task.project)
    if title is not None:
        subtask.title = _require_title(title)
    if description is not None:
        subtask.description = description
    if assigned_users is not None:
        subtask.assigned_users = _users_by_email(assigned_users)
    subtask.updated_at = utcnow()
    _commit(cache)
    return subtask


@retrying
def delete_subtask(actor_id: int, subtask_id: int, cache=None) -> bool:
    subtask = db.session.get(Subtask, subtask_id)
    if subtask is None:
        return True
    _require_manager(actor_id, subtask.task.project)
    _delete_entries(subtask_id=subtask_id)
    db.session.delete(subtask)
    _commit(cache)
    return True
