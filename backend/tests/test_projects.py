"""
Project, task and subtask tests.

Verifies:
- Admin-only project management, manager-or-admin task maintenance
- Visibility: admins see all, employees see managed or assigned projects
- Cached listings are invalidated by writes
- Deletes are idempotent and remove logged time
"""

import pytest

from employee_space.extensions import db
from employee_space.models import Project, Subtask, Task, TimesheetEntry
from employee_space.services import auth_service, project_service, timesheet_service
from employee_space.services.approval_state import NotAuthorizedError, NotFoundError
from employee_space.services.cache_service import TTLCache
from employee_space.services.project_service import ProjectError


class TestProjects:
    def test_admin_creates_project_with_managers(self, admin, employee):
        project = project_service.create_project(
            admin.id, title="  Intranet ", description="Internal", managers=["JO@example.com"]
        )

        assert project.title == "Intranet"
        assert project.to_dict()["managers"] == [employee.email]

    def test_employee_cannot_create(self, employee):
        with pytest.raises(NotAuthorizedError, match="Only admins can manage projects"):
            project_service.create_project(employee.id, title="Rogue")

    def test_title_required_and_managers_must_exist(self, admin):
        with pytest.raises(ProjectError, match="Title is required"):
            project_service.create_project(admin.id, title="   ")
        db.session.rollback()
        with pytest.raises(ProjectError, match="Unknown user: ghost@example.com"):
            project_service.create_project(admin.id, title="X", managers=["ghost@example.com"])

    def test_update(self, admin, project_tree):
        project, _, _ = project_tree
        updated = project_service.update_project(admin.id, project.id, title="Website v2")
        assert updated.title == "Website v2"
        assert updated.description == "Marketing site"

    def test_delete_removes_tree_and_entries(self, admin, employee, project_tree):
        project, task, subtask = project_tree
        timesheet_service.upsert_entry(employee.id, subtask_id=subtask.id, date="2024-05-13", hours="1")
        project_id, task_id, subtask_id = project.id, task.id, subtask.id

        assert project_service.delete_project(admin.id, project_id)

        assert db.session.get(Project, project_id) is None
        assert db.session.get(Task, task_id) is None
        assert db.session.get(Subtask, subtask_id) is None
        assert db.session.query(TimesheetEntry).count() == 0
        assert project_service.delete_project(admin.id, project_id)


class TestVisibility:
    def test_listing_rules(self, admin, employee, other_employee, project_tree):
        project_service.create_project(admin.id, title="Other")

        assert [p["title"] for p in project_service.list_projects(admin.id)] == ["Other", "Website"]
        assert [p["title"] for p in project_service.list_projects(employee.id)] == ["Website"]
        assert project_service.list_projects(other_employee.id) == []

    def test_managed_projects(self, admin, other_employee, project_tree):
        project, _, _ = project_tree
        assert project_service.list_managed_projects(other_employee.id) == []

        project_service.update_project(admin.id, project.id, managers=[other_employee.email])

        managed = project_service.list_managed_projects(other_employee.id)
        assert [p["id"] for p in managed] == [project.id]

    def test_writes_invalidate_cached_listing(self, admin, project_tree):
        cache = TTLCache()
        assert len(project_service.list_projects(admin.id, cache=cache)) == 1

        project_service.create_project(admin.id, title="Later", cache=cache)

        assert len(project_service.list_projects(admin.id, cache=cache)) == 2

    def test_promotion_to_admin_clears_cached_visibility(self, other_employee, project_tree):
        cache = TTLCache()
        assert project_service.list_projects(other_employee.id, cache=cache) == []
        assert project_service.list_managed_projects(other_employee.id, cache=cache) == []

        auth_service.update_user(other_employee.id, is_admin=True, cache=cache)

        assert [p["title"] for p in project_service.list_projects(other_employee.id, cache=cache)] == ["Website"]
        assert len(project_service.list_managed_projects(other_employee.id, cache=cache)) == 1

    def test_deactivation_clears_cached_visibility(self, employee, project_tree):
        cache = TTLCache()
        project_service.list_projects(employee.id, cache=cache)
        assert cache.get(f"projects:user:{employee.id}") is not None

        auth_service.deactivate_user(employee.id, cache=cache)

        assert cache.get(f"projects:user:{employee.id}") is None


class TestTasksAndSubtasks:
    def test_manager_can_maintain_tasks(self, admin, other_employee, project_tree):
        project, _, _ = project_tree
        project_service.update_project(admin.id, project.id, managers=[other_employee.email])

        task = project_service.create_task(other_employee.id, project.id, title="QA", due_date="2024-06-01")
        assert task.due_date.isoformat() == "2024-06-01"
        assert not task.completed

        assert project_service.toggle_task_completion(other_employee.id, task.id).completed
        assert not project_service.toggle_task_completion(other_employee.id, task.id).completed

        subtask = project_service.create_subtask(
            other_employee.id, task.id, title="Smoke test", assigned_users=[other_employee.email]
        )
        assert subtask.to_dict()["assigned_users"] == [other_employee.email]

    def test_non_manager_cannot_touch_tasks(self, employee, project_tree):
        project, task, subtask = project_tree
        with pytest.raises(NotAuthorizedError):
            project_service.create_task(employee.id, project.id, title="Nope")
        with pytest.raises(NotAuthorizedError):
            project_service.update_subtask(employee.id, subtask.id, title="Nope")
        with pytest.raises(NotAuthorizedError):
            project_service.delete_task(employee.id, task.id)

    def test_missing_parent(self, admin):
        with pytest.raises(NotFoundError):
            project_service.create_task(admin.id, 4242, title="Orphan")
        with pytest.raises(NotFoundError):
            project_service.create_subtask(admin.id, 4242, title="Orphan")

    def test_update_task_fields(self, admin, project_tree):
        _, task, _ = project_tree
        updated = project_service.update_task(admin.id, task.id, title="Ship", completed=True)
        assert updated.title == "Ship"
        assert updated.completed

    def test_delete_subtask_removes_entries(self, admin, employee, project_tree):
        _, _, subtask = project_tree
        timesheet_service.upsert_entry(employee.id, subtask_id=subtask.id, date="2024-05-13", hours="2")
        subtask_id = subtask.id

        assert project_service.delete_subtask(admin.id, subtask_id)
        assert db.session.query(TimesheetEntry).count() == 0
        assert project_service.delete_subtask(admin.id, subtask_id)
