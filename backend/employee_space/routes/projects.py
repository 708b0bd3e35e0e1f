# Overview: Flask API routes for projects, tasks and subtasks; parses input and returns JSON responses.

"""
Project Routes

SECURITY:
- Project create/update/delete: admins.
- Task and subtask writes: admins or the project's managers.
Permission checks live in project_service; routes map its errors to statuses.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..responses import error_response
from ..services import project_service
from ..services.approval_state import WorkflowError


projects_bp = Blueprint("projects", __name__, url_prefix="/api/projects")


@projects_bp.get("")
@require_auth
def list_projects_route():
    """Projects visible to the user; ?manage=true lists the ones they administer."""
    try:
        if request.args.get("manage", "false").lower() == "true":
            projects = project_service.list_managed_projects(g.current_user.id)
        else:
            projects = project_service.list_projects(g.current_user.id)
    except WorkflowError as e:
        return error_response(e)
    return jsonify({"projects": projects})


@projects_bp.get("/<int:project_id>")
@require_auth
def get_project_route(project_id: int):
    project = project_service.get_project(project_id)
    if not project:
        return jsonify({"error": "Project not found"}), 404
    return jsonify({"project": project.to_dict()})


@projects_bp.post("")
@require_auth
def create_project_route():
    data = request.get_json(silent=True) or {}
    try:
        project = project_service.create_project(
            g.current_user.id,
            title=data.get("title"),
            description=data.get("description"),
            managers=data.get("managers"),
        )
    except WorkflowError as e:
        return error_response(e)
    return jsonify({"project": project.to_dict()}), 201


@projects_bp.put("/<int:project_id>")
@require_auth
def update_project_route(project_id: int):
    data = request.get_json(silent=True) or {}
    try:
        project = project_service.update_project(
            g.current_user.id,
            project_id,
            title=data.get("title"),
            description=data.get("description"),
            managers=data.get("managers"),
        )
    except WorkflowError as e:
        return error_response(e)
    return jsonify({"project": project.to_dict()})


@projects_bp.delete("/<int:project_id>")
@require_auth
def delete_project_route(project_id: int):
    try:
        project_service.delete_project(g.current_user.id, project_id)
    except WorkflowError as e:
        return error_response(e)
    return jsonify({"success": True})


# =============================================================================
# TASKS
# =============================================================================

@projects_bp.post("/<int:project_id>/tasks")
@require_auth
def create_task_route(project_id: int):
    data = request.get_json(silent=True) or {}
    try:
        task = project_service.create_task(
            g.current_user.id,
            project_id,
            title=data.get("title"),
            description=data.get("description"),
            due_date=data.get("due_date"),
        )
    except WorkflowError as e:
        return error_response(e)
    return jsonify({"task": task.to_dict()}), 201


@projects_bp.put("/tasks/<int:task_id>")
@require_auth
def update_task_route(task_id: int):
    data = request.get_json(silent=True) or {}
    try:
        task = project_service.update_task(
            g.current_user.id,
            task_id,
            title=data.get("title"),
            description=data.get("description"),
            due_date=data.get("due_date"),
            completed=data.get("completed"),
        )
    except WorkflowError as e:
        return error_response(e)
    return jsonify({"task": task.to_dict()})


@projects_bp.post("/tasks/<int:task_id>/toggle")
@require_auth
def toggle_task_route(task_id: int):
    try:
        task = project_service.toggle_task_completion(g.current_user.id, task_id)
    except WorkflowError as e:
        return error_response(e)
    return jsonify({"task": task.to_dict()})


@projects_bp.delete("/tasks/<int:task_id>")
@require_auth
def delete_task_route(task_id: int):
    try:
        project_service.delete_task(g.current_user.id, task_id)
    except WorkflowError as e:
        return error_response(e)
    return jsonify({"success": True})


# =============================================================================
# SUBTASKS
# =============================================================================

@projects_bp.post("/tasks/<int:task_id>/subtasks")
@require_auth
def create_subtask_route(task_id: int):
    data = request.get_json(silent=True) or {}
    try:
        subtask = project_service.create_subtask(
            g.current_user.id,
            task_id,
            title=data.get("title"),
            description=data.get("description"),
            assigned_users=data.get("assigned_users"),
        )
    except WorkflowError as e:
        return error_response(e)
    return jsonify({"subtask": subtask.to_dict()}), 201


@projects_bp.put("/subtasks/<int:subtask_id>")
@require_auth
def update_subtask_route(subtask_id: int):
    data = request.get_json(silent=True) or {}
    try:
        subtask = project_service.update_subtask(
            g.current_user.id,
            subtask_id,
            title=data.get("title"),
            description=data.get("description"),
            assigned_users=data.get("assigned_users"),
        )
    except WorkflowError as e:
        return error_response(e)
    return jsonify({"subtask": subtask.to_dict()})


@projects_bp.delete("/subtasks/<int:subtask_id>")
@require_auth
def delete_subtask_route(subtask_id: int):
    try:
        project_service.delete_subtask(g.current_user.id, subtask_id)
    except WorkflowError as e:
        return error_response(e)
    return jsonify({"success": True})
