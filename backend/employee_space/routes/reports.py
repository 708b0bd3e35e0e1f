# Overview: Flask API routes for project reports and CSV exports.

from flask import Blueprint, Response, request, jsonify, g

from ..decorators import require_auth
from ..responses import error_response
from ..services import report_service
from ..services.approval_state import WorkflowError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@reports_bp.get("/projects/<int:project_id>")
@require_auth
def project_summary_route(project_id: int):
    try:
        report = report_service.project_summary(
            g.current_user.id, project_id, request.args.get("start_date"), request.args.get("end_date")
        )
    except WorkflowError as e:
        return error_response(e)
    return jsonify(report)


@reports_bp.get("/projects/<int:project_id>/csv")
@require_auth
def project_csv_route(project_id: int):
    start, end = request.args.get("start_date"), request.args.get("end_date")
    try:
        content = report_service.project_csv(g.current_user.id, project_id, start, end)
    except WorkflowError as e:
        return error_response(e)
    return _csv_response(content, f"project-{project_id}-{start}-{end}.csv")


@reports_bp.get("/tasks/<int:task_id>/csv")
@require_auth
def task_csv_route(task_id: int):
    start, end = request.args.get("start_date"), request.args.get("end_date")
    try:
        content = report_service.task_csv(g.current_user.id, task_id, start, end)
    except WorkflowError as e:
        return error_response(e)
    return _csv_response(content, f"task-{task_id}-{start}-{end}.csv")
