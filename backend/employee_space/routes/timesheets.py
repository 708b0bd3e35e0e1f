# Overview: Flask API routes for timesheet entries, submissions and the rejection log.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_admin
from ..responses import result_response
from ..services import timesheet_service
from employee_space.time_utils import parse_iso_date, utcnow


timesheets_bp = Blueprint("timesheets", __name__, url_prefix="/api/timesheets")


@timesheets_bp.get("/entries")
@require_auth
def week_entries_route():
    day = parse_iso_date(request.args.get("week")) or utcnow().date()
    return jsonify(timesheet_service.week_entries(g.current_user.id, day))


@timesheets_bp.post("/entries")
@require_auth
def upsert_entry_route():
    data = request.get_json(silent=True) or {}
    result = timesheet_service.upsert_entry(
        g.current_user.id,
        subtask_id=data.get("subtask_id"),
        date=data.get("date"),
        hours=data.get("hours"),
        notes=data.get("notes"),
        tickets=data.get("tickets"),
    )
    return result_response(result)


@timesheets_bp.delete("/entries/<int:entry_id>")
@require_auth
def delete_entry_route(entry_id: int):
    return result_response(timesheet_service.delete_entry(entry_id, actor_id=g.current_user.id))


# =============================================================================
# SUBMISSIONS
# =============================================================================

@timesheets_bp.post("/submissions")
@require_auth
def submit_route():
    data = request.get_json(silent=True) or {}
    result = timesheet_service.submit(g.current_user.id, data.get("week_start_date"), data.get("comments"))
    return result_response(result, success_status=201)


@timesheets_bp.get("/submissions")
@require_auth
def list_submissions_route():
    """Own submissions; admins may pass ?all=true and ?status=."""
    status = request.args.get("status")
    if request.args.get("all", "false").lower() == "true":
        if not g.current_user.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        submissions = timesheet_service.list_submissions(status=status)
    else:
        submissions = timesheet_service.list_submissions(g.current_user.id, status=status)
    return jsonify({"submissions": [s.to_dict() for s in submissions]})


@timesheets_bp.get("/submissions/week")
@require_auth
def week_submission_route():
    day = parse_iso_date(request.args.get("date")) or utcnow().date()
    return jsonify(timesheet_service.get_week_submission(g.current_user.id, day))


@timesheets_bp.post("/submissions/<int:submission_id>/cancel")
@require_auth
def cancel_route(submission_id: int):
    return result_response(timesheet_service.cancel(submission_id, actor_id=g.current_user.id))


@timesheets_bp.post("/submissions/<int:submission_id>/approve")
@require_auth
def approve_route(submission_id: int):
    data = request.get_json(silent=True) or {}
    return result_response(timesheet_service.approve(submission_id, g.current_user.id, data.get("comments")))


@timesheets_bp.post("/submissions/<int:submission_id>/reject")
@require_auth
def reject_route(submission_id: int):
    data = request.get_json(silent=True) or {}
    reason = data.get("reason") or data.get("comments")
    return result_response(timesheet_service.reject(submission_id, g.current_user.id, reason))


# =============================================================================
# REJECTION LOG
# =============================================================================

@timesheets_bp.get("/rejections")
@require_auth
def my_rejections_route():
    rejections = timesheet_service.list_rejections(g.current_user.id)
    return jsonify({"rejections": [r.to_dict() for r in rejections]})


@timesheets_bp.get("/rejections/all")
@require_auth
@require_admin
def all_rejections_route():
    rejections = timesheet_service.list_rejections()
    return jsonify({"rejections": [r.to_dict() for r in rejections]})


@timesheets_bp.get("/rejections/stats")
@require_auth
@require_admin
def rejection_stats_route():
    return jsonify(timesheet_service.rejection_statistics())
