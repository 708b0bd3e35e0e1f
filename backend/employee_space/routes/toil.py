# Overview: Flask API routes for TOIL entries, balances, settings and weekly submissions.

"""
TOIL Routes

SECURITY:
- Every route requires a session. Employees act on their own data.
- Approve/reject are admin-only; the service answers 403 for anyone else.
- Settings updates and cross-user reads require an administrator.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_admin
from ..responses import ERROR_STATUS, result_response
from ..services import toil_service, toil_submission_service
from ..services.toil_service import ToilError
from employee_space.time_utils import parse_iso_date, utcnow


toil_bp = Blueprint("toil", __name__, url_prefix="/api/toil")


# =============================================================================
# ENTRIES
# =============================================================================

@toil_bp.get("/entries")
@require_auth
def list_entries_route():
    week = request.args.get("week")
    week_date = parse_iso_date(week) if week else None
    if week and week_date is None:
        return jsonify({"error": "week must be YYYY-MM-DD"}), 400

    entries = toil_service.list_entries(g.current_user.id, week_date)
    return jsonify({"entries": [e.to_dict() for e in entries]})


@toil_bp.get("/entries/all")
@require_auth
@require_admin
def list_all_entries_route():
    entries = toil_service.list_all_entries()
    return jsonify({"entries": [e.to_dict() for e in entries]})


@toil_bp.post("/entries")
@require_auth
def upsert_entry_route():
    data = request.get_json(silent=True) or {}
    result = toil_service.upsert_entry(
        g.current_user.id,
        data.get("date"),
        data.get("requested_hours"),
        data.get("used_hours"),
        data.get("comments"),
    )
    return result_response(result)


@toil_bp.delete("/entries/<int:entry_id>")
@require_auth
def delete_entry_route(entry_id: int):
    return result_response(toil_service.delete_entry(entry_id, actor_id=g.current_user.id))


# =============================================================================
# BALANCE AND SETTINGS
# =============================================================================

@toil_bp.get("/balance")
@require_auth
def balance_route():
    return jsonify({"balance": toil_service.balance_summary(g.current_user.id)})


@toil_bp.get("/balance/<int:user_id>")
@require_auth
@require_admin
def user_balance_route(user_id: int):
    return jsonify({"balance": toil_service.balance_summary(user_id)})


@toil_bp.get("/settings")
@require_auth
def settings_route():
    return jsonify({"settings": toil_service.get_settings(g.current_user.id).to_dict()})


@toil_bp.put("/settings/<int:user_id>")
@require_auth
@require_admin
def update_settings_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        settings = toil_service.update_settings(
            user_id,
            max_capacity=data.get("max_capacity"),
            max_streak_hours=data.get("max_streak_hours"),
            max_streak_days=data.get("max_streak_days"),
        )
    except ToilError as e:
        return jsonify({"error": str(e)}), ERROR_STATUS[e.kind]
    return jsonify({"settings": settings.to_dict()})


# =============================================================================
# SUBMISSIONS
# =============================================================================

@toil_bp.post("/submissions")
@require_auth
def submit_route():
    data = request.get_json(silent=True) or {}
    result = toil_submission_service.submit(
        g.current_user.id,
        data.get("week_start_date"),
        data.get("comments"),
    )
    return result_response(result, success_status=201)


@toil_bp.get("/submissions")
@require_auth
def list_submissions_route():
    submissions = toil_submission_service.list_user_submissions(g.current_user.id)
    return jsonify({"submissions": [s.to_dict() for s in submissions]})


@toil_bp.get("/submissions/week")
@require_auth
def week_submission_route():
    day = parse_iso_date(request.args.get("date")) or utcnow().date()
    return jsonify(toil_submission_service.get_week_submission(g.current_user.id, day))


@toil_bp.get("/submissions/pending")
@require_auth
@require_admin
def pending_submissions_route():
    return jsonify({"submissions": toil_submission_service.list_pending()})


@toil_bp.get("/submissions/pending-counts")
@require_auth
@require_admin
def pending_counts_route():
    return jsonify({"counts": toil_submission_service.pending_counts()})


@toil_bp.post("/submissions/<int:submission_id>/cancel")
@require_auth
def cancel_route(submission_id: int):
    return result_response(toil_submission_service.cancel(submission_id, actor_id=g.current_user.id))


@toil_bp.post("/submissions/<int:submission_id>/approve")
@require_auth
def approve_route(submission_id: int):
    data = request.get_json(silent=True) or {}
    return result_response(
        toil_submission_service.approve(submission_id, g.current_user.id, data.get("comments"))
    )


@toil_bp.post("/submissions/<int:submission_id>/reject")
@require_auth
def reject_route(submission_id: int):
    data = request.get_json(silent=True) or {}
    return result_response(
        toil_submission_service.reject(submission_id, g.current_user.id, data.get("comments"))
    )
