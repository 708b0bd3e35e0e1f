# Overview: Flask API routes for employee account administration (admin only).

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_admin
from ..services import auth_service
from ..services.auth_service import AccountError, PasswordValidationError


employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.get("")
@require_auth
@require_admin
def list_employees_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    users = auth_service.list_users(include_inactive=include_inactive)
    return jsonify({"employees": [u.to_dict() for u in users]})


@employees_bp.post("")
@require_auth
@require_admin
def create_employee_route():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not all([email, password]):
        return jsonify({"error": "email and password required"}), 400

    try:
        user = auth_service.create_user(
            email,
            password,
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            is_admin=bool(data.get("is_admin", False)),
        )
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AccountError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"employee": user.to_dict()}), 201


@employees_bp.put("/<int:user_id>")
@require_auth
@require_admin
def update_employee_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.update_user(
            user_id,
            email=data.get("email"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            is_admin=data.get("is_admin"),
        )
    except AccountError as e:
        status = 404 if str(e) == "User not found" else 400
        return jsonify({"error": str(e)}), status

    return jsonify({"employee": user.to_dict()})


@employees_bp.post("/<int:user_id>/deactivate")
@require_auth
@require_admin
def deactivate_employee_route(user_id: int):
    try:
        user = auth_service.deactivate_user(user_id)
    except AccountError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"employee": user.to_dict()})
