# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- POST /api/auth/login            email + password -> bearer token
- POST /api/auth/logout           revoke the presented token
- GET  /api/auth/me               current user
- POST /api/auth/change-password  revokes every session on success

Accounts are created by administrators (see employees routes or the CLI).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import AccountError, PasswordValidationError
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email") or data.get("username")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "must_change_password": not user.password_changed,
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke session token (logout)."""
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()})


@auth_bp.put("/me")
@require_auth
def update_me_route():
    """Update the caller's own first and last name."""
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.update_profile(
            g.current_user.id,
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
        )
    except AccountError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"message": "Profile updated", "user": user.to_dict()}), 200


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    data = request.get_json(silent=True) or {}
    current_password = data.get("current_password")
    new_password = data.get("new_password")

    if not all([current_password, new_password]):
        return jsonify({"error": "current_password and new_password required"}), 400

    try:
        auth_service.change_password(g.current_user.id, current_password, new_password)
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AccountError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"message": "Password changed. Please log in again."}), 200
