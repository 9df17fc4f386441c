# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- Login issues an opaque bearer token; only its hash is stored
- Logout revokes it
- Self-registration is not offered; accounts come from the CLI
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip()


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"success": False, "error": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            return jsonify({"success": False, "error": "Invalid credentials"}), 401

        session, token = session_service.create_session(user_id=user.id)
        context = session_service.validate_session(token)

        return jsonify({
            "success": True,
            "message": "Login successful",
            "token": token,
            "expires_at": session.expires_at.isoformat() + "Z",
            "user": user.to_dict(),
            "permissions": sorted(context.permissions) if context else [],
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    token = _bearer_token()
    if not token:
        return jsonify({"success": False, "error": "Authorization header required"}), 401

    if not session_service.revoke_session(token):
        return jsonify({"success": False, "error": "Invalid or expired token"}), 401

    return jsonify({"success": True, "message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user and the permission names the UI can filter on."""
    return jsonify({
        "success": True,
        "user": g.current_user.to_dict(),
        "permissions": sorted(g.permissions),
    }), 200
