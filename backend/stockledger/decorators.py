# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'permissions')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.permissions: The user's permission names for this request
    - g.session_context: The full SessionContext object

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"success": False, "error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"success": False, "error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.permissions = context.permissions
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_name: str):
    """Require a specific permission. Use below @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"success": False, "error": "Authentication required"}), 401

            if permission_name not in g.permissions:
                return jsonify({
                    "success": False,
                    "error": "Permission denied",
                    "required_permission": permission_name,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_any_permission(*permission_names):
    """Require any of the specified permissions."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"success": False, "error": "Authentication required"}), 401

            if not any(name in g.permissions for name in permission_names):
                return jsonify({
                    "success": False,
                    "error": "Permission denied",
                    "required_permissions": list(permission_names),
                    "message": f"Requires any of: {', '.join(permission_names)}"
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
