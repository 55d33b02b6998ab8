# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .permissions import role_has_permission, validate_permission_code
from .services.auth_service import verify_token


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user (AuthContext with user_id and role).
    Returns 401 if the Authorization header is missing, or the token is
    invalid or expired.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        context = verify_token(
            current_app.config["SECRET_KEY"],
            token,
            max_age=current_app.config.get("AUTH_TOKEN_MAX_AGE_SECONDS"),
        )
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """
    Require the caller's role to grant a specific permission.

    The code is checked when the route is declared, so a misspelled
    permission fails at import instead of denying every request.
    """
    if not validate_permission_code(permission_code):
        raise ValueError(f"Unknown permission code: {permission_code}")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if not role_has_permission(user.role, permission_code):
                current_app.logger.warning(
                    "Permission denied: user=%s role=%s permission=%s path=%s",
                    user.user_id, user.role, permission_code, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
