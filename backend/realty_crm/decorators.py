# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .services.scope import Scope


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'scope')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets on flask.g:
    - g.current_user: the authenticated User
    - g.scope: the caller's Scope (role and visible salesperson ids)
    - g.session_context: the SessionContext

    Returns 401 when the header is missing, the token is unknown, revoked or
    expired, or the user was deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.scope = Scope.for_user(context.user)
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated user to be an admin. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if not g.scope.is_admin:
            return jsonify({"error": "Admin access required", "error_type": "forbidden"}), 403
        return f(*args, **kwargs)
    return decorated_function
