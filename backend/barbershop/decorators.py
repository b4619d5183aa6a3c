# Overview: Request authentication and role decorators for API routes.

from functools import wraps

from flask import g, request

from .responses import error_response
from .services import session_service
from .services.access_service import Principal


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user and g.principal. Returns 401 if the header is missing,
    the token is invalid/expired/revoked, or the user is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return error_response("UNAUTHORIZED", "Authentication required", 401)

        user = session_service.validate_session(token)
        if not user:
            return error_response("UNAUTHORIZED", "Invalid or expired token", 401)

        g.current_user = user
        g.principal = Principal.from_user(user)
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Coarse role gate; must be stacked under @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return error_response("UNAUTHORIZED", "Authentication required", 401)
            if g.current_user.role not in roles:
                return error_response(
                    "FORBIDDEN",
                    f"Requires one of roles: {', '.join(roles)}",
                    403,
                )
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def current_principal() -> Principal:
    return g.principal
