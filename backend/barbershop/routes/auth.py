# Overview: Login, logout and current-user endpoints.

"""
Authentication API routes.

Self-registration does not exist: staff accounts are created through the CLI
(`flask users create`). Clients booked at the counter have no password.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import bearer_token, require_auth
from ..extensions import db
from ..responses import error_response, server_error_response, success_response
from ..services import auth_service, session_service
from ..validation import ServiceError, require_object

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email + password and create a session token.

    The token goes in the Authorization header (Bearer) on protected routes.
    """
    try:
        data = require_object(request.get_json(silent=True))
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return error_response("VALIDATION_ERROR", "email and password required", 422)

        user = auth_service.authenticate(email, password)
        if not user:
            return error_response("UNAUTHORIZED", "Invalid credentials", 401)

        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return success_response({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
        })

    except ServiceError as e:
        return error_response(e.code, e.message, e.status)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to login user")
        return server_error_response()


@auth_bp.post("/logout")
def logout_route():
    """Revoke the bearer token."""
    try:
        token = bearer_token()
        if not token:
            return error_response("UNAUTHORIZED", "Authorization header required", 401)

        if not session_service.revoke_session(token):
            return error_response("UNAUTHORIZED", "Invalid or expired token", 401)

        return success_response(None, meta={"message": "Logout successful"})

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to logout user")
        return server_error_response()


@auth_bp.get("/me")
@require_auth
def me_route():
    return success_response(g.current_user.to_dict())
