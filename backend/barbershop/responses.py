# Overview: JSON response envelope { success, data?, error?: {code, message}, meta? }.

from __future__ import annotations

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from .validation import ServiceError


def success_response(data=None, meta: dict | None = None, status: int = 200):
    body = {"success": True, "data": data}
    if meta is not None:
        body["meta"] = meta
    return jsonify(body), status


def error_response(code: str, message: str, status: int, details: dict | None = None):
    error = {"code": code, "message": message}
    if details:
        error["details"] = details
    return jsonify({"success": False, "error": error}), status


def service_error_response(exc: ServiceError):
    return error_response(exc.code, exc.message, exc.status, exc.details)


def database_error_response(exc: SQLAlchemyError):
    """Surface the driver message (the original DBAPI error when present)."""
    return error_response("DATABASE_ERROR", str(getattr(exc, "orig", None) or exc), 500)


def server_error_response():
    return error_response("SERVER_ERROR", "Internal server error", 500)
