# Overview: Commission listing and payout routes.

from flask import Blueprint, current_app, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import current_principal, require_auth
from ..extensions import db
from ..responses import (
    database_error_response,
    server_error_response,
    service_error_response,
    success_response,
)
from ..schemas import ListFilters
from ..services import commission_service
from ..validation import ServiceError

commissions_bp = Blueprint("commissions", __name__, url_prefix="/api/commissions")


@commissions_bp.get("")
@require_auth
def list_commissions_route():
    """
    Commission details, newest first, with a pending/paid summary in meta.

    Query params: employee_id, status, start_date, end_date
    Employees always get their own; clients are refused.
    """
    try:
        filters = ListFilters.from_args(
            request.args,
            int_keys=("employee_id",),
            text_keys=("status",),
        ).values
        details = commission_service.list_commissions(current_principal(), **filters)
        return success_response(
            [detail.to_dict() for detail in details],
            meta={"count": len(details), "summary": commission_service.commission_summary(details)},
        )

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to list commissions")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to list commissions")
        return server_error_response()


@commissions_bp.patch("/<int:commission_id>/pay")
@require_auth
def pay_commission_route(commission_id: int):
    try:
        detail = commission_service.mark_commission_paid(commission_id, current_principal())
        return success_response(detail.to_dict())

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to mark commission paid")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to mark commission paid")
        return server_error_response()
