# Overview: Stock movement API routes (record + history).

from flask import Blueprint, current_app, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import current_principal, require_auth, require_role
from ..extensions import db
from ..models.auth import STAFF_ROLES
from ..responses import (
    database_error_response,
    server_error_response,
    service_error_response,
    success_response,
)
from ..schemas import ListFilters, StockMovementRequest
from ..services import stock_service
from ..validation import ServiceError

stock_movements_bp = Blueprint("stock_movements", __name__, url_prefix="/api/stock-movements")


@stock_movements_bp.post("")
@require_auth
@require_role(*STAFF_ROLES)
def create_movement_route():
    """
    Record a stock movement.

    Body: {product_id, quantity (non-zero int), movement_type, reference_id?, notes?}
    purchase/return/adjustment apply quantity as sent; sale/loss always
    subtract. Only adjustments may take stock below zero.
    """
    try:
        payload = StockMovementRequest.from_payload(request.get_json(silent=True))
        result = stock_service.record_movement(
            payload.product_id,
            payload.quantity,
            payload.movement_type,
            principal=current_principal(),
            reference_id=payload.reference_id,
            notes=payload.notes,
        )
        return success_response(
            result.movement.to_dict(),
            meta={"newStockQuantity": result.new_stock_quantity, "lowStock": result.low_stock},
            status=201,
        )

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to record stock movement")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record stock movement")
        return server_error_response()


@stock_movements_bp.get("")
@require_auth
@require_role(*STAFF_ROLES)
def list_movements_route():
    """
    Movement history, newest first.

    Query params: product_id, movement_type, start_date, end_date (inclusive day)
    """
    try:
        filters = ListFilters.from_args(
            request.args,
            int_keys=("product_id",),
            text_keys=("movement_type",),
        ).values
        movements = stock_service.list_movements(**filters)
        return success_response(
            [movement.to_dict() for movement in movements],
            meta={"count": len(movements)},
        )

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to list stock movements")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to list stock movements")
        return server_error_response()
