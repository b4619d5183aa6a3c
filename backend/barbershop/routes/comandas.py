# Overview: Comanda API routes (open, items, adjustments, close, cancel, commissions).

"""
Comanda API routes.

Wire contract:
- POST   /api/comandas/<id>/items            -> 201, the new item
- DELETE /api/comandas/<id>/items/<item_id>  -> data: null
- PATCH  /api/comandas/<id>/close (PUT too)  -> closed comanda + commissions
"""

from flask import Blueprint, current_app, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import current_principal, require_auth, require_role
from ..extensions import db
from ..models.auth import ROLE_ADMIN
from ..responses import (
    database_error_response,
    server_error_response,
    service_error_response,
    success_response,
)
from ..schemas import (
    AddItemRequest,
    CloseComandaRequest,
    CreateComandaRequest,
    ListFilters,
    UpdateAdjustmentsRequest,
)
from ..services import comanda_item_service, comanda_service
from ..services.commission_service import item_dicts_with_commissions, list_comanda_commissions
from ..validation import ServiceError

comandas_bp = Blueprint("comandas", __name__, url_prefix="/api/comandas")


def serialize_comanda(comanda, commissions=None) -> dict:
    data = comanda.to_dict()
    data["items"] = item_dicts_with_commissions(comanda)
    if commissions is not None:
        data["commissions"] = [detail.to_dict() for detail in commissions]
    return data


@comandas_bp.post("")
@require_auth
def create_comanda_route():
    """Open the comanda for an appointment. Staff only; 409 if one exists."""
    try:
        payload = CreateComandaRequest.from_payload(request.get_json(silent=True))
        comanda = comanda_service.open_comanda(
            payload.appointment_id,
            current_principal(),
            client_id=payload.client_id,
            services=payload.services,
        )
        return success_response(serialize_comanda(comanda), status=201)

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to open comanda")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to open comanda")
        return server_error_response()


@comandas_bp.get("")
@require_auth
def list_comandas_route():
    """
    List comandas visible to the caller.

    Query params: appointment_id, client_id, status, start_date, end_date
    """
    try:
        filters = ListFilters.from_args(
            request.args,
            int_keys=("appointment_id", "client_id"),
            text_keys=("status",),
        ).values
        comandas = comanda_service.list_comandas(current_principal(), **filters)
        return success_response(
            [serialize_comanda(comanda) for comanda in comandas],
            meta={"count": len(comandas)},
        )

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to list comandas")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to list comandas")
        return server_error_response()


@comandas_bp.get("/<int:comanda_id>")
@require_auth
def get_comanda_route(comanda_id: int):
    try:
        comanda = comanda_service.get_comanda(comanda_id, current_principal())
        return success_response(serialize_comanda(comanda, list_comanda_commissions(comanda.id)))

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to load comanda")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to load comanda")
        return server_error_response()


@comandas_bp.patch("/<int:comanda_id>")
@require_auth
def update_comanda_route(comanda_id: int):
    """Set discount and/or taxes on an open comanda."""
    try:
        payload = UpdateAdjustmentsRequest.from_payload(request.get_json(silent=True))
        comanda = comanda_service.update_adjustments(
            comanda_id,
            current_principal(),
            discount=payload.discount,
            taxes=payload.taxes,
        )
        return success_response(serialize_comanda(comanda))

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to update comanda")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update comanda")
        return server_error_response()


@comandas_bp.post("/<int:comanda_id>/items")
@require_auth
def add_item_route(comanda_id: int):
    """
    Add a service or product line.

    Body: {service_id | product_id, quantity > 0, unit_price >= 0}
    """
    try:
        payload = AddItemRequest.from_payload(request.get_json(silent=True))
        item = comanda_item_service.add_item(
            comanda_id,
            current_principal(),
            service_id=payload.service_id,
            product_id=payload.product_id,
            quantity=payload.quantity,
            unit_price=payload.unit_price,
        )
        return success_response(item.to_dict(), status=201)

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to add comanda item")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to add comanda item")
        return server_error_response()


@comandas_bp.delete("/<int:comanda_id>/items/<int:item_id>")
@require_auth
def remove_item_route(comanda_id: int, item_id: int):
    try:
        comanda_item_service.remove_item(comanda_id, item_id, current_principal())
        return success_response(None)

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to remove comanda item")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to remove comanda item")
        return server_error_response()


@comandas_bp.route("/<int:comanda_id>/close", methods=["PATCH", "PUT"])
@require_auth
def close_comanda_route(comanda_id: int):
    """
    Close the comanda.

    Body: {payment_method, final_total?}. final_total, when sent, must equal
    total - discount + taxes (rounded, never below zero).
    """
    try:
        payload = CloseComandaRequest.from_payload(request.get_json(silent=True))
        result = comanda_service.close_comanda(
            comanda_id,
            payload.payment_method,
            current_principal(),
            final_total=payload.final_total,
        )
        return success_response(serialize_comanda(result.comanda, result.commissions))

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to close comanda")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to close comanda")
        return server_error_response()


@comandas_bp.patch("/<int:comanda_id>/cancel")
@require_auth
def cancel_comanda_route(comanda_id: int):
    try:
        comanda = comanda_service.cancel_comanda(comanda_id, current_principal())
        return success_response(serialize_comanda(comanda))

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel comanda")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel comanda")
        return server_error_response()


@comandas_bp.post("/<int:comanda_id>/recalculate-commission")
@require_auth
@require_role(ROLE_ADMIN)
def recalculate_commission_route(comanda_id: int):
    """Admin-only manual commission recompute for a closed comanda."""
    try:
        result = comanda_service.recalculate_commission(comanda_id, current_principal())
        return success_response(serialize_comanda(result.comanda, result.commissions))

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to recalculate commission")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to recalculate commission")
        return server_error_response()
