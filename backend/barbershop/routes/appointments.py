# Overview: Appointment routes; complete/cancel cascade onto the linked comanda.

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
from ..schemas import CompleteAppointmentRequest, CreateAppointmentRequest
from ..services import appointment_service
from ..validation import ServiceError

appointments_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


def serialize_appointment(appointment) -> dict:
    data = appointment.to_dict()
    comanda = appointment.comanda
    data["comanda"] = comanda.to_dict() if comanda is not None else None
    return data


@appointments_bp.post("")
@require_auth
def create_appointment_route():
    try:
        payload = CreateAppointmentRequest.from_payload(request.get_json(silent=True))
        appointment = appointment_service.create_appointment(
            current_principal(),
            client_id=payload.client_id,
            employee_id=payload.employee_id,
            service_id=payload.service_id,
            start_time=payload.start_time,
            end_time=payload.end_time,
            notes=payload.notes,
        )
        return success_response(serialize_appointment(appointment), status=201)

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to create appointment")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create appointment")
        return server_error_response()


@appointments_bp.get("/<int:appointment_id>")
@require_auth
def get_appointment_route(appointment_id: int):
    try:
        appointment = appointment_service.get_appointment(appointment_id, current_principal())
        return success_response(serialize_appointment(appointment))

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to load appointment")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to load appointment")
        return server_error_response()


@appointments_bp.patch("/<int:appointment_id>/complete")
@require_auth
def complete_appointment_route(appointment_id: int):
    """
    Complete the appointment and close its open comanda.

    Optional body: {payment_method}. Comanda close failures do not fail
    the completion.
    """
    try:
        payload = CompleteAppointmentRequest.from_payload(request.get_json(silent=True))
        appointment = appointment_service.complete_appointment(
            appointment_id,
            current_principal(),
            payment_method=payload.payment_method,
        )
        return success_response(serialize_appointment(appointment))

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to complete appointment")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to complete appointment")
        return server_error_response()


@appointments_bp.patch("/<int:appointment_id>/cancel")
@require_auth
def cancel_appointment_route(appointment_id: int):
    try:
        appointment = appointment_service.cancel_appointment(appointment_id, current_principal())
        return success_response(serialize_appointment(appointment))

    except ServiceError as e:
        return service_error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel appointment")
        return database_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel appointment")
        return server_error_response()
