# Overview: Appointment status changes and their cascade onto the linked comanda.

"""
Completing an appointment closes its open comanda; canceling one cancels its
open comanda. Closed comandas are never touched.

The cascade is a secondary effect: the appointment status change is committed
first, and any failure in the comanda step is logged and swallowed.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Appointment, Comanda, Service, User
from ..models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLE_CLIENT, ROLE_EMPLOYEE
from ..models.comandas import COMANDA_OPEN
from ..models.scheduling import (
    APPOINTMENT_CANCELED,
    APPOINTMENT_COMPLETED,
    APPOINTMENT_SCHEDULED,
    FINAL_APPOINTMENT_STATUSES,
)
from ..utils import utcnow
from ..validation import ForbiddenError, NotFoundError, ValidationError
from .access_service import Principal, require_appointment_staff, require_roles
from .audit_service import append_audit_log
from . import comanda_service


def create_appointment(
    principal: Principal,
    client_id: int,
    employee_id: int,
    service_id: int | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    notes: str | None = None,
) -> Appointment:
    require_roles(
        principal, ROLE_ADMIN, ROLE_CASHIER, ROLE_EMPLOYEE,
        message="Only staff can schedule appointments",
    )
    if principal.is_employee and employee_id != principal.user_id:
        raise ForbiddenError("Employees can only schedule their own appointments")

    client = db.session.get(User, client_id)
    if not client or client.role != ROLE_CLIENT:
        raise NotFoundError("Client not found")
    employee = db.session.get(User, employee_id)
    if not employee or employee.role != ROLE_EMPLOYEE:
        raise NotFoundError("Employee not found")
    if service_id is not None and not db.session.get(Service, service_id):
        raise NotFoundError("Service not found")
    if start_time and end_time and end_time <= start_time:
        raise ValidationError("end_time must be after start_time")

    appointment = Appointment(
        client_id=client_id,
        employee_id=employee_id,
        service_id=service_id,
        start_time=start_time,
        end_time=end_time,
        notes=notes,
        status=APPOINTMENT_SCHEDULED,
    )
    db.session.add(appointment)
    db.session.commit()
    return appointment


def get_appointment(appointment_id: int, principal: Principal) -> Appointment:
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        raise NotFoundError("Appointment not found")
    if principal.is_client and appointment.client_id != principal.user_id:
        raise ForbiddenError("You do not have permission to view this appointment")
    if principal.is_employee and appointment.employee_id != principal.user_id:
        raise ForbiddenError("You do not have permission to view this appointment")
    return appointment


def _set_status(appointment: Appointment, status: str, principal: Principal) -> None:
    previous = appointment.status
    appointment.status = status
    appointment.updated_at = utcnow()
    append_audit_log(
        entity_type="appointment",
        entity_id=appointment.id,
        action=f"appointment_{status}",
        details={"previous_status": previous},
        actor_user_id=principal.user_id,
    )
    db.session.commit()


def _linked_comanda(appointment_id: int) -> Comanda | None:
    return db.session.query(Comanda).filter_by(appointment_id=appointment_id).first()


def complete_appointment(appointment_id: int, principal: Principal, payment_method=None) -> Appointment:
    """
    Mark an appointment completed and close its open comanda.

    The comanda is closed with the principal as cashier and the computed
    final total; payment_method goes through the resolver (cash when absent).
    """
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        raise NotFoundError("Appointment not found")
    require_appointment_staff(principal, appointment, "complete this appointment")
    if appointment.status in FINAL_APPOINTMENT_STATUSES:
        raise ValidationError(f"Cannot complete a {appointment.status} appointment")

    _set_status(appointment, APPOINTMENT_COMPLETED, principal)

    try:
        comanda = _linked_comanda(appointment.id)
        if comanda is not None and comanda.status == COMANDA_OPEN:
            comanda_service.close_comanda(comanda.id, payment_method, principal)
    except Exception:
        db.session.rollback()
        current_app.logger.warning(
            "Could not close comanda for completed appointment %s", appointment_id, exc_info=True
        )

    return db.session.get(Appointment, appointment_id)


def cancel_appointment(appointment_id: int, principal: Principal) -> Appointment:
    """
    Cancel an appointment; an open comanda is canceled with it, a closed one
    is left alone. The cascade skips the comanda operator check since clients
    may cancel their own appointments.
    """
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        raise NotFoundError("Appointment not found")

    if principal.is_client:
        if appointment.client_id != principal.user_id:
            raise ForbiddenError("You can only cancel your own appointments")
    elif principal.is_employee:
        if appointment.employee_id != principal.user_id:
            raise ForbiddenError("You can only cancel your own appointments")
    elif not principal.is_back_office:
        raise ForbiddenError("You do not have permission to cancel this appointment")

    if appointment.status in FINAL_APPOINTMENT_STATUSES:
        raise ValidationError(f"Cannot cancel a {appointment.status} appointment")

    _set_status(appointment, APPOINTMENT_CANCELED, principal)

    try:
        comanda = _linked_comanda(appointment.id)
        if comanda is not None and comanda.status == COMANDA_OPEN:
            comanda_service.cancel_open_comanda(comanda.id, actor_user_id=principal.user_id)
    except Exception:
        db.session.rollback()
        current_app.logger.warning(
            "Could not cancel comanda for canceled appointment %s", appointment_id, exc_info=True
        )

    return db.session.get(Appointment, appointment_id)

