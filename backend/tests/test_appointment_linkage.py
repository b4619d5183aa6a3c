"""
Appointment -> comanda cascade.

Completing closes the open comanda; canceling cancels an open one and leaves
a closed one untouched. Cascade failures never fail the appointment change.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from barbershop.extensions import db
from barbershop.models import Appointment, Comanda
from barbershop.services import appointment_service, comanda_item_service, comanda_service
from barbershop.services.access_service import Principal
from barbershop.validation import ForbiddenError, NotFoundError, ValidationError


def _comanda(comanda_id):
    comanda = db.session.get(Comanda, comanda_id)
    db.session.refresh(comanda)
    return comanda


@pytest.fixture
def billed(comanda, as_cashier, haircut):
    comanda_item_service.add_item(comanda.id, as_cashier, service_id=haircut.id, quantity=1, unit_price=Decimal("60.00"))
    return comanda


class TestComplete:

    def test_complete_closes_open_comanda(self, appointment, billed, as_employee):
        done = appointment_service.complete_appointment(appointment.id, as_employee, payment_method="PIX")

        assert done.status == "completed"
        comanda = _comanda(billed.id)
        assert comanda.status == "closed"
        assert comanda.payment_method == "pix"
        assert comanda.cashier_id == as_employee.user_id
        assert comanda.final_total == Decimal("60.00")

    def test_payment_method_defaults_to_cash(self, appointment, billed, as_cashier):
        appointment_service.complete_appointment(appointment.id, as_cashier)
        assert _comanda(billed.id).payment_method == "cash"

    def test_close_failure_does_not_fail_completion(self, appointment, comanda, as_cashier):
        # Empty comanda: close is rejected, completion still succeeds
        done = appointment_service.complete_appointment(appointment.id, as_cashier)
        assert done.status == "completed"
        assert _comanda(comanda.id).status == "open"

    def test_complete_without_comanda(self, appointment, as_cashier):
        assert appointment_service.complete_appointment(appointment.id, as_cashier).status == "completed"

    def test_client_cannot_complete(self, appointment, as_client):
        with pytest.raises(ForbiddenError):
            appointment_service.complete_appointment(appointment.id, as_client)

    def test_other_employee_cannot_complete(self, appointment, as_other_employee):
        with pytest.raises(ForbiddenError):
            appointment_service.complete_appointment(appointment.id, as_other_employee)

    @pytest.mark.parametrize("status", ["completed", "canceled"])
    def test_final_appointments_rejected(self, appointment, as_cashier, status):
        appointment.status = status
        db.session.commit()
        with pytest.raises(ValidationError):
            appointment_service.complete_appointment(appointment.id, as_cashier)

    def test_unknown_appointment(self, as_cashier):
        with pytest.raises(NotFoundError):
            appointment_service.complete_appointment(999999, as_cashier)


class TestCancel:

    def test_cancel_cancels_open_comanda(self, appointment, comanda, as_cashier):
        canceled = appointment_service.cancel_appointment(appointment.id, as_cashier)
        assert canceled.status == "canceled"
        assert _comanda(comanda.id).status == "canceled"

    def test_cancel_leaves_closed_comanda(self, appointment, billed, as_cashier):
        comanda_service.close_comanda(billed.id, "cash", as_cashier)

        appointment_service.cancel_appointment(appointment.id, as_cashier)

        comanda = _comanda(billed.id)
        assert comanda.status == "closed"
        assert comanda.canceled_at is None

    def test_client_cancels_own_appointment(self, appointment, comanda, as_client):
        appointment_service.cancel_appointment(appointment.id, as_client)
        assert db.session.get(Appointment, appointment.id).status == "canceled"
        assert _comanda(comanda.id).status == "canceled"

    def test_client_cannot_cancel_others(self, appointment, admin):
        stranger = Principal(user_id=admin.id + 1000, role="client")
        with pytest.raises(ForbiddenError):
            appointment_service.cancel_appointment(appointment.id, stranger)

    def test_other_employee_cannot_cancel(self, appointment, as_other_employee):
        with pytest.raises(ForbiddenError):
            appointment_service.cancel_appointment(appointment.id, as_other_employee)

    def test_cannot_cancel_twice(self, appointment, as_cashier):
        appointment_service.cancel_appointment(appointment.id, as_cashier)
        with pytest.raises(ValidationError):
            appointment_service.cancel_appointment(appointment.id, as_cashier)


class TestCreateAppointment:

    def test_staff_creates(self, as_cashier, client_user, employee, haircut):
        appt = appointment_service.create_appointment(
            as_cashier,
            client_id=client_user.id,
            employee_id=employee.id,
            service_id=haircut.id,
            start_time=datetime(2026, 3, 1, 14, 0),
            end_time=datetime(2026, 3, 1, 14, 40),
        )
        assert appt.status == "scheduled"

    def test_employee_only_for_self(self, as_other_employee, client_user, employee):
        with pytest.raises(ForbiddenError):
            appointment_service.create_appointment(
                as_other_employee, client_id=client_user.id, employee_id=employee.id
            )

    def test_client_cannot_create(self, as_client, client_user, employee):
        with pytest.raises(ForbiddenError):
            appointment_service.create_appointment(as_client, client_id=client_user.id, employee_id=employee.id)

    def test_end_before_start(self, as_cashier, client_user, employee):
        with pytest.raises(ValidationError):
            appointment_service.create_appointment(
                as_cashier,
                client_id=client_user.id,
                employee_id=employee.id,
                start_time=datetime(2026, 3, 1, 14, 0),
                end_time=datetime(2026, 3, 1, 13, 0),
            )

    def test_client_sees_only_own(self, appointment, as_client, as_other_employee):
        assert appointment_service.get_appointment(appointment.id, as_client).id == appointment.id
        with pytest.raises(ForbiddenError):
            appointment_service.get_appointment(appointment.id, as_other_employee)
