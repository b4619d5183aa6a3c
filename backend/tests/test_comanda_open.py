"""Opening comandas and role-scoped reads."""

from datetime import datetime
from decimal import Decimal

import pytest

from barbershop.extensions import db
from barbershop.models import Appointment
from barbershop.services import comanda_service
from barbershop.services.comanda_service import InitialService
from barbershop.validation import ConflictError, ForbiddenError, NotFoundError, ValidationError


class TestOpenComanda:

    def test_defaults_to_appointment_service(self, appointment, as_cashier, client_user):
        comanda = comanda_service.open_comanda(appointment.id, as_cashier)

        assert comanda.status == "open"
        assert comanda.client_id == client_user.id
        assert [item.total_price for item in comanda.items] == [Decimal("60.00")]
        assert comanda.total == Decimal("60.00")
        assert comanda.final_total == Decimal("60.00")

    def test_explicit_services_and_price_override(self, appointment, as_cashier, haircut, beard):
        comanda = comanda_service.open_comanda(
            appointment.id,
            as_cashier,
            services=[
                InitialService(service_id=haircut.id),
                InitialService(service_id=beard.id, quantity=2, price=Decimal("35.00")),
            ],
        )
        assert comanda.total == Decimal("130.00")

    def test_second_comanda_conflicts(self, comanda, appointment, as_cashier):
        with pytest.raises(ConflictError):
            comanda_service.open_comanda(appointment.id, as_cashier)

    def test_unknown_appointment(self, as_cashier):
        with pytest.raises(NotFoundError):
            comanda_service.open_comanda(999999, as_cashier)

    def test_canceled_appointment(self, appointment, as_cashier):
        appointment.status = "canceled"
        db.session.commit()
        with pytest.raises(ValidationError):
            comanda_service.open_comanda(appointment.id, as_cashier)

    def test_unknown_initial_service_rolls_back(self, appointment, as_cashier):
        with pytest.raises(NotFoundError):
            comanda_service.open_comanda(appointment.id, as_cashier, services=[InitialService(service_id=999999)])
        # nothing was left behind; a retry succeeds
        assert comanda_service.open_comanda(appointment.id, as_cashier, services=[]).status == "open"

    def test_client_cannot_open(self, appointment, as_client):
        with pytest.raises(ForbiddenError):
            comanda_service.open_comanda(appointment.id, as_client)

    def test_employee_only_own_appointment(self, appointment, as_employee, as_other_employee):
        with pytest.raises(ForbiddenError):
            comanda_service.open_comanda(appointment.id, as_other_employee)
        assert comanda_service.open_comanda(appointment.id, as_employee).status == "open"


class TestVisibility:

    @pytest.fixture
    def second(self, db_session, client_user, other_employee, as_cashier):
        appt = Appointment(client_id=client_user.id, employee_id=other_employee.id)
        db_session.add(appt)
        db_session.commit()
        return comanda_service.open_comanda(appt.id, as_cashier, services=[])

    def test_back_office_sees_all(self, comanda, second, as_cashier):
        ids = [c.id for c in comanda_service.list_comandas(as_cashier)]
        assert sorted(ids) == sorted([comanda.id, second.id])

    def test_employee_sees_assigned_only(self, comanda, second, as_employee, as_other_employee):
        assert [c.id for c in comanda_service.list_comandas(as_employee)] == [comanda.id]
        assert [c.id for c in comanda_service.list_comandas(as_other_employee)] == [second.id]
        with pytest.raises(ForbiddenError):
            comanda_service.get_comanda(comanda.id, as_other_employee)

    def test_client_sees_own(self, comanda, second, as_client):
        assert len(comanda_service.list_comandas(as_client)) == 2
        assert comanda_service.get_comanda(comanda.id, as_client).id == comanda.id

    def test_filters(self, comanda, second, as_cashier):
        comanda_service.cancel_comanda(second.id, as_cashier)

        open_ids = [c.id for c in comanda_service.list_comandas(as_cashier, status="open")]
        assert open_ids == [comanda.id]

        by_appointment = comanda_service.list_comandas(as_cashier, appointment_id=second.appointment_id)
        assert [c.id for c in by_appointment] == [second.id]

        assert comanda_service.list_comandas(as_cashier, end_date=datetime(2000, 1, 1)) == []

        with pytest.raises(ValidationError):
            comanda_service.list_comandas(as_cashier, status="paid")
