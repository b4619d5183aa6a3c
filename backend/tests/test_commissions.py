"""Commission listing and payout."""

from decimal import Decimal

import pytest

from barbershop.services import comanda_item_service, comanda_service, commission_service
from barbershop.validation import ForbiddenError, NotFoundError, ValidationError


@pytest.fixture
def settled(comanda, as_cashier, haircut, beard):
    comanda_item_service.add_item(comanda.id, as_cashier, service_id=haircut.id, quantity=1, unit_price=Decimal("60.00"))
    comanda_item_service.add_item(comanda.id, as_cashier, service_id=beard.id, quantity=1, unit_price=Decimal("40.00"))
    return comanda_service.close_comanda(comanda.id, "cash", as_cashier)


def test_employee_sees_own_commissions(settled, as_employee, as_other_employee):
    assert len(commission_service.list_commissions(as_employee)) == 2
    assert commission_service.list_commissions(as_other_employee) == []
    with pytest.raises(ForbiddenError):
        commission_service.list_commissions(as_other_employee, employee_id=as_employee.user_id)


def test_client_cannot_list(settled, as_client):
    with pytest.raises(ForbiddenError):
        commission_service.list_commissions(as_client)


def test_pay_flow_and_summary(settled, as_admin, as_cashier):
    detail = settled.commissions[0]

    with pytest.raises(ForbiddenError):
        commission_service.mark_commission_paid(detail.id, as_cashier)

    paid = commission_service.mark_commission_paid(detail.id, as_admin)
    assert paid.status == "paid"
    assert paid.paid_by_user_id == as_admin.user_id
    assert paid.paid_at is not None

    with pytest.raises(ValidationError):
        commission_service.mark_commission_paid(detail.id, as_admin)

    details = commission_service.list_commissions(as_admin)
    summary = commission_service.commission_summary(details)
    assert summary["total"] == 40.0
    assert summary["paid"] + summary["pending"] == 40.0

    pending = commission_service.list_commissions(as_admin, status="pending")
    assert [d.id for d in pending] != [] and detail.id not in [d.id for d in pending]


def test_pay_unknown(as_admin):
    with pytest.raises(NotFoundError):
        commission_service.mark_commission_paid(999999, as_admin)
