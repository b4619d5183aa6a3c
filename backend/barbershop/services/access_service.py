# Overview: Principal type and role/ownership rules shared by the core services.

from __future__ import annotations

from dataclasses import dataclass

from ..models import Appointment, Comanda
from ..models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLE_EMPLOYEE, ROLE_CLIENT
from ..validation import ForbiddenError


@dataclass(frozen=True)
class Principal:
    """
    The caller of a core operation.

    Built once per request from the authenticated user and passed explicitly;
    services never read request globals.
    """
    user_id: int
    role: str

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(user_id=user.id, role=user.role)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_client(self) -> bool:
        return self.role == ROLE_CLIENT

    @property
    def is_employee(self) -> bool:
        return self.role == ROLE_EMPLOYEE

    @property
    def is_back_office(self) -> bool:
        """Admins and cashiers act on any order."""
        return self.role in (ROLE_ADMIN, ROLE_CASHIER)


def require_roles(principal: Principal, *roles: str, message: str | None = None) -> None:
    if principal.role not in roles:
        raise ForbiddenError(message or "You do not have permission to perform this action")


def require_appointment_staff(principal: Principal, appointment: Appointment | None, action: str) -> None:
    """
    Staff rule for appointment-bound work.

    - clients: never
    - employees: only the appointment's assigned professional
    - admin/cashier: unrestricted
    """
    if principal.is_client:
        raise ForbiddenError(f"Clients cannot {action}")
    if principal.is_back_office:
        return
    if principal.is_employee and appointment is not None and appointment.employee_id == principal.user_id:
        return
    raise ForbiddenError(f"You do not have permission to {action}")


def require_comanda_operator(principal: Principal, comanda: Comanda, action: str) -> None:
    require_appointment_staff(principal, comanda.appointment, action)


def can_view_comanda(principal: Principal, comanda: Comanda) -> bool:
    if principal.is_back_office:
        return True
    if principal.is_client:
        return comanda.client_id == principal.user_id
    if principal.is_employee:
        return comanda.appointment is not None and comanda.appointment.employee_id == principal.user_id
    return False
