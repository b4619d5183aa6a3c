# Overview: Comanda lifecycle (open -> closed | canceled) and close-time settlement.

"""
Comanda State Machine

    open --close--> closed     (terminal)
    open --cancel-> canceled   (terminal)

Close is at-most-once per comanda: the open -> closed write is a conditional
UPDATE ... WHERE status = 'open'. A caller that loses that race gets a
ValidationError, same as closing an already-closed order.

Commission settlement after close is best-effort. The calculation port may
lag, so close waits COMMISSION_SETTLE_DELAY_SECONDS, re-reads, and retries
once through the idempotent recalculate(). Whatever is available is returned;
close never fails because commissions are missing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Appointment, Comanda, ComandaItem, CommissionDetail, Service
from ..models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLE_EMPLOYEE
from ..models.comandas import COMANDA_CANCELED, COMANDA_CLOSED, COMANDA_OPEN, VALID_COMANDA_STATUSES
from ..models.scheduling import FINAL_APPOINTMENT_STATUSES
from ..utils import ZERO, end_of_day, round_money, to_decimal, utcnow
from ..validation import ConflictError, ForbiddenError, NotFoundError, ValidationError
from .access_service import Principal, can_view_comanda, require_appointment_staff, require_comanda_operator, require_roles
from .audit_service import append_audit_log
from .comanda_item_service import expected_final_total, sum_item_totals
from .commission_calculator import CommissionCalculationTimeout, get_commission_calculator
from .commission_service import apply_item_commissions, list_comanda_commissions
from .concurrency import compare_and_set, lock_for_update, run_with_retry
from .payment_methods import resolve_payment_method


@dataclass
class InitialService:
    service_id: int
    quantity: int = 1
    price: Decimal | None = None


@dataclass
class SettlementResult:
    comanda: Comanda
    commissions: list[CommissionDetail] = field(default_factory=list)


# =============================================================================
# CREATION & ADJUSTMENTS
# =============================================================================

def open_comanda(
    appointment_id: int,
    principal: Principal,
    client_id: int | None = None,
    cashier_id: int | None = None,
    services: list[InitialService] | None = None,
) -> Comanda:
    """
    Open the (single) comanda for an appointment.

    Initial service lines come from `services`, or from the appointment's own
    service at catalog price when omitted.
    """
    require_roles(
        principal, ROLE_ADMIN, ROLE_CASHIER, ROLE_EMPLOYEE,
        message="Only staff can open comandas",
    )

    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        raise NotFoundError("Appointment not found")
    require_appointment_staff(principal, appointment, "open a comanda for this appointment")

    if appointment.status in FINAL_APPOINTMENT_STATUSES:
        raise ValidationError(f"Cannot open a comanda for a {appointment.status} appointment")

    if db.session.query(Comanda.id).filter_by(appointment_id=appointment_id).first():
        raise ConflictError("A comanda already exists for this appointment")

    if services is None and appointment.service_id is not None:
        services = [InitialService(service_id=appointment.service_id)]

    comanda = Comanda(
        appointment_id=appointment.id,
        client_id=client_id or appointment.client_id,
        cashier_id=cashier_id,
        status=COMANDA_OPEN,
        total=ZERO,
        final_total=ZERO,
    )
    db.session.add(comanda)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A comanda already exists for this appointment")

    try:
        for entry in services or []:
            if entry.quantity <= 0:
                raise ValidationError("Quantity must be greater than zero")
            service = db.session.get(Service, entry.service_id)
            if not service:
                raise NotFoundError(f"Service {entry.service_id} not found")
            unit_price = round_money(entry.price if entry.price is not None else service.price)
            if unit_price < 0:
                raise ValidationError("Unit price must be greater than or equal to zero")
            db.session.add(ComandaItem(
                comanda_id=comanda.id,
                service_id=service.id,
                quantity=entry.quantity,
                unit_price=unit_price,
                total_price=round_money(unit_price * entry.quantity),
            ))
        db.session.flush()

        comanda.total = sum_item_totals(db.session.query(ComandaItem).filter_by(comanda_id=comanda.id))
        comanda.final_total = expected_final_total(comanda.total, comanda.discount or 0, comanda.taxes or 0)

        append_audit_log(
            entity_type="comanda",
            entity_id=comanda.id,
            action="comanda_opened",
            details={"appointment_id": appointment.id, "items": len(services or [])},
            actor_user_id=principal.user_id,
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A comanda already exists for this appointment")
    except Exception:
        db.session.rollback()
        raise
    return comanda


def update_adjustments(
    comanda_id: int,
    principal: Principal,
    discount=None,
    taxes=None,
) -> Comanda:
    """Set discount and/or taxes on an open comanda; refreshes the final_total preview."""

    def _op() -> Comanda:
        comanda = lock_for_update(db.session.query(Comanda).filter_by(id=comanda_id)).first()
        if not comanda:
            raise NotFoundError("Comanda not found")
        require_comanda_operator(principal, comanda, "change this comanda")
        if not comanda.is_open:
            raise ValidationError(f"Cannot change a {comanda.status} comanda")

        if discount is not None:
            if to_decimal(discount) < 0:
                raise ValidationError("Discount must be greater than or equal to zero")
            comanda.discount = round_money(discount)
        if taxes is not None:
            if to_decimal(taxes) < 0:
                raise ValidationError("Taxes must be greater than or equal to zero")
            comanda.taxes = round_money(taxes)

        comanda.total = sum_item_totals(db.session.query(ComandaItem).filter_by(comanda_id=comanda.id))
        comanda.final_total = expected_final_total(comanda.total, comanda.discount, comanda.taxes)
        db.session.commit()
        return comanda

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


# =============================================================================
# READS
# =============================================================================

def get_comanda(comanda_id: int, principal: Principal) -> Comanda:
    comanda = db.session.get(Comanda, comanda_id)
    if not comanda:
        raise NotFoundError("Comanda not found")
    if not can_view_comanda(principal, comanda):
        raise ForbiddenError("You do not have permission to view this comanda")
    return comanda


def list_comandas(
    principal: Principal,
    appointment_id: int | None = None,
    client_id: int | None = None,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> list[Comanda]:
    """Comandas visible to the principal, newest first."""
    q = db.session.query(Comanda)

    if principal.is_client:
        q = q.filter(Comanda.client_id == principal.user_id)
    elif principal.is_employee:
        q = q.join(Appointment, Appointment.id == Comanda.appointment_id).filter(
            Appointment.employee_id == principal.user_id
        )
    elif not principal.is_back_office:
        raise ForbiddenError("You do not have permission to view comandas")

    if appointment_id is not None:
        q = q.filter(Comanda.appointment_id == appointment_id)
    if client_id is not None and not principal.is_client:
        q = q.filter(Comanda.client_id == client_id)
    if status:
        if status not in VALID_COMANDA_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        q = q.filter(Comanda.status == status)
    if start_date is not None:
        q = q.filter(Comanda.created_at >= start_date)
    if end_date is not None:
        q = q.filter(Comanda.created_at <= end_of_day(end_date))

    return q.order_by(Comanda.created_at.desc(), Comanda.id.desc()).all()


# =============================================================================
# TRANSITIONS
# =============================================================================

def close_comanda(
    comanda_id: int,
    payment_method_input,
    principal: Principal,
    final_total=None,
) -> SettlementResult:
    """
    Close an open comanda and settle commissions.

    1. reject closed/canceled orders and orders without items
    2. resolve the payment method
    3. check a caller-supplied final_total against the computed one
    4. open -> closed (conditional update)
    5. commission calculation: trigger, bounded wait, one recompute, allocation
    """
    comanda = db.session.get(Comanda, comanda_id)
    if not comanda:
        raise NotFoundError("Comanda not found")
    require_comanda_operator(principal, comanda, "close this comanda")

    if comanda.status != COMANDA_OPEN:
        raise ValidationError(f"This comanda is already {comanda.status}")

    items = db.session.query(ComandaItem).filter_by(comanda_id=comanda.id).all()
    if not items:
        raise ValidationError("The comanda has no items to close")

    payment_method = resolve_payment_method(payment_method_input)

    total = sum_item_totals(items)
    expected = expected_final_total(total, comanda.discount, comanda.taxes)
    if final_total is not None and round_money(final_total) != expected:
        raise ValidationError(
            "Final total does not match total - discount + taxes",
            details={"expected_final_total": float(expected), "final_total": float(round_money(final_total))},
        )

    closed_at = utcnow()
    won = compare_and_set(
        Comanda,
        comanda.id,
        Comanda.status,
        COMANDA_OPEN,
        {
            "status": COMANDA_CLOSED,
            "payment_method": payment_method,
            "cashier_id": principal.user_id,
            "total": total,
            "final_total": expected,
            "closed_at": closed_at,
            "updated_at": closed_at,
        },
    )
    if not won:
        db.session.rollback()
        raise ValidationError("This comanda is already closed")

    append_audit_log(
        entity_type="comanda",
        entity_id=comanda.id,
        action="comanda_closed",
        details={"payment_method": payment_method, "final_total": str(expected)},
        actor_user_id=principal.user_id,
    )
    db.session.commit()

    return SettlementResult(comanda=_settle_commissions(comanda.id), commissions=_safe_commissions(comanda.id))


def _reload(comanda_id: int) -> Comanda:
    comanda = db.session.get(Comanda, comanda_id)
    db.session.refresh(comanda)
    return comanda


def _commission_missing(comanda: Comanda) -> bool:
    return comanda.total_commission is None or to_decimal(comanda.total_commission) == 0


def _settle_commissions(comanda_id: int) -> Comanda:
    """Best-effort commission settlement for a just-closed comanda."""
    calculator = get_commission_calculator()

    try:
        calculator.calculate(comanda_id)
    except CommissionCalculationTimeout:
        db.session.rollback()
        current_app.logger.info("Commissions not yet computed for comanda %s (calculation timed out)", comanda_id)
    except Exception:
        db.session.rollback()
        current_app.logger.warning("Commission calculation failed for comanda %s", comanda_id, exc_info=True)

    delay = current_app.config.get("COMMISSION_SETTLE_DELAY_SECONDS", 0)
    if delay:
        time.sleep(delay)

    comanda = _reload(comanda_id)
    if _commission_missing(comanda):
        try:
            calculator.recalculate(comanda_id)
        except CommissionCalculationTimeout:
            db.session.rollback()
            current_app.logger.info("Commission recompute timed out for comanda %s", comanda_id)
        except Exception:
            db.session.rollback()
            current_app.logger.warning("Commission recompute failed for comanda %s", comanda_id, exc_info=True)
        comanda = _reload(comanda_id)

    if _commission_missing(comanda):
        current_app.logger.warning("Commissions not yet computed for comanda %s", comanda_id)
        return comanda

    try:
        if apply_item_commissions(comanda):
            db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.warning("Item commission allocation failed for comanda %s", comanda_id, exc_info=True)
        comanda = _reload(comanda_id)

    return comanda


def _safe_commissions(comanda_id: int) -> list[CommissionDetail]:
    try:
        return list_comanda_commissions(comanda_id)
    except Exception:
        db.session.rollback()
        current_app.logger.warning("Could not load commission details for comanda %s", comanda_id, exc_info=True)
        return []


def cancel_comanda(comanda_id: int, principal: Principal) -> Comanda:
    """open -> canceled. No commission side effects."""
    comanda = db.session.get(Comanda, comanda_id)
    if not comanda:
        raise NotFoundError("Comanda not found")
    require_comanda_operator(principal, comanda, "cancel this comanda")

    if comanda.status != COMANDA_OPEN:
        raise ValidationError(f"Only open comandas can be canceled (status: {comanda.status})")

    return cancel_open_comanda(comanda.id, actor_user_id=principal.user_id)


def cancel_open_comanda(comanda_id: int, actor_user_id: int | None = None) -> Comanda:
    """open -> canceled without the operator check (appointment cascade)."""
    canceled_at = utcnow()
    won = compare_and_set(
        Comanda,
        comanda_id,
        Comanda.status,
        COMANDA_OPEN,
        {"status": COMANDA_CANCELED, "canceled_at": canceled_at, "updated_at": canceled_at},
    )
    if not won:
        db.session.rollback()
        raise ValidationError("Only open comandas can be canceled")

    append_audit_log(
        entity_type="comanda",
        entity_id=comanda_id,
        action="comanda_canceled",
        actor_user_id=actor_user_id,
    )
    db.session.commit()
    return _reload(comanda_id)


def recalculate_commission(comanda_id: int, principal: Principal) -> SettlementResult:
    """Admin-only manual recompute for a closed comanda. Errors propagate."""
    require_roles(principal, ROLE_ADMIN, message="Only administrators can recalculate commissions")

    comanda = db.session.get(Comanda, comanda_id)
    if not comanda:
        raise NotFoundError("Comanda not found")
    if comanda.status != COMANDA_CLOSED:
        raise ValidationError("Commissions are only calculated for closed comandas")

    try:
        get_commission_calculator().recalculate(comanda_id)
        comanda = _reload(comanda_id)
        apply_item_commissions(comanda)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return SettlementResult(comanda=_reload(comanda_id), commissions=list_comanda_commissions(comanda_id))
