# Overview: Commission allocation across comanda items, plus commission listing and payout.

"""
Commission Engine

The commission calculation (commission_calculator.py) produces one pool per
item-type group: comanda.total_services_commission and
comanda.total_products_commission. This module only ALLOCATES a pool across
the items of its group, proportionally to item.total_price:

    proportion            = item.total_price / group_total_price
    commission_value      = round(proportion * group_commission_total, 2)
    commission_percentage = round(commission_value / item.total_price * 100, 2)

A group whose total price is zero gets 0 / 0 for every item.

Allocation only fills items the calculation left empty; values it already
wrote are never overwritten.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import Appointment, Comanda, ComandaItem, CommissionDetail
from ..models.comandas import (
    COMMISSION_PAID,
    COMMISSION_PENDING,
    ITEM_TYPE_PRODUCT,
    ITEM_TYPE_SERVICE,
    VALID_COMMISSION_STATUSES,
)
from ..models.auth import ROLE_ADMIN
from ..utils import ZERO, end_of_day, round_money, to_decimal, utcnow
from ..validation import ForbiddenError, NotFoundError, ValidationError
from .access_service import Principal, require_roles


@dataclass(frozen=True)
class ItemAllocation:
    item_id: int
    commission_value: Decimal
    commission_percentage: Decimal


def partition_items(items) -> dict[str, list]:
    groups: dict[str, list] = {ITEM_TYPE_SERVICE: [], ITEM_TYPE_PRODUCT: []}
    for item in items:
        key = ITEM_TYPE_SERVICE if item.service_id is not None else ITEM_TYPE_PRODUCT
        groups[key].append(item)
    return groups


def allocate_group(items, group_commission_total) -> list[ItemAllocation]:
    """Split one group's commission pool across its items by price share."""
    group_total_price = sum((to_decimal(item.total_price) for item in items), ZERO)
    pool = to_decimal(group_commission_total)

    allocations = []
    for item in items:
        if group_total_price == 0:
            allocations.append(ItemAllocation(item.id, ZERO, ZERO))
            continue

        item_total = to_decimal(item.total_price)
        proportion = item_total / group_total_price
        value = round_money(proportion * pool)
        percentage = round_money(value / item_total * 100) if item_total != 0 else ZERO
        allocations.append(ItemAllocation(item.id, value, percentage))
    return allocations


def group_pools(comanda: Comanda) -> dict[str, Decimal]:
    return {
        ITEM_TYPE_SERVICE: to_decimal(comanda.total_services_commission),
        ITEM_TYPE_PRODUCT: to_decimal(comanda.total_products_commission),
    }


def allocate_comanda(comanda: Comanda, items=None) -> dict[int, ItemAllocation]:
    """Allocations for every item of the comanda, keyed by item id (no writes)."""
    items = comanda.items if items is None else items
    pools = group_pools(comanda)
    result: dict[int, ItemAllocation] = {}
    for group, group_items in partition_items(items).items():
        if not group_items:
            continue
        for allocation in allocate_group(group_items, pools[group]):
            result[allocation.item_id] = allocation
    return result


def apply_item_commissions(comanda: Comanda) -> int:
    """
    Persist allocations on items that have no commission values yet.

    Returns the number of items updated. Caller commits.
    """
    items = db.session.query(ComandaItem).filter_by(comanda_id=comanda.id).order_by(ComandaItem.id).all()
    allocations = allocate_comanda(comanda, items)

    updated = 0
    for item in items:
        if item.commission_value is not None and item.commission_percentage is not None:
            continue
        allocation = allocations[item.id]
        if item.commission_value is None:
            item.commission_value = allocation.commission_value
        if item.commission_percentage is None:
            item.commission_percentage = allocation.commission_percentage
        updated += 1
    return updated


def item_dicts_with_commissions(comanda: Comanda) -> list[dict]:
    """
    Serialize items, filling commission fields that storage has not caught up on.

    Read-only: nothing is written. Groups without a pool yet are left as null.
    """
    allocations = allocate_comanda(comanda)
    pools = group_pools(comanda)
    rows = []
    for item in comanda.items:
        data = item.to_dict()
        pool = pools[item.item_type]
        if data["commission_value"] is None and pool:
            allocation = allocations[item.id]
            data["commission_value"] = float(allocation.commission_value)
            data["commission_percentage"] = float(allocation.commission_percentage)
        rows.append(data)
    return rows


def list_comanda_commissions(comanda_id: int) -> list[CommissionDetail]:
    return (
        db.session.query(CommissionDetail)
        .filter_by(comanda_id=comanda_id)
        .order_by(CommissionDetail.calculated_at.desc(), CommissionDetail.id.desc())
        .all()
    )


def list_commissions(
    principal: Principal,
    employee_id: int | None = None,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> list[CommissionDetail]:
    """
    Commission details visible to the principal.

    Admins and cashiers see everyone's; employees only their own; clients none.
    """
    if principal.is_client:
        raise ForbiddenError("Clients cannot view commissions")

    q = db.session.query(CommissionDetail)
    if principal.is_employee:
        if employee_id is not None and employee_id != principal.user_id:
            raise ForbiddenError("You can only view your own commissions")
        employee_id = principal.user_id

    if employee_id is not None:
        q = q.filter(CommissionDetail.employee_id == employee_id)
    if status:
        if status not in VALID_COMMISSION_STATUSES:
            raise ValidationError(f"Invalid commission status: {status}")
        q = q.filter(CommissionDetail.status == status)
    if start_date is not None:
        q = q.filter(CommissionDetail.calculated_at >= start_date)
    if end_date is not None:
        q = q.filter(CommissionDetail.calculated_at <= end_of_day(end_date))
    return q.order_by(CommissionDetail.calculated_at.desc(), CommissionDetail.id.desc()).all()


def commission_summary(details) -> dict:
    pending = sum((to_decimal(d.calculated_value) for d in details if d.status == COMMISSION_PENDING), ZERO)
    paid = sum((to_decimal(d.calculated_value) for d in details if d.status == COMMISSION_PAID), ZERO)
    return {
        "pending": float(round_money(pending)),
        "paid": float(round_money(paid)),
        "total": float(round_money(pending + paid)),
    }


def mark_commission_paid(commission_id: int, principal: Principal) -> CommissionDetail:
    """Admin-only payout marking: pending -> paid."""
    require_roles(principal, ROLE_ADMIN, message="Only administrators can pay commissions")

    detail = db.session.get(CommissionDetail, commission_id)
    if not detail:
        raise NotFoundError("Commission not found")
    if detail.status == COMMISSION_PAID:
        raise ValidationError("Commission already paid")

    detail.status = COMMISSION_PAID
    detail.paid_at = utcnow()
    detail.paid_by_user_id = principal.user_id
    db.session.commit()
    return detail


def employee_for_comanda(comanda: Comanda) -> int | None:
    appointment = db.session.get(Appointment, comanda.appointment_id)
    return appointment.employee_id if appointment else None
