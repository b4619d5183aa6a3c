# Overview: Comanda line items; keeps comanda.total equal to the item sum.

"""
Item Ledger

WHY full recompute: item insert/delete and the total update are separate
writes. Deriving the total from the current item set on every change (never
incrementing) means any earlier partial failure is repaired by the next
write or by recompute_total().
"""

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Comanda, ComandaItem, Product, Service
from ..utils import ZERO, round_money, to_decimal, utcnow
from ..validation import NotFoundError, ValidationError
from .access_service import Principal, require_comanda_operator
from .audit_service import append_audit_log
from .concurrency import lock_for_update, run_with_retry


def _load_open_comanda(comanda_id: int, principal: Principal, action: str) -> Comanda:
    comanda = lock_for_update(db.session.query(Comanda).filter_by(id=comanda_id)).first()
    if not comanda:
        raise NotFoundError("Comanda not found")

    require_comanda_operator(principal, comanda, action)

    if not comanda.is_open:
        raise ValidationError(f"Cannot {action} on a {comanda.status} comanda")
    return comanda


def _validate_item_refs(service_id: int | None, product_id: int | None) -> None:
    if service_id is None and product_id is None:
        raise ValidationError("Either service_id or product_id is required")
    if service_id is not None and product_id is not None:
        raise ValidationError("Provide service_id or product_id, not both")


def sum_item_totals(items) -> Decimal:
    return round_money(sum((round_money(item.total_price) for item in items), ZERO))


def expected_final_total(total, discount, taxes) -> Decimal:
    """final_total = max(0, round(total - discount + taxes, 2))."""
    amount = round_money(to_decimal(total) - to_decimal(discount) + to_decimal(taxes))
    return amount if amount > 0 else ZERO


def _apply_recomputed_total(comanda: Comanda) -> Decimal:
    """Refresh total and the final_total preview from the current item set."""
    items = db.session.query(ComandaItem).filter_by(comanda_id=comanda.id).all()
    total = sum_item_totals(items)
    comanda.total = total
    comanda.final_total = expected_final_total(total, comanda.discount or ZERO, comanda.taxes or ZERO)
    comanda.updated_at = utcnow()
    return total


def add_item(
    comanda_id: int,
    principal: Principal,
    *,
    service_id: int | None = None,
    product_id: int | None = None,
    quantity: int,
    unit_price,
) -> ComandaItem:
    """
    Add a service or product line to an open comanda.

    Raises ValidationError on closed/canceled orders, bad refs, quantity <= 0
    or unit_price < 0; NotFoundError for unknown comanda/service/product;
    ForbiddenError per the appointment staff rule.
    """
    _validate_item_refs(service_id, product_id)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")
    unit_price = round_money(unit_price)
    if unit_price < 0:
        raise ValidationError("Unit price must be greater than or equal to zero")

    def _op() -> ComandaItem:
        comanda = _load_open_comanda(comanda_id, principal, "add items")

        if service_id is not None and not db.session.get(Service, service_id):
            raise NotFoundError("Service not found")
        if product_id is not None and not db.session.get(Product, product_id):
            raise NotFoundError("Product not found")

        item = ComandaItem(
            comanda_id=comanda.id,
            service_id=service_id,
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
            total_price=round_money(unit_price * quantity),
        )
        db.session.add(item)
        db.session.flush()

        _apply_recomputed_total(comanda)
        append_audit_log(
            entity_type="comanda",
            entity_id=comanda.id,
            action="item_added",
            details={
                "item_id": item.id,
                "service_id": service_id,
                "product_id": product_id,
                "quantity": quantity,
                "unit_price": str(unit_price),
            },
            actor_user_id=principal.user_id,
        )
        db.session.commit()
        return item

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def remove_item(comanda_id: int, item_id: int, principal: Principal) -> Comanda:
    """Delete a line from an open comanda and recompute its total."""

    def _op() -> Comanda:
        comanda = _load_open_comanda(comanda_id, principal, "remove items")

        item = db.session.query(ComandaItem).filter_by(id=item_id, comanda_id=comanda.id).first()
        if not item:
            raise NotFoundError("Item not found on this comanda")

        removed = item.to_dict()
        db.session.delete(item)
        db.session.flush()

        _apply_recomputed_total(comanda)
        append_audit_log(
            entity_type="comanda",
            entity_id=comanda.id,
            action="item_removed",
            details={"item_id": removed["id"], "total_price": removed["total_price"]},
            actor_user_id=principal.user_id,
        )
        db.session.commit()
        return comanda

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def recompute_total(comanda_id: int) -> Decimal:
    """
    Recompute and store comanda.total (and final_total) from its items. Idempotent.

    Works on any status: repairing a stale total does not mutate items.
    """
    def _op() -> Decimal:
        comanda = lock_for_update(db.session.query(Comanda).filter_by(id=comanda_id)).first()
        if not comanda:
            raise NotFoundError("Comanda not found")
        total = _apply_recomputed_total(comanda)
        db.session.commit()
        return total

    return run_with_retry(_op)
