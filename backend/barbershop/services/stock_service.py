# Overview: Stock ledger; applies signed movements to product stock.

"""
Stock Ledger Invariants (authoritative)

- StockMovement rows are append-only; quantity stores the SIGNED delta.
- purchase / return / adjustment apply the quantity as given; sale and loss
  always remove abs(quantity).
- Stock may go negative only through an adjustment.
- The movement insert and the Product.stock_quantity update commit together
  or not at all. Product rows are locked (FOR UPDATE) and version-checked;
  a concurrent writer loses with StaleDataError and the movement is retried.
- Low-stock audit entries are best-effort: written in a SAVEPOINT, logged on
  failure, never failing the movement.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Product, StockMovement
from ..models.inventory import (
    INBOUND_MOVEMENT_TYPES,
    MOVEMENT_ADJUSTMENT,
    VALID_MOVEMENT_TYPES,
)
from ..utils import end_of_day
from ..validation import NotFoundError, ValidationError
from .access_service import Principal
from .audit_service import append_audit_log_best_effort
from .concurrency import lock_for_update, run_with_retry


@dataclass
class MovementResult:
    movement: StockMovement
    new_stock_quantity: int
    low_stock: bool


def signed_delta(quantity: int, movement_type: str) -> int:
    """Stock delta for a movement request."""
    if movement_type in INBOUND_MOVEMENT_TYPES:
        return quantity
    return -abs(quantity)


def _validate_movement(quantity, movement_type: str) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be an integer")
    if quantity == 0:
        raise ValidationError("Quantity cannot be zero")
    if movement_type not in VALID_MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {movement_type}")


def record_movement(
    product_id: int,
    quantity: int,
    movement_type: str,
    principal: Principal | None = None,
    reference_id: str | None = None,
    notes: str | None = None,
) -> MovementResult:
    """
    Record a stock movement and apply it to the product.

    Raises ValidationError for zero/invalid quantities, unknown types and
    negative stock outside adjustments; NotFoundError for unknown products.
    """
    _validate_movement(quantity, movement_type)

    def _op() -> MovementResult:
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            db.session.rollback()
            raise NotFoundError("Product not found")

        delta = signed_delta(quantity, movement_type)
        new_stock = product.stock_quantity + delta

        if new_stock < 0 and movement_type != MOVEMENT_ADJUSTMENT:
            db.session.rollback()
            raise ValidationError(
                "Insufficient stock for this operation",
                details={
                    "product_id": product.id,
                    "stock_quantity": product.stock_quantity,
                    "requested_delta": delta,
                },
            )

        movement = StockMovement(
            product_id=product.id,
            quantity=delta,
            movement_type=movement_type,
            reference_id=reference_id,
            notes=notes,
            created_by=principal.user_id if principal else None,
        )
        db.session.add(movement)
        product.stock_quantity = new_stock
        # Version check happens here; a concurrent writer raises StaleDataError
        db.session.flush()

        low_stock = new_stock < product.stock_minimum
        if low_stock:
            append_audit_log_best_effort(
                entity_type="product",
                entity_id=product.id,
                action="low_stock_warning",
                details={
                    "current_stock": new_stock,
                    "minimum_stock": product.stock_minimum,
                    "product_name": product.name,
                    "triggered_by_movement": movement.id,
                },
                actor_user_id=principal.user_id if principal else None,
            )

        db.session.commit()
        return MovementResult(movement=movement, new_stock_quantity=new_stock, low_stock=low_stock)

    return run_with_retry(_op)


def list_movements(
    product_id: int | None = None,
    movement_type: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> list[StockMovement]:
    """Movements newest first. end_date covers the whole day."""
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if movement_type:
        if movement_type not in VALID_MOVEMENT_TYPES:
            raise ValidationError(f"Invalid movement type: {movement_type}")
        q = q.filter(StockMovement.movement_type == movement_type)
    if start_date is not None:
        q = q.filter(StockMovement.created_at >= start_date)
    if end_date is not None:
        q = q.filter(StockMovement.created_at <= end_of_day(end_date))
    return q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).all()


def reconcile_stock(product_id: int) -> dict:
    """
    Compare stored stock against the movement ledger.

    The ledger sum only covers stock that entered through movements, so
    'drift' is informational: opening balances loaded outside the ledger show
    up here too.
    """
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")

    ledger_sum = db.session.query(
        func.coalesce(func.sum(StockMovement.quantity), 0)
    ).filter(StockMovement.product_id == product_id).scalar()

    ledger_sum = int(ledger_sum or 0)
    return {
        "product_id": product.id,
        "stock_quantity": product.stock_quantity,
        "ledger_quantity": ledger_sum,
        "drift": product.stock_quantity - ledger_sum,
    }
