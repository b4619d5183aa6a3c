"""
Stock ledger tests.

Verifies:
- Signed deltas per movement type
- Negative stock rejected except for adjustments
- Movement + stock update are atomic
- Concurrent version bumps are retried on fresh data
- Low-stock audit entry is written and never blocks the movement
"""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from barbershop.extensions import db
from barbershop.models import AuditLog, Product, StockMovement
from barbershop.services import audit_service, stock_service
from barbershop.validation import NotFoundError, ValidationError


def _stock(product_id):
    return db.session.get(Product, product_id).stock_quantity


# =============================================================================
# SIGNED DELTAS
# =============================================================================


@pytest.mark.parametrize(
    "quantity,movement_type,expected",
    [
        (5, "purchase", 5),
        (5, "return", 5),
        (5, "adjustment", 5),
        (-5, "adjustment", -5),
        (5, "sale", -5),
        (-5, "sale", -5),
        (2, "loss", -2),
        (-2, "loss", -2),
    ],
)
def test_signed_delta(quantity, movement_type, expected):
    assert stock_service.signed_delta(quantity, movement_type) == expected


class TestRecordMovement:

    def test_purchase_increases_stock(self, pomade, as_cashier):
        result = stock_service.record_movement(pomade.id, 10, "purchase", principal=as_cashier)
        assert result.new_stock_quantity == 13
        assert _stock(pomade.id) == 13
        assert result.movement.quantity == 10
        assert result.movement.created_by == as_cashier.user_id

    def test_sale_beyond_stock_is_rejected(self, pomade):
        with pytest.raises(ValidationError) as exc:
            stock_service.record_movement(pomade.id, -5, "sale")
        assert exc.value.details["stock_quantity"] == 3
        assert _stock(pomade.id) == 3
        assert db.session.query(StockMovement).count() == 0

    def test_adjustment_may_go_negative(self, pomade):
        result = stock_service.record_movement(pomade.id, -5, "adjustment")
        assert result.new_stock_quantity == -2
        assert _stock(pomade.id) == -2
        assert result.movement.quantity == -5

    def test_loss_stores_negative_delta(self, pomade):
        result = stock_service.record_movement(pomade.id, 1, "loss", reference_id="INV-7", notes="broken jar")
        movement = db.session.get(StockMovement, result.movement.id)
        assert movement.quantity == -1
        assert movement.reference_id == "INV-7"
        assert _stock(pomade.id) == 2

    @pytest.mark.parametrize("quantity", [0, 1.5, "3", True])
    def test_rejects_bad_quantity(self, pomade, quantity):
        with pytest.raises(ValidationError):
            stock_service.record_movement(pomade.id, quantity, "purchase")

    def test_rejects_unknown_type(self, pomade):
        with pytest.raises(ValidationError):
            stock_service.record_movement(pomade.id, 1, "gift")

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.record_movement(999999, 1, "purchase")

    def test_version_increments_per_movement(self, pomade):
        start = pomade.version_id
        stock_service.record_movement(pomade.id, 1, "purchase")
        stock_service.record_movement(pomade.id, 1, "purchase")
        assert db.session.get(Product, pomade.id).version_id == start + 2

    def test_version_conflict_is_retried(self, pomade, monkeypatch):
        """A version bump by another writer forces exactly one retry on fresh data."""
        start_version = pomade.version_id
        delta = stock_service.signed_delta
        calls = []

        def bump_version_on_first_attempt(quantity, movement_type):
            calls.append(movement_type)
            if len(calls) == 1:
                db.session.execute(
                    text("UPDATE products SET version_id = version_id + 1 WHERE id = :id"), {"id": pomade.id}
                )
            return delta(quantity, movement_type)

        monkeypatch.setattr(stock_service, "signed_delta", bump_version_on_first_attempt)

        result = stock_service.record_movement(pomade.id, 4, "purchase")

        assert len(calls) == 2
        assert result.new_stock_quantity == 7
        assert _stock(pomade.id) == 7
        assert db.session.query(StockMovement).filter_by(product_id=pomade.id).count() == 1
        assert db.session.get(Product, pomade.id).version_id == start_version + 1


# =============================================================================
# LOW STOCK
# =============================================================================


class TestLowStockWarning:

    def test_below_minimum_writes_audit(self, pomade):
        result = stock_service.record_movement(pomade.id, 2, "sale")

        assert result.low_stock is True
        entry = db.session.query(AuditLog).filter_by(action="low_stock_warning").one()
        assert entry.entity_type == "product"
        assert entry.entity_id == pomade.id
        assert entry.details["current_stock"] == 1
        assert entry.details["minimum_stock"] == 2
        assert entry.details["product_name"] == "Pomada"
        assert entry.details["triggered_by_movement"] == result.movement.id

    def test_at_minimum_is_not_low(self, pomade):
        result = stock_service.record_movement(pomade.id, 1, "sale")
        assert result.low_stock is False
        assert db.session.query(AuditLog).filter_by(action="low_stock_warning").count() == 0

    def test_audit_failure_does_not_fail_movement(self, pomade, monkeypatch):
        def broken(**kwargs):
            raise SQLAlchemyError("audit table unavailable")

        monkeypatch.setattr(audit_service, "append_audit_log", broken)

        result = stock_service.record_movement(pomade.id, 2, "sale")

        assert result.new_stock_quantity == 1
        assert _stock(pomade.id) == 1
        assert db.session.query(StockMovement).count() == 1


# =============================================================================
# HISTORY & RECONCILIATION
# =============================================================================


def test_list_movements_newest_first_and_filtered(pomade):
    first = stock_service.record_movement(pomade.id, 4, "purchase").movement.id
    second = stock_service.record_movement(pomade.id, 1, "sale").movement.id

    movements = stock_service.list_movements(product_id=pomade.id)
    assert [m.id for m in movements] == [second, first]

    sales = stock_service.list_movements(movement_type="sale")
    assert [m.id for m in sales] == [second]

    with pytest.raises(ValidationError):
        stock_service.list_movements(movement_type="gift")


def test_reconcile_reports_opening_balance_as_drift(pomade):
    stock_service.record_movement(pomade.id, 4, "purchase")
    report = stock_service.reconcile_stock(pomade.id)
    assert report == {
        "product_id": pomade.id,
        "stock_quantity": 7,
        "ledger_quantity": 4,
        "drift": 3,
    }
