from __future__ import annotations

from ..extensions import db
from ..utils import to_utc_z

MOVEMENT_PURCHASE = "purchase"
MOVEMENT_SALE = "sale"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_RETURN = "return"
MOVEMENT_LOSS = "loss"

VALID_MOVEMENT_TYPES = (
    MOVEMENT_PURCHASE,
    MOVEMENT_SALE,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_RETURN,
    MOVEMENT_LOSS,
)

# Signed as given; every other type always removes stock
INBOUND_MOVEMENT_TYPES = (MOVEMENT_PURCHASE, MOVEMENT_RETURN, MOVEMENT_ADJUSTMENT)


class StockMovement(db.Model):
    """
    Append-only stock ledger entry.

    quantity is the SIGNED delta applied to Product.stock_quantity, not the
    raw request value. Rows are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    movement_type = db.Column(db.String(16), nullable=False, index=True)

    # Free-form link to the originating document (e.g. a comanda id)
    reference_id = db.Column(db.String(64), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("stock_movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product": {"id": self.product.id, "name": self.product.name, "sku": self.product.sku} if self.product else None,
            "quantity": self.quantity,
            "movement_type": self.movement_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
