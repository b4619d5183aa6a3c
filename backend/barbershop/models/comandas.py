from __future__ import annotations

from ..extensions import db
from ..utils import money_to_json, to_utc_z

COMANDA_OPEN = "open"
COMANDA_CLOSED = "closed"
COMANDA_CANCELED = "canceled"

VALID_COMANDA_STATUSES = (COMANDA_OPEN, COMANDA_CLOSED, COMANDA_CANCELED)

ITEM_TYPE_SERVICE = "service"
ITEM_TYPE_PRODUCT = "product"

COMMISSION_PENDING = "pending"
COMMISSION_PAID = "paid"

VALID_COMMISSION_STATUSES = (COMMISSION_PENDING, COMMISSION_PAID)


class Comanda(db.Model):
    """
    Running bill ("comanda") tied 1:1 to an appointment.

    LIFECYCLE: open -> closed | canceled. Both end states are terminal.

    INVARIANTS:
    - total == sum(item.total_price), always recomputed from the item set
    - final_total == max(0, round(total - discount + taxes, 2))
    """
    __tablename__ = "comandas"
    __table_args__ = (
        db.UniqueConstraint("appointment_id", name="uq_comandas_appointment"),
        db.Index("ix_comandas_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey("appointments.id"), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=COMANDA_OPEN, index=True)

    total = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    taxes = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    final_total = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    payment_method = db.Column(db.String(16), nullable=True)

    # Written by the commission calculation (services/commission_calculator.py)
    total_services_commission = db.Column(db.Numeric(10, 2), nullable=True)
    total_products_commission = db.Column(db.Numeric(10, 2), nullable=True)
    total_commission = db.Column(db.Numeric(10, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    canceled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    appointment = db.relationship("Appointment", backref=db.backref("comanda", uselist=False, lazy=True))
    client = db.relationship("User", foreign_keys=[client_id])
    cashier = db.relationship("User", foreign_keys=[cashier_id])
    items = db.relationship(
        "ComandaItem",
        backref="comanda",
        lazy=True,
        order_by="ComandaItem.id",
        cascade="all, delete-orphan",
    )

    @property
    def is_open(self) -> bool:
        return self.status == COMANDA_OPEN

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "appointment_id": self.appointment_id,
            "client_id": self.client_id,
            "cashier_id": self.cashier_id,
            "status": self.status,
            "total": money_to_json(self.total),
            "discount": money_to_json(self.discount),
            "taxes": money_to_json(self.taxes),
            "final_total": money_to_json(self.final_total),
            "payment_method": self.payment_method,
            "total_services_commission": money_to_json(self.total_services_commission),
            "total_products_commission": money_to_json(self.total_products_commission),
            "total_commission": money_to_json(self.total_commission),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "closed_at": to_utc_z(self.closed_at),
            "canceled_at": to_utc_z(self.canceled_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ComandaItem(db.Model):
    """
    Line item on a comanda: exactly one of service or product.

    commission_value / commission_percentage stay NULL until the close-time
    commission allocation fills them.
    """
    __tablename__ = "comanda_items"
    __table_args__ = (
        db.CheckConstraint(
            "(service_id IS NOT NULL AND product_id IS NULL) OR "
            "(service_id IS NULL AND product_id IS NOT NULL)",
            name="ck_comanda_items_one_ref",
        ),
        db.CheckConstraint("quantity > 0", name="ck_comanda_items_quantity_positive"),
        db.CheckConstraint("unit_price >= 0", name="ck_comanda_items_unit_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    comanda_id = db.Column(db.Integer, db.ForeignKey("comandas.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    commission_value = db.Column(db.Numeric(10, 2), nullable=True)
    commission_percentage = db.Column(db.Numeric(7, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    service = db.relationship("Service")
    product = db.relationship("Product")

    @property
    def item_type(self) -> str:
        return ITEM_TYPE_SERVICE if self.service_id is not None else ITEM_TYPE_PRODUCT

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "comanda_id": self.comanda_id,
            "item_type": self.item_type,
            "service_id": self.service_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": money_to_json(self.unit_price),
            "total_price": money_to_json(self.total_price),
            "commission_value": money_to_json(self.commission_value),
            "commission_percentage": money_to_json(self.commission_percentage),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CommissionDetail(db.Model):
    """
    Commission earned by an employee on one comanda item.

    Produced by the commission calculation at close time. The core only reads
    these rows, except for marking them paid.
    """
    __tablename__ = "commission_details"
    __table_args__ = (
        db.Index("ix_commission_details_employee_status", "employee_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    comanda_id = db.Column(db.Integer, db.ForeignKey("comandas.id"), nullable=False, index=True)
    comanda_item_id = db.Column(db.Integer, db.ForeignKey("comanda_items.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    commission_type = db.Column(db.String(16), nullable=False)
    commission_rate = db.Column(db.Numeric(10, 2), nullable=False)
    calculated_value = db.Column(db.Numeric(10, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=COMMISSION_PENDING, index=True)
    calculated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    comanda = db.relationship("Comanda", backref=db.backref("commission_details", lazy=True))
    item = db.relationship("ComandaItem")
    employee = db.relationship("User", foreign_keys=[employee_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "comanda_id": self.comanda_id,
            "comanda_item_id": self.comanda_item_id,
            "employee_id": self.employee_id,
            "commission_type": self.commission_type,
            "commission_rate": money_to_json(self.commission_rate),
            "calculated_value": money_to_json(self.calculated_value),
            "status": self.status,
            "calculated_at": to_utc_z(self.calculated_at),
            "paid_at": to_utc_z(self.paid_at),
            "paid_by_user_id": self.paid_by_user_id,
        }
