from __future__ import annotations

from ..extensions import db
from ..utils import money_to_json, to_utc_z

COMMISSION_TYPE_PERCENTAGE = "percentage"
COMMISSION_TYPE_FIXED = "fixed"

VALID_COMMISSION_TYPES = (COMMISSION_TYPE_PERCENTAGE, COMMISSION_TYPE_FIXED)


class Service(db.Model):
    """Billable services (haircut, beard trim, ...). Catalog data, read-only here."""
    __tablename__ = "services"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    duration_minutes = db.Column(db.Integer, nullable=True)

    # Used when the employee has no custom rate for this service
    default_commission_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": money_to_json(self.price),
            "duration_minutes": self.duration_minutes,
            "default_commission_percentage": money_to_json(self.default_commission_percentage),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Retail products sold over the counter.

    stock_quantity is mutated only through the stock ledger
    (services/stock_service.py). version_id guards concurrent movements.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    sale_price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    commission_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    # Low-stock alert threshold
    stock_minimum = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "sale_price": money_to_json(self.sale_price),
            "commission_percentage": money_to_json(self.commission_percentage),
            "stock_quantity": self.stock_quantity,
            "stock_minimum": self.stock_minimum,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class EmployeeService(db.Model):
    """
    Services an employee performs, with an optional custom commission rate.

    commission_value is a percentage of the item total when commission_type is
    'percentage', or a flat amount per unit when 'fixed'. NULL means "use the
    service's default percentage".
    """
    __tablename__ = "employee_services"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "service_id", name="uq_employee_services_pair"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)
    commission_type = db.Column(db.String(16), nullable=False, default=COMMISSION_TYPE_PERCENTAGE)
    commission_value = db.Column(db.Numeric(10, 2), nullable=True)

    employee = db.relationship("User")
    service = db.relationship("Service")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "service_id": self.service_id,
            "commission_type": self.commission_type,
            "commission_value": money_to_json(self.commission_value),
        }
