# Overview: Typed request bodies parsed at the HTTP boundary.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from .models.inventory import VALID_MOVEMENT_TYPES
from .services.comanda_service import InitialService
from .utils import parse_iso_datetime
from .validation import (
    ValidationError,
    coerce_choice,
    coerce_int,
    coerce_money,
    coerce_optional_int,
    coerce_optional_text,
    require_object,
)


def _optional_money(data: dict, key: str) -> Decimal | None:
    if data.get(key) is None:
        return None
    return coerce_money(data[key], key)


def _optional_datetime(data: dict, key: str) -> datetime | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be an ISO-8601 string")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")


@dataclass
class AddItemRequest:
    quantity: int
    unit_price: Decimal
    service_id: int | None = None
    product_id: int | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "AddItemRequest":
        data = require_object(payload)
        service_id = coerce_optional_int(data.get("service_id"), "service_id")
        product_id = coerce_optional_int(data.get("product_id"), "product_id")
        if (service_id is None) == (product_id is None):
            raise ValidationError("Provide exactly one of service_id or product_id")

        if data.get("quantity") is None:
            raise ValidationError("quantity is required")
        quantity = coerce_int(data["quantity"], "quantity")
        if quantity <= 0:
            raise ValidationError("quantity must be greater than zero")

        if data.get("unit_price") is None:
            raise ValidationError("unit_price is required")
        unit_price = coerce_money(data["unit_price"], "unit_price")

        return cls(quantity=quantity, unit_price=unit_price, service_id=service_id, product_id=product_id)


@dataclass
class CloseComandaRequest:
    payment_method: Any = None
    final_total: Decimal | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "CloseComandaRequest":
        data = require_object(payload)
        method = data.get("payment_method")
        if method is None or (isinstance(method, str) and not method.strip()):
            raise ValidationError("payment_method is required")
        return cls(payment_method=method, final_total=_optional_money(data, "final_total"))


@dataclass
class StockMovementRequest:
    product_id: int
    quantity: int
    movement_type: str
    reference_id: str | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "StockMovementRequest":
        data = require_object(payload)
        for key in ("product_id", "quantity", "movement_type"):
            if data.get(key) is None:
                raise ValidationError(f"{key} is required")

        quantity = coerce_int(data["quantity"], "quantity")
        if quantity == 0:
            raise ValidationError("quantity must not be zero")

        return cls(
            product_id=coerce_int(data["product_id"], "product_id"),
            quantity=quantity,
            movement_type=coerce_choice(data["movement_type"], "movement_type", VALID_MOVEMENT_TYPES),
            reference_id=coerce_optional_text(data.get("reference_id"), "reference_id", max_length=64),
            notes=coerce_optional_text(data.get("notes"), "notes", max_length=1000),
        )


@dataclass
class CreateComandaRequest:
    appointment_id: int
    client_id: int | None = None
    services: list[InitialService] | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "CreateComandaRequest":
        data = require_object(payload)
        if data.get("appointment_id") is None:
            raise ValidationError("appointment_id is required")

        services = None
        raw_services = data.get("services")
        if raw_services is not None:
            if not isinstance(raw_services, list):
                raise ValidationError("services must be a list")
            services = []
            for index, raw in enumerate(raw_services):
                if not isinstance(raw, dict) or raw.get("service_id") is None:
                    raise ValidationError(f"services[{index}].service_id is required")
                quantity = coerce_int(raw.get("quantity", 1), f"services[{index}].quantity")
                if quantity <= 0:
                    raise ValidationError(f"services[{index}].quantity must be greater than zero")
                services.append(InitialService(
                    service_id=coerce_int(raw["service_id"], f"services[{index}].service_id"),
                    quantity=quantity,
                    price=_optional_money(raw, "price"),
                ))

        return cls(
            appointment_id=coerce_int(data["appointment_id"], "appointment_id"),
            client_id=coerce_optional_int(data.get("client_id"), "client_id"),
            services=services,
        )


@dataclass
class UpdateAdjustmentsRequest:
    discount: Decimal | None = None
    taxes: Decimal | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "UpdateAdjustmentsRequest":
        data = require_object(payload)
        request = cls(discount=_optional_money(data, "discount"), taxes=_optional_money(data, "taxes"))
        if request.discount is None and request.taxes is None:
            raise ValidationError("Provide discount and/or taxes")
        return request


@dataclass
class CreateAppointmentRequest:
    client_id: int
    employee_id: int
    service_id: int | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "CreateAppointmentRequest":
        data = require_object(payload)
        for key in ("client_id", "employee_id"):
            if data.get(key) is None:
                raise ValidationError(f"{key} is required")
        return cls(
            client_id=coerce_int(data["client_id"], "client_id"),
            employee_id=coerce_int(data["employee_id"], "employee_id"),
            service_id=coerce_optional_int(data.get("service_id"), "service_id"),
            start_time=_optional_datetime(data, "start_time"),
            end_time=_optional_datetime(data, "end_time"),
            notes=coerce_optional_text(data.get("notes"), "notes", max_length=1000),
        )


@dataclass
class CompleteAppointmentRequest:
    payment_method: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> "CompleteAppointmentRequest":
        data = require_object(payload)
        return cls(payment_method=data.get("payment_method"))


@dataclass
class ListFilters:
    """Query-string filters shared by the list endpoints."""
    values: dict = field(default_factory=dict)

    @classmethod
    def from_args(cls, args, int_keys=(), text_keys=(), date_keys=("start_date", "end_date")) -> "ListFilters":
        values = {}
        for key in int_keys:
            values[key] = coerce_optional_int(args.get(key), key)
        for key in text_keys:
            values[key] = coerce_optional_text(args.get(key), key, max_length=32)
        for key in date_keys:
            values[key] = _optional_datetime(args, key)
        return cls(values=values)
