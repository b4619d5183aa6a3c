# Overview: Commission calculation port (the "external" function) and its rate-table implementation.

"""
The close flow treats commission calculation as an external, possibly
asynchronous function: it triggers calculate(), waits a bounded interval,
re-reads the order, and calls the idempotent recalculate() once if totals
are still empty.

Deployments plug in their own calculator (for example one that relies on a
database trigger and makes calculate() a no-op) via
init_commission_calculator(app, calculator).
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Comanda, ComandaItem, CommissionDetail, EmployeeService, Product, Service
from ..models.catalog import COMMISSION_TYPE_FIXED, COMMISSION_TYPE_PERCENTAGE
from ..models.comandas import COMMISSION_PAID, ITEM_TYPE_SERVICE
from ..utils import ZERO, round_money, to_decimal, utcnow
from ..validation import NotFoundError
from .commission_service import employee_for_comanda

EXTENSION_KEY = "commission_calculator"


class CommissionCalculationTimeout(Exception):
    """The calculation did not finish in time; callers treat it as 'not yet computed'."""


class BaseCommissionCalculator:
    """
    Port for the commission-pool calculation.

    calculate(comanda_id): produce commission details and the per-group
        totals on the comanda. May lag (asynchronous implementations).
    recalculate(comanda_id): reset unpaid results and compute again.
        Must be idempotent.

    Implementations that give up waiting raise CommissionCalculationTimeout;
    the close flow logs it as "not yet computed". Any other exception is
    logged as a failure.
    """

    def calculate(self, comanda_id: int) -> None:
        raise NotImplementedError

    def recalculate(self, comanda_id: int) -> None:
        raise NotImplementedError


class RateTableCommissionCalculator(BaseCommissionCalculator):
    """
    Synchronous calculator reading rates from the database.

    Services: the employee's custom rate (EmployeeService) when present,
    otherwise Service.default_commission_percentage.
    Products: Product.commission_percentage.
    Fixed rates pay the amount once per unit.
    """

    def calculate(self, comanda_id: int) -> None:
        comanda = db.session.get(Comanda, comanda_id)
        if not comanda:
            raise NotFoundError("Comanda not found")

        already = db.session.query(CommissionDetail.id).filter_by(comanda_id=comanda_id).first()
        if already:
            # Results exist; calculate() never duplicates them
            return
        self._compute(comanda)
        db.session.commit()

    def recalculate(self, comanda_id: int) -> None:
        comanda = db.session.get(Comanda, comanda_id)
        if not comanda:
            raise NotFoundError("Comanda not found")

        (
            db.session.query(CommissionDetail)
            .filter(CommissionDetail.comanda_id == comanda_id, CommissionDetail.status != COMMISSION_PAID)
            .delete(synchronize_session=False)
        )
        for item in db.session.query(ComandaItem).filter_by(comanda_id=comanda_id):
            item.commission_value = None
            item.commission_percentage = None
        db.session.flush()
        db.session.expire(comanda, ["commission_details"])

        self._compute(comanda)
        db.session.commit()

    def _rate_for(self, employee_id: int | None, item: ComandaItem) -> tuple[str, Decimal]:
        if item.item_type == ITEM_TYPE_SERVICE:
            custom = None
            if employee_id is not None:
                custom = (
                    db.session.query(EmployeeService)
                    .filter_by(employee_id=employee_id, service_id=item.service_id)
                    .first()
                )
            if custom is not None and custom.commission_value is not None:
                return custom.commission_type, to_decimal(custom.commission_value)
            service = db.session.get(Service, item.service_id)
            return COMMISSION_TYPE_PERCENTAGE, to_decimal(service.default_commission_percentage if service else 0)

        product = db.session.get(Product, item.product_id)
        return COMMISSION_TYPE_PERCENTAGE, to_decimal(product.commission_percentage if product else 0)

    def _compute(self, comanda: Comanda) -> None:
        employee_id = employee_for_comanda(comanda)
        items = db.session.query(ComandaItem).filter_by(comanda_id=comanda.id).order_by(ComandaItem.id).all()

        paid_by_item: dict[int, Decimal] = {}
        for detail in db.session.query(CommissionDetail).filter_by(comanda_id=comanda.id, status=COMMISSION_PAID):
            paid_by_item[detail.comanda_item_id] = paid_by_item.get(detail.comanda_item_id, ZERO) + to_decimal(detail.calculated_value)

        services_total = ZERO
        products_total = ZERO
        now = utcnow()

        for item in items:
            if item.id in paid_by_item:
                value = paid_by_item[item.id]
            else:
                commission_type, rate = self._rate_for(employee_id, item)
                if commission_type == COMMISSION_TYPE_FIXED:
                    value = round_money(rate * item.quantity)
                else:
                    value = round_money(to_decimal(item.total_price) * rate / 100)

                if employee_id is not None:
                    db.session.add(CommissionDetail(
                        comanda_id=comanda.id,
                        comanda_item_id=item.id,
                        employee_id=employee_id,
                        commission_type=commission_type,
                        commission_rate=rate,
                        calculated_value=value,
                        calculated_at=now,
                    ))

            item_total = to_decimal(item.total_price)
            item.commission_value = value
            item.commission_percentage = round_money(value / item_total * 100) if item_total else ZERO

            if item.item_type == ITEM_TYPE_SERVICE:
                services_total += value
            else:
                products_total += value

        comanda.total_services_commission = round_money(services_total)
        comanda.total_products_commission = round_money(products_total)
        comanda.total_commission = round_money(services_total + products_total)


def init_commission_calculator(app, calculator: BaseCommissionCalculator | None = None) -> None:
    app.extensions[EXTENSION_KEY] = calculator or RateTableCommissionCalculator()


def get_commission_calculator() -> BaseCommissionCalculator:
    return current_app.extensions[EXTENSION_KEY]
