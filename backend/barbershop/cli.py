# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/barbershop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create tables (if missing) and the default admin user. Idempotent.
# - python -m flask system seed-demo
#   Demo staff, client, catalog, employee rates and one scheduled appointment.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list [--role employee]
# - python -m flask users create --name "Ana" --email ana@shop.local --role employee --password "Password123"
#
# Maintenance:
# - python -m flask comandas recompute-totals [--comanda-id 12]
#   Re-derive comanda totals from their items (repairs partial failures).
# - python -m flask comandas recalculate-commission 12
#   Reset unpaid commission details of a closed comanda and compute again.
# - python -m flask stock reconcile [--product-id 3]
#   Compare stored stock with the movement ledger sum.

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .extensions import db
from .models import Appointment, Comanda, EmployeeService, Product, Service, User
from .models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLE_CLIENT, ROLE_EMPLOYEE, VALID_ROLES
from .models.catalog import COMMISSION_TYPE_PERCENTAGE
from .services.access_service import Principal
from .services.auth_service import create_user
from .services.comanda_item_service import recompute_total
from .services.comanda_service import recalculate_commission
from .services.stock_service import reconcile_stock
from .utils import utcnow
from .validation import ServiceError

DEFAULT_PASSWORD = "Password123"


def _ensure_user(name: str, email: str, role: str, password: str | None = DEFAULT_PASSWORD) -> User:
    user = db.session.query(User).filter_by(email=email).first()
    if user:
        click.echo(f"PASS Using existing {role}: {email}")
        return user
    user = create_user(name=name, email=email, role=role, password=password)
    click.echo(f"PASS Created {role}: {email}")
    return user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@barbershop.local', show_default=True)
@click.option('--admin-password', default=DEFAULT_PASSWORD, show_default=True)
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Create the schema (if missing) and a default administrator.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing barbershop system...")
    db.create_all()
    try:
        _ensure_user("Administrator", admin_email, ROLE_ADMIN, admin_password)
    except ServiceError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo("PASS System initialized")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Demo data for local development (idempotent by email/name)."""
    try:
        _ensure_user("Caixa", "cashier@barbershop.local", ROLE_CASHIER)
        barber = _ensure_user("Barbeiro", "barber@barbershop.local", ROLE_EMPLOYEE)
        client = _ensure_user("Cliente", "client@barbershop.local", ROLE_CLIENT, password=None)
    except ServiceError as e:
        click.echo(f"FAIL {e.message}")
        return

    haircut = db.session.query(Service).filter_by(name="Corte").first()
    if not haircut:
        haircut = Service(name="Corte", price=Decimal("60.00"), duration_minutes=40,
                          default_commission_percentage=Decimal("40.00"))
        beard = Service(name="Barba", price=Decimal("40.00"), duration_minutes=30,
                        default_commission_percentage=Decimal("40.00"))
        db.session.add_all([haircut, beard])
        db.session.flush()
        db.session.add(EmployeeService(
            employee_id=barber.id,
            service_id=haircut.id,
            commission_type=COMMISSION_TYPE_PERCENTAGE,
            commission_value=Decimal("50.00"),
        ))
        click.echo("PASS Created services: Corte, Barba")

    if not db.session.query(Product).filter_by(sku="POM-001").first():
        db.session.add(Product(name="Pomada Modeladora", sku="POM-001", sale_price=Decimal("45.00"),
                               commission_percentage=Decimal("10.00"), stock_quantity=10, stock_minimum=3))
        click.echo("PASS Created product: Pomada Modeladora")

    appointment = Appointment(client_id=client.id, employee_id=barber.id, service_id=haircut.id,
                              start_time=utcnow())
    db.session.add(appointment)
    db.session.commit()
    click.echo(f"PASS Created appointment ID {appointment.id}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    click.echo("BUILD  Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(VALID_ROLES), prompt=True, help='Role')
@click.option('--password', default=None, help='Password (clients may have none)')
@with_appcontext
def create_user_cli(name, email, role, password):
    """
    Create a user.

    Password must be 8+ chars with at least one letter and one digit.
    """
    try:
        user = create_user(name=name, email=email, role=role, password=password)
        click.echo(f"PASS Created user: {user.email} with role '{user.role}' (ID: {user.id})")
    except ServiceError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")


@users_group.command('list')
@click.option('--role', type=click.Choice(VALID_ROLES), default=None, help='Filter by role')
@with_appcontext
def list_users(role):
    """List users."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)
    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<32} {'Role':<10} {'Active'}")
    click.echo("="*80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<20} {user.email:<32} {user.role:<10} {active_str}")
    click.echo("="*80 + "\n")


@click.group('comandas')
def comandas_group():
    """Comanda maintenance commands."""


@comandas_group.command('recompute-totals')
@click.option('--comanda-id', type=int, default=None, help='Only this comanda')
@with_appcontext
def recompute_totals_cli(comanda_id):
    """Re-derive comanda.total from the item set."""
    query = db.session.query(Comanda.id, Comanda.total)
    if comanda_id:
        query = query.filter(Comanda.id == comanda_id)
    rows = query.order_by(Comanda.id).all()

    changed = 0
    for row_id, stored_total in rows:
        total = recompute_total(row_id)
        if Decimal(stored_total or 0) != total:
            changed += 1
            click.echo(f"FIX  Comanda {row_id}: {stored_total} -> {total}")
    click.echo(f"PASS Checked {len(rows)} comandas, repaired {changed}")


@comandas_group.command('recalculate-commission')
@click.argument('comanda_id', type=int)
@with_appcontext
def recalculate_commission_cli(comanda_id):
    """Recompute commissions of a closed comanda (acts as the first active admin)."""
    admin = (
        db.session.query(User)
        .filter_by(role=ROLE_ADMIN, is_active=True)
        .order_by(User.id)
        .first()
    )
    if not admin:
        click.echo("FAIL No active admin found. Run 'python -m flask system init' first.")
        return

    try:
        result = recalculate_commission(comanda_id, Principal.from_user(admin))
    except ServiceError as e:
        click.echo(f"FAIL {e.message}")
        return

    comanda = result.comanda
    click.echo(
        f"PASS Comanda {comanda.id}: services={comanda.total_services_commission} "
        f"products={comanda.total_products_commission} total={comanda.total_commission} "
        f"({len(result.commissions)} details)"
    )


@click.group('stock')
def stock_group():
    """Stock ledger inspection."""


@stock_group.command('reconcile')
@click.option('--product-id', type=int, default=None, help='Only this product')
@with_appcontext
def reconcile_stock_cli(product_id):
    """Report products whose stored stock differs from the movement ledger sum."""
    query = db.session.query(Product.id)
    if product_id:
        query = query.filter(Product.id == product_id)
    product_ids = [row[0] for row in query.order_by(Product.id).all()]

    drifted = 0
    for pid in product_ids:
        report = reconcile_stock(pid)
        if report["drift"]:
            drifted += 1
            click.echo(
                f"DRIFT Product {pid}: stored={report['stock_quantity']} "
                f"ledger={report['ledger_quantity']} drift={report['drift']}"
            )
    click.echo(f"PASS Checked {len(product_ids)} products, {drifted} with drift")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(comandas_group)
    app.cli.add_command(stock_group)
