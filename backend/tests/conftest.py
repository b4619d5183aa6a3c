"""
Pytest fixtures for barbershop backend tests.

Provides an in-memory database, role users, catalog rows, an appointment with
an open comanda, and Authorization headers for API tests.
"""

from decimal import Decimal

import pytest

from barbershop import create_app
from barbershop.extensions import db
from barbershop.models import Appointment, EmployeeService, Product, Service
from barbershop.models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLE_CLIENT, ROLE_EMPLOYEE
from barbershop.services import comanda_service, session_service
from barbershop.services.access_service import Principal
from barbershop.services.auth_service import create_user
from barbershop.services.commission_calculator import EXTENSION_KEY

TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'COMMISSION_SETTLE_DELAY_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh data for each test (schema is kept)."""
    default_calculator = app.extensions[EXTENSION_KEY]

    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    db.session.remove()
    app.extensions[EXTENSION_KEY] = default_calculator


def _user(name, email, role, password=TEST_PASSWORD):
    return create_user(name=name, email=email, role=role, password=password, bcrypt_rounds=4)


@pytest.fixture
def admin(db_session):
    return _user("Admin", "admin@test.local", ROLE_ADMIN)


@pytest.fixture
def cashier(db_session):
    return _user("Cashier", "cashier@test.local", ROLE_CASHIER)


@pytest.fixture
def employee(db_session):
    return _user("Barber", "barber@test.local", ROLE_EMPLOYEE)


@pytest.fixture
def other_employee(db_session):
    return _user("Other Barber", "other@test.local", ROLE_EMPLOYEE)


@pytest.fixture
def client_user(db_session):
    return _user("Client", "client@test.local", ROLE_CLIENT)


@pytest.fixture
def as_admin(admin):
    return Principal.from_user(admin)


@pytest.fixture
def as_cashier(cashier):
    return Principal.from_user(cashier)


@pytest.fixture
def as_employee(employee):
    return Principal.from_user(employee)


@pytest.fixture
def as_other_employee(other_employee):
    return Principal.from_user(other_employee)


@pytest.fixture
def as_client(client_user):
    return Principal.from_user(client_user)


@pytest.fixture
def haircut(db_session):
    service = Service(name="Corte", price=Decimal("60.00"), default_commission_percentage=Decimal("40.00"))
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture
def beard(db_session):
    service = Service(name="Barba", price=Decimal("40.00"), default_commission_percentage=Decimal("40.00"))
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture
def pomade(db_session):
    """Product with stock 3 and minimum 2."""
    product = Product(
        name="Pomada",
        sku="POM-001",
        sale_price=Decimal("45.00"),
        commission_percentage=Decimal("10.00"),
        stock_quantity=3,
        stock_minimum=2,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture
def custom_rate(db_session, employee, haircut):
    """Barber earns 50% on haircuts instead of the 40% default."""
    rate = EmployeeService(
        employee_id=employee.id,
        service_id=haircut.id,
        commission_type="percentage",
        commission_value=Decimal("50.00"),
    )
    db_session.add(rate)
    db_session.commit()
    return rate


@pytest.fixture
def appointment(db_session, client_user, employee, haircut):
    appt = Appointment(client_id=client_user.id, employee_id=employee.id, service_id=haircut.id)
    db_session.add(appt)
    db_session.commit()
    return appt


@pytest.fixture
def comanda(appointment, as_cashier):
    """Open comanda with no items."""
    return comanda_service.open_comanda(appointment.id, as_cashier, services=[])


def auth_headers(user) -> dict:
    """Create a session for the user and return Authorization headers."""
    _, token = session_service.create_session(user)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def cashier_headers(cashier):
    return auth_headers(cashier)


@pytest.fixture
def employee_headers(employee):
    return auth_headers(employee)


@pytest.fixture
def other_employee_headers(other_employee):
    return auth_headers(other_employee)


@pytest.fixture
def client_headers(client_user):
    return auth_headers(client_user)
