from .auth import User, SessionToken
from .catalog import Service, Product, EmployeeService
from .scheduling import Appointment
from .comandas import Comanda, ComandaItem, CommissionDetail
from .inventory import StockMovement
from .audit import AuditLog

__all__ = [
    'User', 'SessionToken',
    'Service', 'Product', 'EmployeeService',
    'Appointment',
    'Comanda', 'ComandaItem', 'CommissionDetail',
    'StockMovement',
    'AuditLog',
]
