from .inventory import Item
from .transactions import Transaction
from .auth import User, Role, Permission, RolePermission, SessionToken

__all__ = [
    'Item',
    'Transaction',
    'User', 'Role', 'Permission', 'RolePermission', 'SessionToken',
]
