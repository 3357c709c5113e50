from salesdesk.security.context import EMPLOYEE, MANAGER, ROLES, SUPER_ADMIN, Actor
from salesdesk.security.errors import AuthorizationError, OutOfScopeError

__all__ = [
    "Actor",
    "AuthorizationError",
    "EMPLOYEE",
    "MANAGER",
    "OutOfScopeError",
    "ROLES",
    "SUPER_ADMIN",
]
