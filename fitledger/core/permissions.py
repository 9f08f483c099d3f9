import enum

from fitledger.core.exceptions import PermissionDeniedError
from fitledger.models.enums import Role


class Capability(str, enum.Enum):
    RECORD_PAYMENT = "record payments"
    DELETE_PAYMENT = "delete payments"
    LOG_SESSION = "log sessions"
    VALIDATE_SESSION = "validate or cancel sessions"
    MANAGE_COMMISSION_PROFILES = "manage commission profiles"
    VIEW_ALL_COMMISSIONS = "view commission for all trainers"
    RUN_MIGRATION = "run the commission migration"


_MANAGERS = frozenset({Role.ADMIN, Role.PT_MANAGER, Role.CLUB_MANAGER})

ROLE_CAPABILITIES = {
    Capability.RECORD_PAYMENT: _MANAGERS,
    Capability.DELETE_PAYMENT: frozenset({Role.ADMIN}),
    Capability.LOG_SESSION: frozenset(Role),
    Capability.VALIDATE_SESSION: _MANAGERS,
    Capability.MANAGE_COMMISSION_PROFILES: frozenset({Role.ADMIN, Role.PT_MANAGER}),
    Capability.VIEW_ALL_COMMISSIONS: _MANAGERS,
    Capability.RUN_MIGRATION: frozenset({Role.ADMIN}),
}


def has_capability(role: Role, capability: Capability) -> bool:
    return role in ROLE_CAPABILITIES[capability]


def require_capability(user, capability: Capability) -> None:
    """Raise PermissionDeniedError unless the user's role grants the capability."""
    if not has_capability(user.role, capability):
        raise PermissionDeniedError(user.role, capability)
