"""Role capability matrix.

Routers never compare roles directly; they ask for a capability through
``homestay.core.security.require_capability`` and this table decides.
"""

from enum import Enum

from homestay.models.enums import Role


class Capability(str, Enum):
    RESERVATIONS_READ = "reservations:read"
    RESERVATIONS_WRITE = "reservations:write"
    RESERVATIONS_DELETE = "reservations:delete"
    DEPOSITS_MANAGE = "deposits:manage"
    DEPOSITS_LEDGER = "deposits:ledger"
    DEPOSITS_OVERRIDE = "deposits:override"
    CLEANINGS_READ = "cleanings:read"
    CLEANINGS_MANAGE = "cleanings:manage"
    CLEANINGS_WORK = "cleanings:work"
    UNITS_READ = "units:read"
    UNITS_MANAGE = "units:manage"
    GUESTS_READ = "guests:read"
    GUESTS_WRITE = "guests:write"
    GUESTS_DELETE = "guests:delete"
    USERS_MANAGE = "users:manage"
    FINANCE_READ = "finance:read"
    FINANCE_APPROVE = "finance:approve"
    UPLOADS_WRITE = "uploads:write"
    CHECKIN_OVERRIDE = "checkin:override"  # Check in before the deposit is secured


C = Capability

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.FINANCE: frozenset({
        C.RESERVATIONS_READ,
        C.DEPOSITS_MANAGE,
        C.DEPOSITS_LEDGER,
        C.CLEANINGS_READ,
        C.UNITS_READ,
        C.GUESTS_READ,
        C.FINANCE_READ,
        C.FINANCE_APPROVE,
        C.UPLOADS_WRITE,
    }),
    Role.AGENT: frozenset({
        C.RESERVATIONS_READ,
        C.RESERVATIONS_WRITE,
        C.DEPOSITS_MANAGE,
        C.CLEANINGS_READ,
        C.UNITS_READ,
        C.GUESTS_READ,
        C.GUESTS_WRITE,
        C.UPLOADS_WRITE,
    }),
    Role.CLEANER: frozenset({
        C.CLEANINGS_READ,
        C.CLEANINGS_WORK,
        C.UNITS_READ,
        C.UPLOADS_WRITE,
    }),
}


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())
