"""Enumeration types for the homestay domain model."""

from enum import Enum


class Role(str, Enum):
    """Staff role; governs capabilities (see homestay.core.permissions)."""
    ADMIN = "ADMIN"
    FINANCE = "FINANCE"
    CLEANER = "CLEANER"
    AGENT = "AGENT"


class ReservationStatus(str, Enum):
    """Status of a reservation."""
    DRAFT = "DRAFT"              # Tentative, never blocks inventory
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELED = "CANCELED"


# Statuses that occupy a unit's calendar
ACTIVE_RESERVATION_STATUSES = (ReservationStatus.CONFIRMED, ReservationStatus.CHECKED_IN)

# Statuses whose rows may be hard-deleted
DELETABLE_RESERVATION_STATUSES = (ReservationStatus.DRAFT, ReservationStatus.CANCELED)


class DepositStatus(str, Enum):
    """Status of a reservation's security deposit."""
    NOT_REQUIRED = "NOT_REQUIRED"
    PENDING = "PENDING"
    HELD = "HELD"                # Secured without charge; administrative only
    PAID = "PAID"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    REFUNDED = "REFUNDED"
    FORFEITED = "FORFEITED"
    FAILED = "FAILED"


# Deposit statuses that satisfy the check-in gate
SECURED_DEPOSIT_STATUSES = (DepositStatus.HELD, DepositStatus.PAID)


class DepositEventType(str, Enum):
    """Type of deposit ledger entry."""
    REQUEST = "request"
    COLLECT = "collect"
    HOLD = "hold"
    REFUND = "refund"
    FORFEIT = "forfeit"
    FAIL = "fail"


class CleaningStatus(str, Enum):
    """Status of a cleaning task."""
    PENDING = "PENDING"          # Created on checkout, unassigned
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    FAILED = "FAILED"            # Administrative override


OPEN_CLEANING_STATUSES = (CleaningStatus.PENDING, CleaningStatus.ASSIGNED, CleaningStatus.IN_PROGRESS)
