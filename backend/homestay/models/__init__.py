"""SQLAlchemy models for the homestay back office."""

from homestay.models.enums import (
    ACTIVE_RESERVATION_STATUSES,
    DELETABLE_RESERVATION_STATUSES,
    OPEN_CLEANING_STATUSES,
    SECURED_DEPOSIT_STATUSES,
    CleaningStatus,
    DepositEventType,
    DepositStatus,
    ReservationStatus,
    Role,
)
from homestay.models.user import User
from homestay.models.location import Location, Unit
from homestay.models.guest import Guest
from homestay.models.reservation import Reservation
from homestay.models.deposit import DepositEvent, ImmutableRecordError
from homestay.models.cleaning import CleaningTask, CleaningPhoto

__all__ = [
    # Enums
    "Role",
    "ReservationStatus",
    "DepositStatus",
    "DepositEventType",
    "CleaningStatus",
    "ACTIVE_RESERVATION_STATUSES",
    "DELETABLE_RESERVATION_STATUSES",
    "OPEN_CLEANING_STATUSES",
    "SECURED_DEPOSIT_STATUSES",
    # Models
    "User",
    "Location",
    "Unit",
    "Guest",
    "Reservation",
    "DepositEvent",
    "ImmutableRecordError",
    "CleaningTask",
    "CleaningPhoto",
]
