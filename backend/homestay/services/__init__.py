"""Business services for the homestay back office."""

from homestay.services.storage import StorageService, get_storage_service
from homestay.services.users import UserService
from homestay.services.reservations import ReservationService
from homestay.services.deposits import DepositService
from homestay.services.cleanings import CleaningService
from homestay.services.finance import FinanceService

__all__ = [
    "StorageService",
    "get_storage_service",
    "UserService",
    "ReservationService",
    "DepositService",
    "CleaningService",
    "FinanceService",
]
