"""API routers for the homestay back office."""

from homestay.routers.auth import router as auth_router
from homestay.routers.users import router as users_router
from homestay.routers.locations import router as locations_router
from homestay.routers.units import router as units_router
from homestay.routers.guests import router as guests_router
from homestay.routers.reservations import router as reservations_router
from homestay.routers.deposits import router as deposits_router
from homestay.routers.cleanings import router as cleanings_router
from homestay.routers.finance import router as finance_router
from homestay.routers.uploads import router as uploads_router
from homestay.routers.health import router as health_router

__all__ = [
    "auth_router",
    "users_router",
    "locations_router",
    "units_router",
    "guests_router",
    "reservations_router",
    "deposits_router",
    "cleanings_router",
    "finance_router",
    "uploads_router",
    "health_router",
]
