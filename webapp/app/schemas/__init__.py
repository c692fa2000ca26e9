from .auth import AuthSession, AuthUser
from .booking import (
    Booking,
    BookingCreate,
    BookingStatus,
    BookingWithCar,
    BookingWithCarAndUser,
)
from .car import Car, CarCreate, CarFilters, CarStatus, CarUpdate
from .gps import GPSLocation, TrackedCar
from .order import Order, OrderCreate, OrderStatus, OrderWithPart, OrderWithPartAndUser
from .profile import Profile, ProfileSummary, UserRole
from .review import Review, ReviewCreate
from .spare_part import (
    SparePart,
    SparePartCreate,
    SparePartFilters,
    SparePartUpdate,
)

__all__ = [
    "AuthSession",
    "AuthUser",
    "Booking",
    "BookingCreate",
    "BookingStatus",
    "BookingWithCar",
    "BookingWithCarAndUser",
    "Car",
    "CarCreate",
    "CarFilters",
    "CarStatus",
    "CarUpdate",
    "GPSLocation",
    "TrackedCar",
    "Order",
    "OrderCreate",
    "OrderStatus",
    "OrderWithPart",
    "OrderWithPartAndUser",
    "Profile",
    "ProfileSummary",
    "UserRole",
    "Review",
    "ReviewCreate",
    "SparePart",
    "SparePartCreate",
    "SparePartFilters",
    "SparePartUpdate",
]
