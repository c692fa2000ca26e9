import asyncio
import logging
from typing import Any, Literal, NamedTuple

from ..roles import ADMIN_SCREEN
from ..schemas.booking import BookingStatus, BookingWithCarAndUser
from ..schemas.car import Car, CarStatus
from ..services.cars_service import CarsService
from .base import Screen

logger = logging.getLogger(__name__)

BookingAction = Literal["confirm", "cancel"]

ACTION_STATUS = {
    "confirm": BookingStatus.confirmed,
    "cancel": BookingStatus.cancelled,
}
ACTION_PAST = {
    "confirm": "confirmed",
    "cancel": "cancelled",
}

BOOKING_STATUS_COLORS = {
    BookingStatus.confirmed: "#10B981",
    BookingStatus.pending: "#F59E0B",
    BookingStatus.active: "#3B82F6",
    BookingStatus.completed: "#6B7280",
    BookingStatus.cancelled: "#EF4444",
}

RECENT_BOOKINGS_LIMIT = 10


class AdminStats(NamedTuple):
    total_cars: int
    available_cars: int
    active_bookings: int
    total_revenue: float


def booking_status_color(status: BookingStatus) -> str:
    return BOOKING_STATUS_COLORS.get(status, "#6B7280")


class AdminScreen(Screen):
    name = "admin"
    title = "Admin Dashboard"
    template = "admin.html"
    required_roles = ADMIN_SCREEN

    def __init__(self, session, client) -> None:
        super().__init__(session, client)
        self.cars: list[Car] = []
        self.bookings: list[BookingWithCarAndUser] = []

    async def _fetch_all(self) -> tuple[list[Car], list[BookingWithCarAndUser]]:
        # оба запроса уходят разом; упал любой, считаем, что упала вся загрузка
        cars, bookings = await asyncio.gather(
            CarsService.get_cars(self.client),
            CarsService.get_all_bookings(self.client),
        )
        return cars, bookings

    async def load(self) -> None:
        if not self.ensure_allowed():
            return
        result = await self.guarded(self._fetch_all(), "Failed to load admin data")
        if result is not None:
            cars, bookings = result
            self._update(cars=cars, bookings=bookings)

    @property
    def stats(self) -> AdminStats:
        return AdminStats(
            total_cars=len(self.cars),
            available_cars=sum(1 for car in self.cars if car.status == CarStatus.available),
            active_bookings=sum(1 for b in self.bookings if b.status == BookingStatus.active),
            total_revenue=sum(b.total_price for b in self.bookings if b.status == BookingStatus.completed),
        )

    @property
    def recent_bookings(self) -> list[BookingWithCarAndUser]:
        return self.bookings[:RECENT_BOOKINGS_LIMIT]

    async def handle_booking_action(self, booking_id: str, action: BookingAction) -> bool:
        if action not in ACTION_STATUS:
            raise ValueError(f"Unknown booking action: {action!r}")
        if not self.ensure_allowed():
            return False

        updated = await self.guarded(
            CarsService.update_booking_status(self.client, booking_id, ACTION_STATUS[action]),
            f"Failed to {action} booking",
        )
        if updated is None:
            return False

        self._update(message=f"Booking {ACTION_PAST[action]} successfully")
        await self.load()
        return True

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        ctx.update(
            stats=self.stats,
            bookings=self.recent_bookings,
            booking_status_color=booking_status_color,
            pending=BookingStatus.pending,
        )
        return ctx
