import asyncio
import logging
from datetime import date
from typing import Any, Optional

from ..schemas.booking import BookingCreate, BookingWithCar
from ..schemas.car import Car, CarStatus
from ..schemas.review import Review
from ..services.cars_service import CarsService
from ..services.reviews_service import ReviewsService
from .base import Screen
from .cars import status_color

logger = logging.getLogger(__name__)


class CarDetailsScreen(Screen):
    name = "car_details"
    title = "Car details"
    template = "car_details.html"

    def __init__(self, session, client, car_id: str) -> None:
        super().__init__(session, client)
        self.car_id = car_id
        self.car: Optional[Car] = None
        self.reviews: list[Review] = []
        self.start_date: Optional[date] = None
        self.end_date: Optional[date] = None
        self.booking: Optional[BookingWithCar] = None
        # экран не смог загрузиться, роутер возвращает пользователя назад
        self.go_back = False

    async def _fetch(self) -> tuple[Car, list[Review]]:
        car, reviews = await asyncio.gather(
            CarsService.get_car_by_id(self.client, self.car_id),
            ReviewsService.get_reviews(self.client, car_id=self.car_id),
        )
        return car, reviews

    async def load(self) -> None:
        result = await self.guarded(self._fetch(), "Failed to load car details")
        if result is None:
            self._update(go_back=True)
            return
        car, reviews = result
        self._update(car=car, reviews=reviews, go_back=False)

    # ------------------------------------------------------------------
    # Даты и цена
    # ------------------------------------------------------------------

    def select_dates(self, start_date: Optional[date], end_date: Optional[date]) -> None:
        self._update(start_date=start_date, end_date=end_date, booking=None)

    @property
    def days(self) -> int:
        return CarsService.calculate_days(self.start_date, self.end_date)

    @property
    def total_price(self) -> float:
        if self.car is None:
            return 0.0
        return CarsService.quote_total(self.car, self.start_date, self.end_date)

    @property
    def rating(self) -> Optional[float]:
        return ReviewsService.average_rating(self.reviews)

    @property
    def can_book(self) -> bool:
        return self.car is not None and self.car.status == CarStatus.available

    # ------------------------------------------------------------------
    # Бронирование
    # ------------------------------------------------------------------

    async def book(self, special_requests: Optional[str] = None) -> Optional[BookingWithCar]:
        if self.start_date is None or self.end_date is None:
            self._update(notice="Please select your rental dates first")
            return None
        if self.start_date > self.end_date:
            self._update(notice="End date must not be before start date")
            return None
        if self.user_id is None:
            self._update(notice="Please sign in to book a car")
            return None
        if not self.can_book:
            self._update(notice="Not Available")
            return None

        available = await self.guarded(
            CarsService.get_car_availability(self.client, self.car_id, self.start_date, self.end_date),
            "Failed to check availability",
        )
        if available is None:
            return None
        if not available:
            self._update(notice="Car is not available for the selected dates")
            return None

        data_in = BookingCreate(
            car_id=self.car_id,
            user_id=self.user_id,
            start_date=self.start_date,
            end_date=self.end_date,
            total_price=self.total_price,
            special_requests=special_requests or None,
        )
        booking = await self.guarded(
            CarsService.create_booking(self.client, data_in),
            "Failed to create booking",
        )
        if booking is not None:
            logger.info("Booking %s created for car %s", booking.id, self.car_id)
            self._update(booking=booking, message="Booking request sent")
        return booking

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        ctx.update(
            car=self.car,
            reviews=self.reviews,
            rating=self.rating,
            start_date=self.start_date,
            end_date=self.end_date,
            days=self.days,
            total_price=self.total_price,
            can_book=self.can_book,
            booking=self.booking,
            status_color=status_color,
        )
        return ctx
