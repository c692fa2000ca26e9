import logging
import math
from datetime import date
from typing import Optional

from ..api_client import NEWEST_FIRST, BackendClient, Filter
from ..errors import ValidationError
from ..schemas.booking import (
    Booking,
    BookingCreate,
    BookingStatus,
    BookingWithCar,
    BookingWithCarAndUser,
)
from ..schemas.car import Car, CarCreate, CarFilters, CarUpdate

logger = logging.getLogger(__name__)

CARS = "cars"
BOOKINGS = "bookings"

BOOKING_WITH_CAR = "*, car:cars(*)"
BOOKING_WITH_CAR_AND_USER = "*, car:cars(*), user:profiles(name, phone, avatar_url)"


class CarsService:
    # ------------------------------------------------------------------
    # Машины
    # ------------------------------------------------------------------
    @staticmethod
    async def get_cars(client: BackendClient, filters: Optional[CarFilters] = None) -> list[Car]:
        """
        Каталог машин, новые сверху. Заданные поля фильтра объединяются через AND.
        """
        filters = filters or CarFilters()
        conditions: list[Filter] = []

        if filters.brand is not None:
            conditions.append(Filter.eq("brand", filters.brand))
        if filters.location is not None:
            conditions.append(Filter.eq("location", filters.location))
        if filters.max_price is not None:
            conditions.append(Filter.lte("price_per_day", filters.max_price))
        if filters.status is not None:
            conditions.append(Filter.eq("status", filters.status))

        rows = await client.query(CARS, conditions, order=NEWEST_FIRST)
        return [Car.model_validate(row) for row in rows]

    @staticmethod
    async def get_car_by_id(client: BackendClient, car_id: str) -> Car:
        row = await client.query(CARS, [Filter.eq("id", car_id)], single=True)
        return Car.model_validate(row)

    @staticmethod
    async def create_car(client: BackendClient, data_in: CarCreate) -> Car:
        row = await client.insert(CARS, data_in.model_dump(mode="json", exclude_none=True))
        return Car.model_validate(row)

    @staticmethod
    async def update_car(client: BackendClient, car_id: str, data_in: CarUpdate) -> Car:
        values = data_in.model_dump(mode="json", exclude_unset=True)
        row = await client.update(CARS, values, [Filter.eq("id", car_id)])
        return Car.model_validate(row)

    @staticmethod
    async def delete_car(client: BackendClient, car_id: str) -> None:
        await client.delete(CARS, [Filter.eq("id", car_id)])

    # ------------------------------------------------------------------
    # Доступность и расчёт цены
    # ------------------------------------------------------------------
    @staticmethod
    async def get_car_availability(
        client: BackendClient,
        car_id: str,
        start_date: date,
        end_date: date,
    ) -> bool:
        """
        True, если у машины нет ни одной неотменённой брони, пересекающей
        [start_date, end_date] (обе границы включительно).
        """
        if start_date > end_date:
            raise ValidationError(
                "start_date must not be after end_date",
                fields=["start_date", "end_date"],
            )

        # Пересечение отрезков: чужое начало <= наш конец И чужой конец >= наше начало
        conflicts = await client.query(
            BOOKINGS,
            [
                Filter.eq("car_id", car_id),
                Filter.not_in("status", [BookingStatus.cancelled]),
                Filter.lte("start_date", end_date),
                Filter.gte("end_date", start_date),
            ],
            select="id",
        )
        if conflicts:
            logger.info(
                "Car %s is busy for %s..%s (%d conflicting bookings)",
                car_id,
                start_date,
                end_date,
                len(conflicts),
            )
        return len(conflicts) == 0

    @staticmethod
    def calculate_days(start_date: Optional[date], end_date: Optional[date]) -> int:
        """Количество суток аренды; пока дата не выбрана, 0."""
        if start_date is None or end_date is None:
            return 0
        seconds = abs((end_date - start_date).total_seconds())
        return math.ceil(seconds / 86400)

    @staticmethod
    def quote_total(car: Car, start_date: Optional[date], end_date: Optional[date]) -> float:
        return CarsService.calculate_days(start_date, end_date) * car.price_per_day

    # ------------------------------------------------------------------
    # Брони
    # ------------------------------------------------------------------
    @staticmethod
    async def create_booking(client: BackendClient, data_in: BookingCreate) -> BookingWithCar:
        row = data_in.model_dump(mode="json", exclude_none=True)
        # статус при создании всегда pending, что бы ни прислал вызывающий
        row["status"] = BookingStatus.pending.value

        created = await client.insert(BOOKINGS, row, select=BOOKING_WITH_CAR)
        return BookingWithCar.model_validate(created)

    @staticmethod
    async def get_user_bookings(client: BackendClient, user_id: str) -> list[BookingWithCar]:
        rows = await client.query(
            BOOKINGS,
            [Filter.eq("user_id", user_id)],
            select=BOOKING_WITH_CAR,
            order=NEWEST_FIRST,
        )
        return [BookingWithCar.model_validate(row) for row in rows]

    @staticmethod
    async def get_all_bookings(client: BackendClient) -> list[BookingWithCarAndUser]:
        rows = await client.query(
            BOOKINGS,
            select=BOOKING_WITH_CAR_AND_USER,
            order=NEWEST_FIRST,
        )
        return [BookingWithCarAndUser.model_validate(row) for row in rows]

    @staticmethod
    async def update_booking_status(
        client: BackendClient,
        booking_id: str,
        status: BookingStatus,
    ) -> Booking:
        row = await client.update(
            BOOKINGS,
            {"status": BookingStatus(status).value},
            [Filter.eq("id", booking_id)],
        )
        return Booking.model_validate(row)
