import logging
from typing import Optional

from ..api_client import BackendClient, Filter, Order
from ..schemas.booking import BookingStatus
from ..schemas.gps import GPSLocation
from ..schemas.profile import Profile, UserRole

logger = logging.getLogger(__name__)

GPS_TRACKING = "gps_tracking"
GPS_WITH_CAR = "*, car:cars(brand, model, license_plate)"


class TrackingService:
    @staticmethod
    async def get_active_rental_car_ids(client: BackendClient, user_id: str) -> list[str]:
        rows = await client.query(
            "bookings",
            [
                Filter.eq("user_id", user_id),
                Filter.eq("status", BookingStatus.active),
            ],
            select="car_id",
        )
        return list(dict.fromkeys(row["car_id"] for row in rows))

    @staticmethod
    async def get_locations(client: BackendClient, profile: Optional[Profile]) -> list[GPSLocation]:
        """
        Последние координаты машин.

        - admin видит весь парк
        - остальные видят только машины из своих active-броней (нет броней -> пусто,
          запрос в gps_tracking даже не отправляем)
        """
        if profile is None:
            return []

        conditions: list[Filter] = []
        if profile.role != UserRole.admin:
            car_ids = await TrackingService.get_active_rental_car_ids(client, profile.id)
            if not car_ids:
                logger.debug("No active rentals for %s, nothing to track", profile.id)
                return []
            conditions.append(Filter.in_("car_id", car_ids))

        rows = await client.query(
            GPS_TRACKING,
            conditions,
            select=GPS_WITH_CAR,
            order=Order("last_updated", desc=True),
        )
        return [GPSLocation.model_validate(row) for row in rows]
