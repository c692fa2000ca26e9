from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .car import Car
from .profile import ProfileSummary


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


class Booking(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    car_id: str
    user_id: Optional[str] = None
    start_date: date
    end_date: date
    total_price: float
    status: BookingStatus = BookingStatus.pending
    special_requests: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingWithCar(Booking):
    car: Optional[Car] = None


class BookingWithCarAndUser(BookingWithCar):
    user: Optional[ProfileSummary] = None


class BookingCreate(BaseModel):
    """
    Новая бронь. Статуса здесь нет: он всегда выставляется сервисом в pending,
    лишние поля (в т.ч. status) молча отбрасываются.
    """

    model_config = ConfigDict(extra="ignore")

    car_id: str
    user_id: Optional[str] = None
    start_date: date
    end_date: date
    total_price: float = Field(..., ge=0)
    special_requests: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "BookingCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self
