from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CarStatus(str, Enum):
    available = "available"
    booked = "booked"
    maintenance = "maintenance"
    out_of_service = "out_of_service"


class CarBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    brand: str = Field(..., max_length=64)
    model: str = Field(..., max_length=64)
    year: int = Field(..., ge=1900, le=2100)
    price_per_day: float = Field(..., ge=0)
    location: str
    status: CarStatus = CarStatus.available
    features: list[str] = Field(default_factory=list)

    image_url: Optional[str] = None
    description: Optional[str] = None
    license_plate: Optional[str] = Field(None, max_length=32)

    # Характеристики для карточки машины
    seats: Optional[int] = Field(None, ge=1)
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None

    @field_validator("features", mode="before")
    @classmethod
    def _features_none_to_list(cls, value):
        return value or []


class CarCreate(CarBase):
    pass


class CarUpdate(BaseModel):
    brand: Optional[str] = Field(None, max_length=64)
    model: Optional[str] = Field(None, max_length=64)
    year: Optional[int] = Field(None, ge=1900, le=2100)
    price_per_day: Optional[float] = Field(None, ge=0)
    location: Optional[str] = None
    status: Optional[CarStatus] = None
    features: Optional[list[str]] = None

    image_url: Optional[str] = None
    description: Optional[str] = None
    license_plate: Optional[str] = Field(None, max_length=32)
    seats: Optional[int] = Field(None, ge=1)
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None


class Car(CarBase):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CarFilters(BaseModel):
    """
    Параметры выборки машин. Все поля необязательные, пустые строки = "не задано".
    """

    brand: Optional[str] = None
    location: Optional[str] = None
    max_price: Optional[float] = Field(None, ge=0)
    status: Optional[CarStatus] = None

    @field_validator("brand", "location", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value
