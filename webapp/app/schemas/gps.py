from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TrackedCar(BaseModel):
    model_config = ConfigDict(extra="ignore")

    brand: Optional[str] = None
    model: Optional[str] = None
    license_plate: Optional[str] = None


class GPSLocation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    car_id: str
    latitude: float
    longitude: float
    speed: Optional[float] = None
    heading: Optional[float] = None
    last_updated: datetime

    car: Optional[TrackedCar] = None
