from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Review(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: Optional[str] = None
    car_id: Optional[str] = None
    spare_part_id: Optional[str] = None
    # backend диапазон не проверяет, поэтому при чтении принимаем что есть
    rating: int
    comment: Optional[str] = None

    created_at: Optional[datetime] = None


class ReviewCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: Optional[str] = None
    car_id: Optional[str] = None
    spare_part_id: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_target(self) -> "ReviewCreate":
        if (self.car_id is None) == (self.spare_part_id is None):
            raise ValueError("exactly one of car_id / spare_part_id must be set")
        return self
