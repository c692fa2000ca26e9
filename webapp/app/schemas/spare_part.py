from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SparePartBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)

    brand: Optional[str] = None
    description: Optional[str] = None
    part_number: Optional[str] = None
    image_url: Optional[str] = None


class SparePartCreate(SparePartBase):
    pass


class SparePartUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)

    brand: Optional[str] = None
    description: Optional[str] = None
    part_number: Optional[str] = None
    image_url: Optional[str] = None


class SparePart(SparePartBase):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SparePartFilters(BaseModel):
    category: Optional[str] = None
    brand: Optional[str] = None
    # подстрока в name ИЛИ description, без учёта регистра
    search: Optional[str] = None

    @field_validator("category", "brand", "search", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value
