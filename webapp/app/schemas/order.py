from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .profile import ProfileSummary
from .spare_part import SparePart


class OrderStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class Order(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: Optional[str] = None
    spare_part_id: str
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    total_price: float
    status: OrderStatus = OrderStatus.pending
    shipping_address: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderWithPart(Order):
    spare_part: Optional[SparePart] = None


class OrderWithPartAndUser(OrderWithPart):
    user: Optional[ProfileSummary] = None


class OrderCreate(BaseModel):
    """total_price и status сюда не входят: их всегда считает сервис."""

    model_config = ConfigDict(extra="ignore")

    spare_part_id: str
    user_id: Optional[str] = None
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    shipping_address: Optional[str] = None

    @property
    def total_price(self) -> float:
        return self.quantity * self.unit_price
