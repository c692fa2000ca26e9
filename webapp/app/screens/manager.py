import asyncio
import logging
from typing import Any, Mapping, Optional

from ..errors import ValidationError
from ..roles import MANAGER_SCREEN
from ..schemas.order import OrderStatus, OrderWithPartAndUser
from ..schemas.spare_part import SparePart, SparePartCreate, SparePartUpdate
from ..services.spare_parts_service import SparePartsService
from .base import Screen

logger = logging.getLogger(__name__)

FORM_FIELDS = (
    "name",
    "category",
    "price",
    "stock",
    "brand",
    "description",
    "part_number",
    "image_url",
)
REQUIRED_FIELDS = ("name", "category", "price")


def empty_form() -> dict[str, str]:
    return {field: "" for field in FORM_FIELDS}


def parse_part_form(form: Mapping[str, Any]) -> SparePartCreate:
    """
    Форма запчасти -> SparePartCreate. Проверяется до отправки в backend:
    name/category/price обязательны, price число, stock целое (пусто = 0).
    """
    values = {field: str(form.get(field) or "").strip() for field in FORM_FIELDS}

    missing = [field for field in REQUIRED_FIELDS if not values[field]]
    if missing:
        raise ValidationError("Please fill in required fields", fields=missing)

    try:
        price = float(values["price"])
    except ValueError:
        raise ValidationError("Price must be a number", fields=["price"]) from None
    if price < 0:
        raise ValidationError("Price must not be negative", fields=["price"])

    try:
        stock = int(values["stock"]) if values["stock"] else 0
    except ValueError:
        raise ValidationError("Stock must be a whole number", fields=["stock"]) from None
    if stock < 0:
        raise ValidationError("Stock must not be negative", fields=["stock"])

    return SparePartCreate(
        name=values["name"],
        category=values["category"],
        price=price,
        stock=stock,
        brand=values["brand"] or None,
        description=values["description"] or None,
        part_number=values["part_number"] or None,
        image_url=values["image_url"] or None,
    )


class ManagerScreen(Screen):
    """Кабинет менеджера магазина: склад запчастей и все заказы."""

    name = "manager"
    title = "Shop Manager"
    template = "manager.html"
    required_roles = MANAGER_SCREEN

    def __init__(self, session, client) -> None:
        super().__init__(session, client)
        self.spare_parts: list[SparePart] = []
        self.orders: list[OrderWithPartAndUser] = []
        self.show_form = False
        self.editing: Optional[SparePart] = None
        self.form: dict[str, str] = empty_form()
        self.form_errors: list[str] = []

    async def _fetch_all(self) -> tuple[list[SparePart], list[OrderWithPartAndUser]]:
        parts, orders = await asyncio.gather(
            SparePartsService.get_spare_parts(self.client),
            SparePartsService.get_all_orders(self.client),
        )
        return parts, orders

    async def load(self) -> None:
        if not self.ensure_allowed():
            return
        result = await self.guarded(self._fetch_all(), "Failed to load data")
        if result is not None:
            parts, orders = result
            self._update(spare_parts=parts, orders=orders)

    # ------------------------------------------------------------------
    # Статистика
    # ------------------------------------------------------------------

    @property
    def pending_orders(self) -> int:
        return sum(1 for order in self.orders if order.status == OrderStatus.pending)

    @property
    def revenue(self) -> float:
        return sum(order.total_price for order in self.orders if order.status != OrderStatus.cancelled)

    # ------------------------------------------------------------------
    # Форма
    # ------------------------------------------------------------------

    def open_new(self) -> None:
        self._update(show_form=True, editing=None, form=empty_form(), form_errors=[])

    def open_edit(self, part: SparePart) -> None:
        form = {
            "name": part.name,
            "category": part.category,
            "price": str(part.price),
            "stock": str(part.stock),
            "brand": part.brand or "",
            "description": part.description or "",
            "part_number": part.part_number or "",
            "image_url": part.image_url or "",
        }
        self._update(show_form=True, editing=part, form=form, form_errors=[])

    def close_form(self) -> None:
        self._update(show_form=False, editing=None, form=empty_form(), form_errors=[])

    def find_part(self, part_id: str) -> Optional[SparePart]:
        for part in self.spare_parts:
            if part.id == part_id:
                return part
        return None

    async def save_part(self, form: Mapping[str, Any]) -> Optional[SparePart]:
        if not self.ensure_allowed():
            return None

        try:
            data_in = parse_part_form(form)
        except ValidationError as e:
            self._update(form={**empty_form(), **{k: str(v) for k, v in form.items()}}, notice=str(e), form_errors=e.fields)
            return None

        editing = self.editing
        if editing is not None:
            coro = SparePartsService.update_spare_part(
                self.client,
                editing.id,
                SparePartUpdate(**data_in.model_dump()),
            )
        else:
            coro = SparePartsService.create_spare_part(self.client, data_in)

        saved = await self.guarded(coro, "Failed to save spare part")
        if saved is None:
            return None

        self.close_form()
        self._update(message=f"Spare part {'updated' if editing else 'created'} successfully")
        await self.load()
        return saved

    async def delete_part(self, part_id: str) -> bool:
        if not self.ensure_allowed():
            return False
        deleted = await self.guarded(self._delete(part_id), "Failed to delete spare part")
        if not deleted:
            return False
        self._update(message="Spare part deleted successfully")
        await self.load()
        return True

    async def _delete(self, part_id: str) -> bool:
        await SparePartsService.delete_spare_part(self.client, part_id)
        return True

    async def update_order_status(self, order_id: str, status: OrderStatus) -> bool:
        if not self.ensure_allowed():
            return False
        order = await self.guarded(
            SparePartsService.update_order_status(self.client, order_id, status),
            "Failed to update order",
        )
        if order is None:
            return False
        self._update(message=f"Order marked as {order.status.value}")
        await self.load()
        return True

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        ctx.update(
            spare_parts=self.spare_parts,
            orders=self.orders,
            pending_orders=self.pending_orders,
            revenue=self.revenue,
            show_form=self.show_form,
            editing=self.editing,
            form=self.form,
            form_errors=self.form_errors,
            order_statuses=list(OrderStatus),
        )
        return ctx
