import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..schemas.order import OrderCreate, OrderWithPart
from ..schemas.spare_part import SparePart, SparePartFilters
from ..services.spare_parts_service import SparePartsService
from .base import Screen

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    part: SparePart
    quantity: int = 1

    @property
    def total(self) -> float:
        return self.part.price * self.quantity


class ShopScreen(Screen):
    name = "shop"
    title = "Shop"
    template = "shop.html"

    def __init__(self, session, client) -> None:
        super().__init__(session, client)
        self.spare_parts: list[SparePart] = []
        self.categories: list[str] = []
        self.selected_category = ""
        self.search_query = ""
        self.cart: dict[str, CartLine] = {}

    @property
    def filters(self) -> SparePartFilters:
        return SparePartFilters(category=self.selected_category, search=self.search_query)

    async def _fetch_all(self) -> tuple[list[SparePart], list[str]]:
        parts, categories = await asyncio.gather(
            SparePartsService.get_spare_parts(self.client, self.filters),
            SparePartsService.get_categories(self.client),
        )
        return parts, categories

    async def load(self) -> None:
        result = await self.guarded(self._fetch_all(), "Failed to load spare parts")
        if result is not None:
            parts, categories = result
            self._update(spare_parts=parts, categories=categories)

    async def reload_parts(self) -> None:
        parts = await self.guarded(
            SparePartsService.get_spare_parts(self.client, self.filters),
            "Failed to filter spare parts",
        )
        if parts is not None:
            self._update(spare_parts=parts)

    async def select_category(self, category: str) -> None:
        # повторный тап по выбранной категории снимает фильтр
        selected = "" if self.selected_category == category else category
        self._update(selected_category=selected)
        await self.reload_parts()

    async def set_search(self, query: Optional[str]) -> None:
        self._update(search_query=(query or "").strip())
        await self.reload_parts()

    # ------------------------------------------------------------------
    # Корзина
    # ------------------------------------------------------------------

    def add_to_cart(self, part: SparePart, quantity: int = 1) -> None:
        line = self.cart.get(part.id)
        if line is None:
            self.cart[part.id] = CartLine(part=part, quantity=quantity)
        else:
            line.quantity += quantity
        self._update(message=f"{part.name} has been added to your cart")

    def remove_from_cart(self, part_id: str) -> None:
        self.cart.pop(part_id, None)

    @property
    def cart_count(self) -> int:
        return sum(line.quantity for line in self.cart.values())

    @property
    def cart_total(self) -> float:
        return sum(line.total for line in self.cart.values())

    def find_part(self, part_id: str) -> Optional[SparePart]:
        for part in self.spare_parts:
            if part.id == part_id:
                return part
        return None

    async def checkout(self, shipping_address: Optional[str] = None) -> list[OrderWithPart]:
        """
        Один заказ на каждую строку корзины. Оформленные строки из корзины
        убираются сразу, поэтому при ошибке в корзине остаётся только хвост.
        """
        if not self.cart:
            self._update(notice="Your cart is empty")
            return []
        if self.user_id is None:
            self._update(notice="Please sign in to place an order")
            return []

        placed: list[OrderWithPart] = []
        for part_id, line in list(self.cart.items()):
            data_in = OrderCreate(
                spare_part_id=part_id,
                user_id=self.user_id,
                quantity=line.quantity,
                unit_price=line.part.price,
                shipping_address=shipping_address or None,
            )
            order = await self.guarded(
                SparePartsService.create_order(self.client, data_in),
                "Failed to place order",
            )
            if order is None:
                break
            placed.append(order)
            self.cart.pop(part_id, None)

        if placed and not self.cart:
            self._update(message=f"{len(placed)} order(s) placed")
        return placed

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        ctx.update(
            spare_parts=self.spare_parts,
            categories=self.categories,
            selected_category=self.selected_category,
            search_query=self.search_query,
            cart=list(self.cart.values()),
            cart_count=self.cart_count,
            cart_total=self.cart_total,
        )
        return ctx
