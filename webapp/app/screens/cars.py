from typing import Any, Optional

from ..schemas.car import Car, CarFilters, CarStatus
from ..services.cars_service import CarsService
from .base import Screen

STATUS_COLORS = {
    CarStatus.available: "#10B981",
    CarStatus.booked: "#F59E0B",
    CarStatus.maintenance: "#EF4444",
}
DEFAULT_STATUS_COLOR = "#6B7280"


def status_color(status: Optional[CarStatus]) -> str:
    return STATUS_COLORS.get(status, DEFAULT_STATUS_COLOR)


class CarsScreen(Screen):
    """Каталог машин: серверные фильтры + локальный поиск по уже загруженному списку."""

    name = "cars"
    title = "Cars"
    template = "cars.html"

    def __init__(self, session, client) -> None:
        super().__init__(session, client)
        self.cars: list[Car] = []
        self.filters = CarFilters()
        self.search_query = ""
        self.show_filters = False
        self.refreshing = False

    async def load(self) -> None:
        cars = await self.guarded(
            CarsService.get_cars(self.client, self.filters),
            "Failed to load cars",
        )
        if cars is not None:
            self._update(cars=cars)

    async def refresh(self) -> None:
        self._update(refreshing=True)
        try:
            await super().refresh()
        finally:
            self._update(refreshing=False)

    async def apply_filters(self, filters: CarFilters) -> None:
        self._update(filters=filters)
        await self.refresh()

    def set_search(self, query: Optional[str]) -> None:
        self._update(search_query=(query or "").strip())

    def toggle_filters(self) -> None:
        self._update(show_filters=not self.show_filters)

    @property
    def filtered_cars(self) -> list[Car]:
        query = self.search_query.lower()
        if not query:
            return list(self.cars)
        return [
            car
            for car in self.cars
            if query in car.brand.lower()
            or query in car.model.lower()
            or query in car.location.lower()
        ]

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        ctx.update(
            cars=self.filtered_cars,
            filters=self.filters,
            search_query=self.search_query,
            show_filters=self.show_filters,
            statuses=list(CarStatus),
            status_color=status_color,
        )
        return ctx
