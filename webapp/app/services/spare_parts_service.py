import logging
from typing import Optional

from ..api_client import NEWEST_FIRST, AnyOf, BackendClient, Filter
from ..schemas.order import (
    Order,
    OrderCreate,
    OrderStatus,
    OrderWithPart,
    OrderWithPartAndUser,
)
from ..schemas.spare_part import (
    SparePart,
    SparePartCreate,
    SparePartFilters,
    SparePartUpdate,
)

logger = logging.getLogger(__name__)

SPARE_PARTS = "spare_parts"
ORDERS = "orders"

ORDER_WITH_PART = "*, spare_part:spare_parts(*)"
ORDER_WITH_PART_AND_USER = "*, spare_part:spare_parts(*), user:profiles(name, phone, avatar_url)"


class SparePartsService:
    # ------------------------------------------------------------------
    # Каталог запчастей
    # ------------------------------------------------------------------
    @staticmethod
    async def get_spare_parts(
        client: BackendClient,
        filters: Optional[SparePartFilters] = None,
    ) -> list[SparePart]:
        """
        Запчасти в наличии (stock > 0), новые сверху.

        category/brand: точное совпадение; search: подстрока в name ИЛИ description.
        """
        filters = filters or SparePartFilters()
        conditions: list = [Filter.gt("stock", 0)]

        if filters.category is not None:
            conditions.append(Filter.eq("category", filters.category))
        if filters.brand is not None:
            conditions.append(Filter.eq("brand", filters.brand))
        if filters.search is not None:
            conditions.append(
                AnyOf(
                    (
                        Filter.contains("name", filters.search),
                        Filter.contains("description", filters.search),
                    )
                )
            )

        rows = await client.query(SPARE_PARTS, conditions, order=NEWEST_FIRST)
        return [SparePart.model_validate(row) for row in rows]

    @staticmethod
    async def get_spare_part_by_id(client: BackendClient, part_id: str) -> SparePart:
        row = await client.query(SPARE_PARTS, [Filter.eq("id", part_id)], single=True)
        return SparePart.model_validate(row)

    @staticmethod
    async def create_spare_part(client: BackendClient, data_in: SparePartCreate) -> SparePart:
        row = await client.insert(SPARE_PARTS, data_in.model_dump(mode="json", exclude_none=True))
        return SparePart.model_validate(row)

    @staticmethod
    async def update_spare_part(
        client: BackendClient,
        part_id: str,
        data_in: SparePartUpdate,
    ) -> SparePart:
        values = data_in.model_dump(mode="json", exclude_unset=True)
        row = await client.update(SPARE_PARTS, values, [Filter.eq("id", part_id)])
        return SparePart.model_validate(row)

    @staticmethod
    async def delete_spare_part(client: BackendClient, part_id: str) -> None:
        await client.delete(SPARE_PARTS, [Filter.eq("id", part_id)])

    @staticmethod
    async def get_categories(client: BackendClient) -> list[str]:
        """Уникальные категории (порядок не гарантируется)."""
        rows = await client.query(
            SPARE_PARTS,
            [Filter.not_null("category")],
            select="category",
        )
        return list(dict.fromkeys(row["category"] for row in rows if row.get("category")))

    # ------------------------------------------------------------------
    # Заказы
    # ------------------------------------------------------------------
    @staticmethod
    async def create_order(client: BackendClient, data_in: OrderCreate) -> OrderWithPart:
        row = data_in.model_dump(mode="json", exclude_none=True)
        # total_price всегда считаем сами, статус при создании pending
        row["total_price"] = data_in.total_price
        row["status"] = OrderStatus.pending.value

        created = await client.insert(ORDERS, row, select=ORDER_WITH_PART)
        logger.info(
            "Order %s created: part=%s qty=%s total=%s",
            created.get("id"),
            data_in.spare_part_id,
            data_in.quantity,
            row["total_price"],
        )
        return OrderWithPart.model_validate(created)

    @staticmethod
    async def get_user_orders(client: BackendClient, user_id: str) -> list[OrderWithPart]:
        rows = await client.query(
            ORDERS,
            [Filter.eq("user_id", user_id)],
            select=ORDER_WITH_PART,
            order=NEWEST_FIRST,
        )
        return [OrderWithPart.model_validate(row) for row in rows]

    @staticmethod
    async def get_all_orders(client: BackendClient) -> list[OrderWithPartAndUser]:
        rows = await client.query(
            ORDERS,
            select=ORDER_WITH_PART_AND_USER,
            order=NEWEST_FIRST,
        )
        return [OrderWithPartAndUser.model_validate(row) for row in rows]

    @staticmethod
    async def update_order_status(
        client: BackendClient,
        order_id: str,
        status: OrderStatus,
    ) -> Order:
        row = await client.update(
            ORDERS,
            {"status": OrderStatus(status).value},
            [Filter.eq("id", order_id)],
        )
        return Order.model_validate(row)
