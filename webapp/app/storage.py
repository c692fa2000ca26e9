from __future__ import annotations

import json
import logging
from typing import Any, Optional

from sqlalchemy import Column, DateTime, String, Text, delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


class KeyValue(Base):
    __tablename__ = "kv_store"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)

    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SessionStorage:
    """
    Локальное key-value хранилище на устройстве.

    Держим в нём только кэш auth-сессии (access/refresh токены),
    никаких доменных данных: они всегда живут в backend'е.
    """

    def __init__(self, db_url: Optional[str] = None, *, engine: Optional[AsyncEngine] = None) -> None:
        self.engine = engine or create_async_engine(
            db_url or settings.SESSION_DB_URL,
            echo=settings.DEBUG,
            future=True,
        )
        self._session_factory = sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def init(self) -> None:
        """create_all(): создаёт таблицу, если её ещё нет."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def get(self, key: str) -> Optional[str]:
        async with self._session_factory() as db:
            res = await db.execute(select(KeyValue.value).where(KeyValue.key == key))
            return res.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        async with self._session_factory() as db:
            await db.merge(KeyValue(key=key, value=value))
            await db.commit()

    async def delete(self, key: str) -> None:
        async with self._session_factory() as db:
            await db.execute(delete(KeyValue).where(KeyValue.key == key))
            await db.commit()

    async def get_json(self, key: str) -> Any:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            # битое значение считаем отсутствующим и вычищаем
            logger.warning("Corrupted value under %r in local storage, dropping it", key)
            await self.delete(key)
            return None

    async def set_json(self, key: str, value: Any) -> None:
        await self.set(key, json.dumps(value, ensure_ascii=False))
