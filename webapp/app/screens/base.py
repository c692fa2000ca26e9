from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine, Optional, TypeVar

from pydantic import ValidationError as SchemaError

from ..api_client import BackendClient
from ..errors import AppError
from ..roles import has_role, visible_tabs
from ..schemas.profile import Profile, UserRole
from ..session import SessionContext, SessionState

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Ошибки, которые экран превращает в общее уведомление для пользователя
SCREEN_ERRORS = (AppError, SchemaError)


class Screen:
    """
    Экран = локальное состояние + загрузка данных через сервисы.

    Все фоновые загрузки идут как задачи, привязанные к жизни экрана:
    close() отменяет их, и запоздавший ответ уже не трогает состояние.
    """

    name = "screen"
    title = ""
    template = ""
    # None: экран доступен всем; иначе набор ролей
    required_roles: Optional[frozenset[UserRole]] = None

    def __init__(self, session: SessionContext, client: BackendClient) -> None:
        self.session = session
        self.client = client

        self.loading = False
        self.notice: Optional[str] = None
        # короткое "успешно" после действия пользователя
        self.message: Optional[str] = None
        self.denied = False
        self.mounted = False
        self.closed = False

        self._tasks: set[asyncio.Task] = set()
        self._teardown: list[Callable[[], Awaitable[None]]] = []
        self._unsubscribe_session: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Сессия и роли
    # ------------------------------------------------------------------

    @property
    def profile(self) -> Optional[Profile]:
        return self.session.profile

    @property
    def user_id(self) -> Optional[str]:
        user = self.session.user
        return user.id if user else None

    def is_allowed(self) -> bool:
        if self.required_roles is None:
            return True
        return has_role(self.profile, self.required_roles)

    def _on_session_change(self, state: SessionState) -> None:
        if self.required_roles is None or state.loading:
            return
        denied = not self.is_allowed()
        if denied and not self.denied:
            logger.info("%s: access revoked, dropping in-flight work", self.name)
            self._cancel_tasks()
        self._update(denied=denied)

    # ------------------------------------------------------------------
    # Жизненный цикл
    # ------------------------------------------------------------------

    async def mount(self) -> None:
        """
        Первый показ экрана. Для ролевых экранов сначала дожидаемся сессии и
        проверяем роль. При отказе ни одного запроса в backend не уходит.
        """
        if self.mounted:
            return
        self.mounted = True
        self._unsubscribe_session = self.session.subscribe(self._on_session_change)

        if self.required_roles is not None:
            await self.session.wait_ready()
            if not self.is_allowed():
                logger.info(
                    "%s: access denied for role %s",
                    self.name,
                    self.profile.role.value if self.profile else None,
                )
                self._update(denied=True)
                return

        await self.on_mount()

    async def on_mount(self) -> None:
        await self.load()

    async def load(self) -> None:
        """Перезагрузка данных экрана (переопределяется)."""

    async def refresh(self) -> None:
        if not self.mounted:
            await self.mount()
            return
        if self.denied or self.closed:
            return
        await self.load()

    async def close(self) -> None:
        """Снять экран: отменить задачи, отписаться от всего, что подписали."""
        if self.closed:
            return
        self.closed = True

        if self._unsubscribe_session is not None:
            self._unsubscribe_session()
            self._unsubscribe_session = None

        pending = self._cancel_tasks()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for teardown in reversed(self._teardown):
            await teardown()
        self._teardown.clear()

    def add_teardown(self, callback: Callable[[], Awaitable[None]]) -> None:
        self._teardown.append(callback)

    # ------------------------------------------------------------------
    # Задачи
    # ------------------------------------------------------------------

    def spawn(self, coro: Coroutine[Any, Any, T]) -> "asyncio.Task[T]":
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_tasks(self) -> list[asyncio.Task]:
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        return pending

    async def run(self, coro: Coroutine[Any, Any, T]) -> Optional[T]:
        """
        Выполнить корутину как задачу экрана. Если экран закрыли или
        доступ отозвали посреди запроса, результат выбрасывается (None).
        """
        task = self.spawn(coro)
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and (self.closed or self.denied):
                return None
            raise

    def _update(self, **changes: Any) -> None:
        if self.closed:
            logger.debug("%s: skip state update on closed screen: %s", self.name, sorted(changes))
            return
        for key, value in changes.items():
            setattr(self, key, value)

    async def guarded(self, coro: Coroutine[Any, Any, T], failure: str) -> Optional[T]:
        """
        Запрос с индикатором загрузки. Любая ошибка -> одно общее уведомление
        для пользователя, без различения типов и без ретраев.
        """
        self._update(loading=True)
        try:
            return await self.run(coro)
        except SCREEN_ERRORS as e:
            logger.warning("%s: %s: %s", self.name, failure, e)
            self._update(notice=failure)
            return None
        finally:
            self._update(loading=False)

    def show_notice(self, notice: str) -> None:
        self._update(notice=notice)

    def dismiss_notice(self) -> None:
        self._update(notice=None, message=None)

    def ensure_allowed(self) -> bool:
        """Повторная проверка роли перед действием: при отказе запрос не уходит."""
        if self.is_allowed():
            return True
        self._update(denied=True)
        return False

    # ------------------------------------------------------------------
    # Отрисовка
    # ------------------------------------------------------------------

    def context(self) -> dict[str, Any]:
        return {
            "screen": self,
            "title": self.title,
            "profile": self.profile,
            "tabs": visible_tabs(self.profile),
            "active_tab": self.name,
            "loading": self.loading or self.session.loading,
            "notice": self.notice,
            "message": self.message,
            "denied": self.denied,
        }
