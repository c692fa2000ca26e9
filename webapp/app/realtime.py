from __future__ import annotations

import asyncio
import inspect
import itertools
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union
from urllib.parse import urlencode

import aiohttp

from .config import settings
from .errors import NetworkError

logger = logging.getLogger(__name__)

PROTOCOL_VSN = "1.0.0"


@dataclass(frozen=True)
class ChangeEvent:
    """
    Уведомление "в таблице что-то поменялось". Дельту не несёт:
    потребитель сам перечитывает данные.

    sequence монотонно растёт в пределах одной подписки, по нему потребитель
    отбрасывает дубли и устаревшие события.
    """

    channel: str
    table: str
    sequence: int
    event_type: str
    commit_timestamp: Optional[str] = None


ChangeCallback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]
CloseCallback = Callable[[], None]


class Subscription:
    """
    Handle подписки на канал. unsubscribe() обязателен при закрытии экрана,
    иначе callback продолжит дёргаться для уже снятого view.

    Если сервер сам закрыл сокет, подписка становится неактивной и зовёт on_close.
    """

    def __init__(
        self,
        channel: str,
        table: str,
        on_change: ChangeCallback,
        *,
        schema: str = "public",
        on_close: Optional[CloseCallback] = None,
    ) -> None:
        self.channel = channel
        self.table = table
        self.schema = schema
        self.topic = f"realtime:{channel}"
        self._on_change = on_change
        self._on_close = on_close
        self._sequence = 0
        self._closed = False

        self._refs = itertools.count(1)
        self._join_ref: Optional[str] = None
        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._tasks: list[asyncio.Task] = []

    @property
    def active(self) -> bool:
        return not self._closed

    @property
    def last_sequence(self) -> int:
        return self._sequence

    def next_ref(self) -> str:
        return str(next(self._refs))

    def join_message(self, access_token: Optional[str] = None) -> dict[str, Any]:
        self._join_ref = self.next_ref()
        payload: dict[str, Any] = {
            "config": {
                "broadcast": {"self": False},
                "presence": {"key": ""},
                "postgres_changes": [
                    {"event": "*", "schema": self.schema, "table": self.table},
                ],
            },
        }
        if access_token:
            payload["access_token"] = access_token
        return {
            "topic": self.topic,
            "event": "phx_join",
            "payload": payload,
            "ref": self._join_ref,
            "join_ref": self._join_ref,
        }

    def leave_message(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "event": "phx_leave",
            "payload": {},
            "ref": self.next_ref(),
            "join_ref": self._join_ref,
        }

    def heartbeat_message(self) -> dict[str, Any]:
        return {"topic": "phoenix", "event": "heartbeat", "payload": {}, "ref": self.next_ref()}

    async def handle_message(self, message: dict[str, Any]) -> Optional[ChangeEvent]:
        """
        Разбор одного входящего сообщения канала.
        Возвращает доставленное событие или None (служебное/чужое/после отписки).
        """
        if self._closed:
            return None

        topic = message.get("topic")
        event = message.get("event")
        payload = message.get("payload") or {}

        if topic != self.topic:
            return None

        if event == "phx_reply":
            if payload.get("status") != "ok":
                logger.warning("Realtime %s: reply with error: %s", self.channel, payload.get("response"))
            return None

        if event in ("phx_error", "phx_close", "system"):
            logger.info("Realtime %s: %s %s", self.channel, event, payload)
            return None

        if event != "postgres_changes":
            return None

        data = payload.get("data") or {}
        table = data.get("table") or self.table
        if table != self.table:
            return None

        self._sequence += 1
        change = ChangeEvent(
            channel=self.channel,
            table=table,
            sequence=self._sequence,
            event_type=str(data.get("type") or data.get("eventType") or "*"),
            commit_timestamp=data.get("commit_timestamp"),
        )

        result = self._on_change(change)
        if inspect.isawaitable(result):
            await result
        return change

    # ------------------------------------------------------------------
    # Сокет
    # ------------------------------------------------------------------

    def attach(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse, heartbeat_sec: float) -> None:
        self._session = session
        self._ws = ws
        self._tasks = [
            asyncio.create_task(self._read_loop(), name=f"realtime-read:{self.channel}"),
            asyncio.create_task(self._heartbeat_loop(heartbeat_sec), name=f"realtime-heartbeat:{self.channel}"),
        ]

    async def _read_loop(self) -> None:
        assert self._ws is not None
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    data = json.loads(msg.data)
                except ValueError:
                    logger.warning("Realtime %s: non-JSON frame dropped", self.channel)
                    continue
                try:
                    await self.handle_message(data)
                except Exception:
                    # упавший callback не должен ронять чтение канала
                    logger.exception("Realtime %s: change callback failed", self.channel)
            elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                break
        await self._connection_lost()

    async def _connection_lost(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.warning("Realtime %s: socket closed by server", self.channel)
        await self._release()
        if self._on_close is not None:
            self._on_close()

    async def _heartbeat_loop(self, interval: float) -> None:
        assert self._ws is not None
        while True:
            await asyncio.sleep(interval)
            try:
                await self._ws.send_json(self.heartbeat_message())
            except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as e:
                logger.warning("Realtime %s: heartbeat failed: %r", self.channel, e)
                return

    async def unsubscribe(self) -> None:
        """Идемпотентно: повторный вызов ничего не делает."""
        if self._closed:
            return
        self._closed = True

        if self._ws is not None and not self._ws.closed:
            try:
                await self._ws.send_json(self.leave_message())
            except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as e:
                logger.debug("Realtime %s: leave not sent: %r", self.channel, e)

        await self._release()
        logger.info("Realtime %s: unsubscribed", self.channel)

    async def _release(self) -> None:
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        self._tasks = []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._ws is not None:
            await self._ws.close()
        if self._session is not None:
            await self._session.close()


class RealtimeClient:
    """Подписки на realtime change feed (Phoenix channels поверх websocket)."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        heartbeat_sec: Optional[float] = None,
    ) -> None:
        self._base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self._api_key = api_key or settings.SUPABASE_ANON_KEY
        self._heartbeat_sec = heartbeat_sec or settings.REALTIME_HEARTBEAT_SEC

    @property
    def socket_url(self) -> str:
        url = self._base_url
        if url.startswith("https://"):
            url = "wss://" + url[len("https://"):]
        elif url.startswith("http://"):
            url = "ws://" + url[len("http://"):]
        query = urlencode({"apikey": self._api_key, "vsn": PROTOCOL_VSN})
        return f"{url}/realtime/v1/websocket?{query}"

    async def subscribe(
        self,
        channel: str,
        table: str,
        on_change: ChangeCallback,
        *,
        schema: str = "public",
        access_token: Optional[str] = None,
        on_close: Optional[CloseCallback] = None,
    ) -> Subscription:
        subscription = Subscription(channel, table, on_change, schema=schema, on_close=on_close)

        session = aiohttp.ClientSession()
        try:
            ws = await session.ws_connect(self.socket_url)
            await ws.send_json(subscription.join_message(access_token))
        except (aiohttp.ClientError, OSError) as e:
            await session.close()
            logger.warning("Realtime %s: connect failed: %r", channel, e)
            raise NetworkError(f"realtime connect failed: {e}") from e

        subscription.attach(session, ws, self._heartbeat_sec)
        logger.info("Realtime %s: subscribed to %s.%s", channel, schema, table)
        return subscription
