from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Optional, Sequence, Union

import httpx

from .config import settings
from .errors import AuthError, BackendError, NetworkError, NotFoundError

logger = logging.getLogger(__name__)

# PostgREST отвечает 406 + PGRST116, когда .single() не нашёл строку
_NO_ROWS_CODE = "PGRST116"
_OBJECT_ACCEPT = "application/vnd.pgrst.object+json"

# Символы, которые в логических группах (or=(...)) и in.(...) надо экранировать кавычками
_RESERVED = set(',()."\\: ')


def _format_value(value: Any, *, quote: bool = False) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        text = str(value.value)
    elif isinstance(value, (date, datetime)):
        text = value.isoformat()
    else:
        text = str(value)

    if quote and any(ch in _RESERVED for ch in text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


@dataclass(frozen=True)
class Filter:
    """
    Один предикат над колонкой.

    Собирается только через конструкторы ниже, чтобы сервисы не клеили
    строки вида "price_per_day=lte.100" руками.
    """

    column: str
    op: str
    value: Any = None

    @classmethod
    def eq(cls, column: str, value: Any) -> "Filter":
        return cls(column, "eq", value)

    @classmethod
    def lte(cls, column: str, value: Any) -> "Filter":
        return cls(column, "lte", value)

    @classmethod
    def gte(cls, column: str, value: Any) -> "Filter":
        return cls(column, "gte", value)

    @classmethod
    def gt(cls, column: str, value: Any) -> "Filter":
        return cls(column, "gt", value)

    @classmethod
    def in_(cls, column: str, values: Iterable[Any]) -> "Filter":
        return cls(column, "in", tuple(values))

    @classmethod
    def not_in(cls, column: str, values: Iterable[Any]) -> "Filter":
        return cls(column, "not.in", tuple(values))

    @classmethod
    def not_null(cls, column: str) -> "Filter":
        return cls(column, "not.is", None)

    @classmethod
    def contains(cls, column: str, text: str) -> "Filter":
        """Регистронезависимая подстрока (ilike *text*)."""
        return cls(column, "ilike", f"*{text}*")

    def _operand(self, *, quote: bool) -> str:
        if self.op in ("in", "not.in"):
            items = ",".join(_format_value(v, quote=True) for v in self.value)
            return f"({items})"
        return _format_value(self.value, quote=quote)

    def to_param(self) -> tuple[str, str]:
        return self.column, f"{self.op}.{self._operand(quote=False)}"

    def to_clause(self) -> str:
        return f"{self.column}.{self.op}.{self._operand(quote=True)}"


@dataclass(frozen=True)
class AnyOf:
    """OR-группа предикатов (остальные фильтры запроса объединяются через AND)."""

    filters: tuple[Filter, ...]

    def to_param(self) -> tuple[str, str]:
        clauses = ",".join(f.to_clause() for f in self.filters)
        return "or", f"({clauses})"


@dataclass(frozen=True)
class Order:
    column: str
    desc: bool = True

    def to_param(self) -> tuple[str, str]:
        return "order", f"{self.column}.{'desc' if self.desc else 'asc'}"


NEWEST_FIRST = Order("created_at", desc=True)

Condition = Union[Filter, AnyOf]


class BackendClient:
    """
    Единственное на процесс подключение к backend'у (Supabase: PostgREST + GoTrue).

    - query/insert/update/delete: сквозные CRUD-вызовы по таблицам
    - auth_request: сквозные вызовы в /auth/v1
    Ретраев и своей политики таймаутов нет: ошибки уходят наверх как есть.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self._api_key = api_key or settings.SUPABASE_ANON_KEY
        self._access_token: Optional[str] = None

        client_kwargs: dict[str, Any] = {
            "base_url": self._base_url,
            "headers": {"apikey": self._api_key},
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._http = httpx.AsyncClient(**client_kwargs)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def api_key(self) -> str:
        return self._api_key

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def set_access_token(self, token: Optional[str]) -> None:
        """Запросы после логина идут от имени пользователя, после логаута от anon."""
        self._access_token = token

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Низкоуровневое
    # ------------------------------------------------------------------

    def _auth_headers(self, token: Optional[str] = None) -> dict[str, str]:
        bearer = token or self._access_token or self._api_key
        return {"Authorization": f"Bearer {bearer}"}

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Sequence[tuple[str, str]]] = None,
        json: Any = None,
        headers: Optional[dict[str, str]] = None,
        token: Optional[str] = None,
    ) -> httpx.Response:
        merged = self._auth_headers(token)
        if headers:
            merged.update(headers)

        try:
            return await self._http.request(
                method,
                path,
                params=list(params) if params else None,
                json=json,
                headers=merged,
            )
        except httpx.TransportError as e:
            logger.warning("Backend transport failure on %s %s: %r", method, path, e)
            raise NetworkError(f"{method} {path}: {e}") from e

    @staticmethod
    def _error_from_response(resp: httpx.Response, *, auth: bool = False) -> BackendError:
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        # PostgREST: code/message/details; GoTrue: error/error_description или msg
        code = body.get("code") or body.get("error_code") or body.get("error")
        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or resp.text
            or resp.reason_phrase
        )
        code = str(code) if code is not None else None
        details = body.get("details") or body.get("hint")

        if code == _NO_ROWS_CODE or (resp.status_code == 406 and not auth):
            return NotFoundError(message, status_code=resp.status_code, code=code, details=details)
        if auth and resp.status_code in (400, 401, 403, 422):
            return AuthError(message, status_code=resp.status_code, code=code, details=details)
        return BackendError(message, status_code=resp.status_code, code=code, details=details)

    def _raise_for_status(self, resp: httpx.Response, *, auth: bool = False) -> None:
        if resp.status_code < 400:
            return
        error = self._error_from_response(resp, auth=auth)
        logger.info(
            "Backend rejected %s %s: %s",
            resp.request.method,
            resp.request.url.path,
            error,
        )
        raise error

    @staticmethod
    def _build_params(
        select: Optional[str],
        conditions: Iterable[Condition],
        order: Optional[Order] = None,
        limit: Optional[int] = None,
    ) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        if select:
            params.append(("select", "".join(select.split())))
        for condition in conditions:
            params.append(condition.to_param())
        if order is not None:
            params.append(order.to_param())
        if limit is not None:
            params.append(("limit", str(limit)))
        return params

    # ------------------------------------------------------------------
    # Таблицы
    # ------------------------------------------------------------------

    async def query(
        self,
        table: str,
        filters: Iterable[Condition] = (),
        *,
        select: str = "*",
        order: Optional[Order] = None,
        single: bool = False,
        limit: Optional[int] = None,
    ) -> Any:
        """
        Чтение строк. single=True: ровно одна строка (dict) или NotFoundError.
        """
        headers = {"Accept": _OBJECT_ACCEPT} if single else None
        resp = await self._send(
            "GET",
            f"/rest/v1/{table}",
            params=self._build_params(select, filters, order, limit),
            headers=headers,
        )
        self._raise_for_status(resp)
        return resp.json()

    async def insert(self, table: str, row: dict[str, Any], *, select: str = "*") -> dict[str, Any]:
        resp = await self._send(
            "POST",
            f"/rest/v1/{table}",
            params=self._build_params(select, ()),
            json=row,
            headers={"Prefer": "return=representation", "Accept": _OBJECT_ACCEPT},
        )
        self._raise_for_status(resp)
        return resp.json()

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        filters: Iterable[Condition],
        *,
        select: str = "*",
    ) -> dict[str, Any]:
        """PATCH с возвратом строки после записи; если ничего не обновилось, NotFoundError."""
        resp = await self._send(
            "PATCH",
            f"/rest/v1/{table}",
            params=self._build_params(select, filters),
            json=values,
            headers={"Prefer": "return=representation", "Accept": _OBJECT_ACCEPT},
        )
        self._raise_for_status(resp)
        return resp.json()

    async def delete(self, table: str, filters: Iterable[Condition]) -> None:
        resp = await self._send(
            "DELETE",
            f"/rest/v1/{table}",
            params=self._build_params(None, filters),
            headers={"Prefer": "return=minimal"},
        )
        self._raise_for_status(resp)

    # ------------------------------------------------------------------
    # Auth (GoTrue)
    # ------------------------------------------------------------------

    async def auth_request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Any = None,
        params: Optional[dict[str, str]] = None,
        token: Optional[str] = None,
    ) -> Any:
        resp = await self._send(
            method,
            f"/auth/v1{endpoint}",
            params=list(params.items()) if params else None,
            json=json,
            token=token,
        )
        self._raise_for_status(resp, auth=True)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()


_backend_client: Optional[BackendClient] = None


def get_backend_client() -> BackendClient:
    """Process-wide handle; закрывается в lifespan приложения."""
    global _backend_client
    if _backend_client is None:
        _backend_client = BackendClient()
    return _backend_client


async def close_backend_client() -> None:
    global _backend_client
    if _backend_client is not None:
        await _backend_client.aclose()
        _backend_client = None
