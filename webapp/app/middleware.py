from __future__ import annotations

import urllib.parse

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import HTMLResponse, RedirectResponse, Response


class SessionGuardMiddleware(BaseHTTPMiddleware):
    """
    Без входа в приложение пускаем только на экран логина и служебные пути.

    Правила:
    - пока сессия восстанавливается (loading), отдаём нейтральную заглушку, без решений о доступе
    - нет identity -> редирект на /login?next=<исходный путь>
    Проверка ролей здесь не делается, это забота самих экранов.
    """

    _ALWAYS_ALLOW_PREFIXES = (
        "/static/",
        "/favicon.ico",
        "/health",
        "/login",
        "/signup",
    )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path or "/"

        if path.startswith(self._ALWAYS_ALLOW_PREFIXES):
            return await call_next(request)

        session = request.app.state.session

        if session.loading:
            return HTMLResponse("<p>Loading...</p>", status_code=503, headers={"Retry-After": "1"})

        if session.user is None:
            next_path = path
            if request.url.query:
                next_path = f"{next_path}?{request.url.query}"
            safe_next = urllib.parse.quote(next_path, safe="/?:=&")
            return RedirectResponse(url=f"/login?next={safe_next}", status_code=303)

        return await call_next(request)
