from pathlib import Path
from typing import Optional, TypeVar

from fastapi import Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from .api_client import BackendClient
from .config import settings
from .realtime import RealtimeClient
from .screens.base import Screen
from .screens.tracking import TrackingScreen
from .session import SessionContext

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

S = TypeVar("S", bound=Screen)


def get_settings():
    """
    Общий доступ к settings, если понадобится как dependency.
    """
    return settings


def get_templates() -> Jinja2Templates:
    """
    Инициализация Jinja2Templates.

    Используем одну и ту же директорию для всех роутов.
    """
    return Jinja2Templates(directory=str(TEMPLATES_DIR))


class ScreenRegistry:
    """
    Вкладки приложения живут между запросами (как экраны в табах мобильного
    приложения) и снимаются целиком при смене пользователя.
    """

    def __init__(
        self,
        session: SessionContext,
        client: BackendClient,
        realtime: Optional[RealtimeClient] = None,
    ) -> None:
        self.session = session
        self.client = client
        self.realtime = realtime
        self._screens: dict[str, Screen] = {}

    def build(self, screen_cls: type[S]) -> S:
        if screen_cls is TrackingScreen:
            return screen_cls(self.session, self.client, self.realtime)
        return screen_cls(self.session, self.client)

    async def get(self, screen_cls: type[S]) -> S:
        """Вернуть открытую вкладку (перечитав данные) или открыть новую."""
        screen = self._screens.get(screen_cls.name)
        if screen is None or screen.closed:
            screen = await self.open(self.build(screen_cls))
        elif isinstance(screen, TrackingScreen) and screen.feed_lost:
            # канал оборвался: открываем заново с новой подпиской
            screen = await self.open(self.build(screen_cls))
        elif not isinstance(screen, TrackingScreen):
            # трекинг обновляется сам через change feed
            await screen.refresh()
        return screen

    async def open(self, screen: S) -> S:
        """Положить уже настроенный экран в реестр и смонтировать."""
        previous = self._screens.get(screen.name)
        if previous is not None and previous is not screen:
            await previous.close()
        self._screens[screen.name] = screen
        await screen.mount()
        return screen

    def peek(self, screen_cls: type[S]) -> Optional[S]:
        screen = self._screens.get(screen_cls.name)
        return screen if screen is not None and not screen.closed else None

    async def close_all(self) -> None:
        screens = list(self._screens.values())
        self._screens.clear()
        for screen in screens:
            await screen.close()


def get_session(request: Request) -> SessionContext:
    return request.app.state.session


def get_client(request: Request) -> BackendClient:
    return request.app.state.client


def get_screens(request: Request) -> ScreenRegistry:
    return request.app.state.screens


def render_screen(request: Request, screen: Screen) -> HTMLResponse:
    """
    Отрисовать экран. Уведомления одноразовые: после показа сбрасываются.
    Отказ по роли отдаём как 403 со статичной заглушкой "Access Denied".
    """
    templates = get_templates()
    status_code = 403 if screen.denied else 200
    response = templates.TemplateResponse(
        request,
        screen.template,
        screen.context(),
        status_code=status_code,
    )
    screen.dismiss_notice()
    return response
