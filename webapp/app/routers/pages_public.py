import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from ..dependencies import ScreenRegistry, get_screens, get_session, render_screen
from ..screens.login import LoginScreen
from ..session import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["public"])


def _safe_next(next_url: Optional[str]) -> str:
    # Разрешаем только относительные пути
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return "/"


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.get("/login", response_class=HTMLResponse)
async def login_page(
    request: Request,
    next: Optional[str] = None,
    session: SessionContext = Depends(get_session),
    screens: ScreenRegistry = Depends(get_screens),
):
    if session.user is not None:
        return RedirectResponse(url=_safe_next(next), status_code=303)
    screen = screens.peek(LoginScreen) or await screens.get(LoginScreen)
    return render_screen(request, screen)


@router.post("/login")
async def login_submit(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    next: Optional[str] = Form(None),
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = screens.peek(LoginScreen) or await screens.get(LoginScreen)
    if not await screen.sign_in(email, password):
        return RedirectResponse(url="/login", status_code=303)

    # у нового пользователя старые вкладки со старыми данными не нужны
    await screens.close_all()
    return RedirectResponse(url=_safe_next(next), status_code=303)


@router.post("/signup")
async def signup_submit(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    name: str = Form(""),
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = screens.peek(LoginScreen) or await screens.get(LoginScreen)
    if not await screen.sign_up(email, password, name or None):
        return RedirectResponse(url="/login", status_code=303)

    await screens.close_all()
    return RedirectResponse(url="/", status_code=303)


@router.post("/logout")
async def logout(
    session: SessionContext = Depends(get_session),
    screens: ScreenRegistry = Depends(get_screens),
):
    await session.sign_out()
    await screens.close_all()
    return RedirectResponse(url="/login", status_code=303)
