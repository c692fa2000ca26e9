from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from ..dependencies import ScreenRegistry, get_screens, render_screen
from ..screens.profile import ProfileScreen
from ..screens.tracking import TrackingScreen

router = APIRouter(tags=["user"])


@router.get("/profile", response_class=HTMLResponse)
async def profile_page(
    request: Request,
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = await screens.get(ProfileScreen)
    return render_screen(request, screen)


@router.post("/profile/sign-out")
async def profile_sign_out(screens: ScreenRegistry = Depends(get_screens)):
    screen = screens.peek(ProfileScreen) or await screens.get(ProfileScreen)
    await screen.sign_out()
    # экраны прошлой сессии снимаем, навигация на вход
    await screens.close_all()
    return RedirectResponse(url="/login", status_code=303)


@router.get("/tracking", response_class=HTMLResponse)
async def tracking_page(
    request: Request,
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = await screens.get(TrackingScreen)
    return render_screen(request, screen)
