from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from ..dependencies import ScreenRegistry, get_screens, render_screen
from ..screens.admin import ACTION_STATUS, AdminScreen

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
)


# ---------------------------------------------------------------------------
# ADMIN DASHBOARD
# ---------------------------------------------------------------------------

@router.get("", response_class=HTMLResponse)
async def admin_dashboard(
    request: Request,
    screens: ScreenRegistry = Depends(get_screens),
) -> HTMLResponse:
    screen = await screens.get(AdminScreen)
    return render_screen(request, screen)


# ---------------------------------------------------------------------------
# ПОДТВЕРЖДЕНИЕ / ОТМЕНА БРОНИ
# ---------------------------------------------------------------------------

@router.post("/bookings/{booking_id}/{action}")
async def booking_action(
    booking_id: str,
    action: str,
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = screens.peek(AdminScreen) or await screens.get(AdminScreen)
    if action in ACTION_STATUS and not screen.denied:
        await screen.handle_booking_action(booking_id, action)  # type: ignore[arg-type]
    return RedirectResponse(url="/admin", status_code=303)
