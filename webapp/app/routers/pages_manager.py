from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from ..dependencies import ScreenRegistry, get_screens, render_screen
from ..schemas.order import OrderStatus
from ..screens.manager import ManagerScreen

router = APIRouter(
    prefix="/manager",
    tags=["manager"],
)


@router.get("", response_class=HTMLResponse)
async def manager_dashboard(
    request: Request,
    edit: Optional[str] = None,
    new: bool = False,
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = await screens.get(ManagerScreen)

    if not screen.denied:
        if new:
            screen.open_new()
        elif edit:
            part = screen.find_part(edit)
            if part is not None:
                screen.open_edit(part)

    return render_screen(request, screen)


@router.post("/parts")
async def save_part(
    request: Request,
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = screens.peek(ManagerScreen) or await screens.get(ManagerScreen)
    form = await request.form()
    saved = await screen.save_part({key: value for key, value in form.items() if isinstance(value, str)})
    if saved is None and screen.show_form:
        # остаёмся в форме с введёнными значениями
        return render_screen(request, screen)
    return RedirectResponse(url="/manager", status_code=303)


@router.post("/parts/cancel")
async def cancel_form(screens: ScreenRegistry = Depends(get_screens)):
    screen = screens.peek(ManagerScreen)
    if screen is not None:
        screen.close_form()
    return RedirectResponse(url="/manager", status_code=303)


@router.post("/parts/{part_id}/delete")
async def delete_part(
    part_id: str,
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = screens.peek(ManagerScreen) or await screens.get(ManagerScreen)
    await screen.delete_part(part_id)
    return RedirectResponse(url="/manager", status_code=303)


@router.post("/orders/{order_id}/status")
async def update_order_status(
    order_id: str,
    status: str = Form(...),
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = screens.peek(ManagerScreen) or await screens.get(ManagerScreen)
    try:
        new_status = OrderStatus(status)
    except ValueError:
        screen.show_notice("Unknown order status")
    else:
        await screen.update_order_status(order_id, new_status)
    return RedirectResponse(url="/manager", status_code=303)
