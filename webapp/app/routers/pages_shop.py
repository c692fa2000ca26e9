from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from ..dependencies import ScreenRegistry, get_screens, render_screen
from ..screens.shop import ShopScreen

router = APIRouter(
    prefix="/shop",
    tags=["shop"],
)


@router.get("", response_class=HTMLResponse)
async def shop_page(
    request: Request,
    category: Optional[str] = None,
    q: Optional[str] = None,
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = await screens.get(ShopScreen)

    # без параметров (редирект после корзины) фильтры не трогаем
    if category is not None:
        category = category.strip()
        if category != screen.selected_category:
            await screen.select_category(category or screen.selected_category)
    if q is not None and q.strip() != screen.search_query:
        await screen.set_search(q)

    return render_screen(request, screen)


@router.post("/cart/{part_id}")
async def add_to_cart(
    part_id: str,
    quantity: int = Form(1),
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = screens.peek(ShopScreen) or await screens.get(ShopScreen)
    part = screen.find_part(part_id)
    if part is not None:
        screen.add_to_cart(part, max(1, quantity))
    return RedirectResponse(url="/shop", status_code=303)


@router.post("/cart/{part_id}/remove")
async def remove_from_cart(
    part_id: str,
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = screens.peek(ShopScreen) or await screens.get(ShopScreen)
    screen.remove_from_cart(part_id)
    return RedirectResponse(url="/shop", status_code=303)


@router.post("/checkout")
async def checkout(
    shipping_address: str = Form(""),
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = screens.peek(ShopScreen) or await screens.get(ShopScreen)
    await screen.checkout(shipping_address or None)
    return RedirectResponse(url="/shop", status_code=303)
