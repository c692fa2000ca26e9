import logging
import math
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from ..api_client import BackendClient
from ..dependencies import ScreenRegistry, get_client, get_screens, get_session, render_screen
from ..schemas.car import CarFilters, CarStatus
from ..screens.car_details import CarDetailsScreen
from ..screens.cars import CarsScreen
from ..session import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["cars"])


def _coerce_price(value: Optional[str]) -> Optional[float]:
    if value is None or not str(value).strip():
        return None
    try:
        price = float(str(value).strip())
    except ValueError:
        return None
    # отрицательная цена, nan и inf фильтром не считаются
    if not math.isfinite(price) or price < 0:
        return None
    return price


def _coerce_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def _coerce_status(value: Optional[str]) -> Optional[CarStatus]:
    if not value:
        return None
    try:
        return CarStatus(value)
    except ValueError:
        return None


@router.get("/", response_class=HTMLResponse)
async def cars_page(
    request: Request,
    q: Optional[str] = None,
    brand: Optional[str] = None,
    location: Optional[str] = None,
    max_price: Optional[str] = None,
    status: Optional[str] = None,
    screens: ScreenRegistry = Depends(get_screens),
):
    screen = screens.peek(CarsScreen)
    filters = CarFilters(
        brand=brand,
        location=location,
        max_price=_coerce_price(max_price),
        status=_coerce_status(status),
    )

    if screen is None:
        screen = screens.build(CarsScreen)
        screen.filters = filters
        screen = await screens.open(screen)
    elif filters != screen.filters:
        await screen.apply_filters(filters)
    else:
        await screen.refresh()

    screen.set_search(q)
    return render_screen(request, screen)


@router.get("/cars/{car_id}", response_class=HTMLResponse)
async def car_details_page(
    request: Request,
    car_id: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    session: SessionContext = Depends(get_session),
    client: BackendClient = Depends(get_client),
):
    """
    Карточка машины открывается модально: экран живёт один запрос.
    """
    screen = CarDetailsScreen(session, client, car_id)
    try:
        await screen.mount()
        if screen.go_back:
            return RedirectResponse(url="/", status_code=303)
        screen.select_dates(_coerce_date(start_date), _coerce_date(end_date))
        return render_screen(request, screen)
    finally:
        await screen.close()


@router.post("/cars/{car_id}/book", response_class=HTMLResponse)
async def book_car(
    request: Request,
    car_id: str,
    start_date: str = Form(""),
    end_date: str = Form(""),
    special_requests: str = Form(""),
    session: SessionContext = Depends(get_session),
    client: BackendClient = Depends(get_client),
):
    screen = CarDetailsScreen(session, client, car_id)
    try:
        await screen.mount()
        if screen.go_back:
            return RedirectResponse(url="/", status_code=303)
        screen.select_dates(_coerce_date(start_date), _coerce_date(end_date))
        await screen.book(special_requests or None)
        return render_screen(request, screen)
    finally:
        await screen.close()
