import logging
import logging.config
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .api_client import close_backend_client, get_backend_client
from .config import settings
from .dependencies import ScreenRegistry
from .middleware import SessionGuardMiddleware
from .realtime import RealtimeClient
from .routers import pages_admin, pages_cars, pages_manager, pages_public, pages_shop, pages_user
from .session import SessionContext
from .storage import SessionStorage

BASE_DIR = Path(__file__).resolve().parent
STATIC_DIR = BASE_DIR / "static"

logger = logging.getLogger(__name__)


# сторонние клиенты на INFO пишут по строке на каждый запрос
QUIET_LOGGERS = ("httpx", "httpcore", "aiohttp.access", "sqlalchemy.engine")


def setup_logging(service_name: str) -> None:
    log_level = settings.LOG_LEVEL.upper()
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": "default",
        }
    }

    if settings.LOG_TO_FILE:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        for name, suffix, level in (("file", "log", log_level), ("file_error", "error.log", "ERROR")):
            handlers[name] = {
                "class": "logging.handlers.RotatingFileHandler",
                "level": level,
                "formatter": "default",
                "filename": str(log_dir / f"{service_name}.{suffix}"),
                "maxBytes": settings.LOG_MAX_BYTES,
                "backupCount": settings.LOG_BACKUP_COUNT,
                "encoding": "utf-8",
            }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                }
            },
            "handlers": handlers,
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
            "root": {"level": log_level, "handlers": list(handlers)},
        }
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Порядок важен: хранилище -> клиент -> сессия (restore) -> экраны.
    Пока restore() не закончился, ни один ролевой запрос не уходит.
    """
    storage = SessionStorage()
    await storage.init()

    client = get_backend_client()
    session = SessionContext(client, storage)
    await session.restore()

    app.state.storage = storage
    app.state.client = client
    app.state.session = session
    app.state.screens = ScreenRegistry(session, client, RealtimeClient())

    logger.info(
        "AutoHub started, user=%s",
        session.user.id if session.user else None,
    )
    try:
        yield
    finally:
        await app.state.screens.close_all()
        await close_backend_client()
        await storage.dispose()


def create_app() -> FastAPI:
    setup_logging("webapp")

    app = FastAPI(
        title="AutoHub",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    # Статика (CSS/JS/изображения)
    if STATIC_DIR.exists():
        app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    # Middleware: без входа пускаем только на /login
    app.add_middleware(SessionGuardMiddleware)

    # Подключение роутеров
    app.include_router(pages_public.router)
    app.include_router(pages_cars.router)
    app.include_router(pages_shop.router)
    app.include_router(pages_manager.router)
    app.include_router(pages_admin.router)
    app.include_router(pages_user.router)

    return app


app = create_app()
