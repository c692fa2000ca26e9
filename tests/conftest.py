import os
import sys
from pathlib import Path

# Настройки читаются при импорте webapp.app.config, поэтому env выставляем до любых импортов приложения
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("LOG_TO_FILE", "0")

sys.path.insert(0, str(Path(__file__).resolve().parent))

import pytest  # noqa: E402

from fake_backend import FakeBackend  # noqa: E402
from webapp.app.api_client import BackendClient  # noqa: E402
from webapp.app.session import SessionContext  # noqa: E402
from webapp.app.storage import SessionStorage  # noqa: E402

BASE_URL = "https://test-project.supabase.co"
ANON_KEY = "test-anon-key"


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
async def client(backend):
    client = BackendClient(BASE_URL, ANON_KEY, transport=backend.transport())
    yield client
    await client.aclose()


@pytest.fixture
def session_db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'session.db'}"


@pytest.fixture
async def storage(session_db_url):
    storage = SessionStorage(session_db_url)
    await storage.init()
    yield storage
    await storage.dispose()


@pytest.fixture
def session(client, storage) -> SessionContext:
    return SessionContext(client, storage)


@pytest.fixture
def sign_in_as(backend, session):
    """Завести пользователя с нужной ролью и войти им."""

    async def _sign_in(role: str = "customer", email: str = None) -> str:
        email = email or f"{role}@autohub.test"
        user_id = backend.add_user(email, "secret", role=role)
        await session.sign_in(email, "secret")
        return user_id

    return _sign_in

