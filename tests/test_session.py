import pytest

from webapp.app.errors import AuthError, BackendError, NetworkError
from webapp.app.schemas.profile import UserRole
from webapp.app.session import SESSION_KEY, SessionContext


async def test_restore_without_cached_session(session):
    states = []
    session.subscribe(states.append)

    state = await session.restore()

    assert state.user is None and state.profile is None
    assert not state.loading
    assert session.is_ready
    assert states[-1].loading is False


async def test_sign_in_loads_profile_and_persists_tokens(session, storage, backend, client):
    user_id = backend.add_user("admin@autohub.test", "secret", role="admin", name="Boss")

    state = await session.sign_in("admin@autohub.test", "secret")

    assert state.user.id == user_id
    assert state.role == UserRole.admin
    assert state.profile.name == "Boss"
    assert client.access_token is not None
    cached = await storage.get_json(SESSION_KEY)
    assert cached["access_token"] == client.access_token


async def test_wrong_password_raises_and_leaves_state_clean(session, backend):
    backend.add_user("user@autohub.test", "secret")

    with pytest.raises(AuthError):
        await session.sign_in("user@autohub.test", "wrong")

    assert session.user is None
    assert not session.loading


async def test_failed_profile_load_drops_tokens(session, storage, backend, client):
    backend.add_user("user@autohub.test", "secret")
    backend.failing_tables = {"profiles"}

    with pytest.raises(BackendError):
        await session.sign_in("user@autohub.test", "secret")

    assert session.user is None
    assert not session.loading
    assert client.access_token is None
    assert await storage.get_json(SESSION_KEY) is None

    # после перезапуска молча войти не должно
    backend.failing_tables = set()
    state = await SessionContext(client, storage).restore()
    assert state.user is None


async def test_restore_picks_up_cached_session(session, storage, backend, client, sign_in_as):
    user_id = await sign_in_as("shop_manager")

    fresh = SessionContext(client, storage)
    client.set_access_token(None)
    state = await fresh.restore()

    assert state.user.id == user_id
    assert state.role == UserRole.shop_manager
    assert client.access_token is not None


async def test_restore_refreshes_expired_token(session, storage, backend, client, sign_in_as):
    await sign_in_as("customer")
    old_token = client.access_token
    backend.expire_tokens()

    fresh = SessionContext(client, storage)
    state = await fresh.restore()

    assert state.is_authenticated
    assert client.access_token != old_token
    assert (await storage.get_json(SESSION_KEY))["access_token"] == client.access_token


async def test_restore_forgets_dead_session(session, storage, backend, client, sign_in_as):
    await sign_in_as("customer")
    backend.expire_tokens()
    backend.refresh_tokens.clear()

    fresh = SessionContext(client, storage)
    state = await fresh.restore()

    assert not state.is_authenticated
    assert await storage.get_json(SESSION_KEY) is None
    assert client.access_token is None


async def test_restore_offline_keeps_cache(session, storage, backend, client, sign_in_as):
    await sign_in_as("customer")
    backend.offline = True

    fresh = SessionContext(client, storage)
    state = await fresh.restore()

    assert not state.is_authenticated
    assert fresh.is_ready
    assert await storage.get_json(SESSION_KEY) is not None


async def test_corrupted_cache_is_dropped(session, storage):
    await storage.set(SESSION_KEY, "{not json")

    state = await session.restore()

    assert not state.is_authenticated
    assert await storage.get(SESSION_KEY) is None


async def test_user_without_profile_row_has_no_role(session, backend):
    backend.add_user("ghost@autohub.test", "secret", with_profile=False)

    state = await session.sign_in("ghost@autohub.test", "secret")

    assert state.is_authenticated
    assert state.profile is None
    assert state.role is None


async def test_sign_out_clears_everything_even_if_remote_fails(session, storage, backend, client, sign_in_as):
    await sign_in_as("admin")
    backend.fail_logout = True
    states = []
    session.subscribe(states.append)

    await session.sign_out()

    assert session.user is None and session.profile is None
    assert client.access_token is None
    assert await storage.get_json(SESSION_KEY) is None
    assert states[-1].user is None


async def test_sign_up_with_and_without_email_confirmation(session, backend):
    state = await session.sign_up("new@autohub.test", "secret", "Newbie")
    assert state.is_authenticated
    assert state.profile.name == "Newbie"
    assert state.role == UserRole.customer

    await session.sign_out()
    backend.confirm_email = True
    state = await session.sign_up("later@autohub.test", "secret")
    assert not state.is_authenticated


async def test_listeners_get_one_notification_per_transition(session, backend):
    backend.add_user("user@autohub.test", "secret")
    await session.restore()
    states = []
    unsubscribe = session.subscribe(states.append)

    await session.sign_in("user@autohub.test", "secret")
    assert [s.loading for s in states] == [True, False]

    unsubscribe()
    await session.sign_out()
    assert len(states) == 2


async def test_refresh_profile_picks_up_role_change(session, backend, sign_in_as):
    user_id = await sign_in_as("customer")
    next(row for row in backend.rows("profiles") if row["id"] == user_id)["role"] = "admin"

    profile = await session.refresh_profile()

    assert profile.role == UserRole.admin
    assert session.state.role == UserRole.admin


async def test_network_error_on_sign_in_propagates(session, backend):
    backend.offline = True
    with pytest.raises(NetworkError):
        await session.sign_in("user@autohub.test", "secret")
    assert not session.loading
