from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from pydantic import ValidationError as SchemaError

from .api_client import BackendClient
from .errors import AppError, AuthError, NetworkError, NotFoundError
from .schemas.auth import AuthSession, AuthUser
from .schemas.profile import Profile, UserRole
from .services.auth_service import AuthService
from .services.profiles_service import ProfilesService
from .storage import SessionStorage

logger = logging.getLogger(__name__)

SESSION_KEY = "auth.session"


@dataclass(frozen=True)
class SessionState:
    user: Optional[AuthUser] = None
    profile: Optional[Profile] = None
    loading: bool = True

    @property
    def role(self) -> Optional[UserRole]:
        return self.profile.role if self.profile else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


Listener = Callable[[SessionState], None]


class SessionContext:
    """
    Состояние текущего пользователя: identity, профиль, флаг загрузки.

    Единственный писатель своего состояния. Создаётся явно при старте
    приложения и передаётся экранам; подписчики получают уведомление
    синхронно, по одному на каждый переход (без debounce).
    """

    def __init__(
        self,
        client: BackendClient,
        storage: SessionStorage,
        *,
        auth: type[AuthService] = AuthService,
        profiles: type[ProfilesService] = ProfilesService,
    ) -> None:
        self._client = client
        self._storage = storage
        self._auth = auth
        self._profiles = profiles

        self._state = SessionState()
        self._listeners: list[Listener] = []
        self._ready = asyncio.Event()

    # ------------------------------------------------------------------
    # Чтение состояния
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self) -> Optional[AuthUser]:
        return self._state.user

    @property
    def profile(self) -> Optional[Profile]:
        return self._state.profile

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def wait_ready(self) -> None:
        """Дождаться окончания restore(): до этого роль пользователя неизвестна."""
        await self._ready.wait()

    # ------------------------------------------------------------------
    # Подписчики
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes) -> None:
        new_state = replace(self._state, **changes)
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)

    # ------------------------------------------------------------------
    # Жизненный цикл
    # ------------------------------------------------------------------

    async def _load_profile(self, user_id: str) -> Optional[Profile]:
        try:
            return await self._profiles.get_profile(self._client, user_id)
        except NotFoundError:
            # identity есть, строки в profiles ещё нет: ролей нет, доступ как у гостя
            logger.warning("No profile row for user %s", user_id)
            return None

    async def _remember(self, session: AuthSession) -> None:
        await self._storage.set_json(SESSION_KEY, session.model_dump(mode="json"))

    async def _forget(self) -> None:
        await self._storage.delete(SESSION_KEY)

    async def _drop_session(self) -> None:
        # вход не завершился: токены не должны пережить ошибку
        await self._forget()
        self._client.set_access_token(None)

    async def restore(self) -> SessionState:
        """
        Поднять сохранённую сессию при старте.

        Пока идёт восстановление, loading=True, экраны показывают нейтральную заглушку.
        Протухший access token один раз пробуем обновить через refresh token.
        """
        self._set_state(loading=True)
        try:
            cached = await self._storage.get_json(SESSION_KEY)
            if not cached:
                self._set_state(user=None, profile=None, loading=False)
                return self._state

            session = AuthSession.model_validate(cached)
            try:
                user = await self._auth.get_user(self._client, session.access_token)
            except AuthError:
                if not session.refresh_token:
                    raise
                logger.info("Access token rejected, refreshing session")
                session = await self._auth.refresh(self._client, session.refresh_token)
                await self._remember(session)
                user = session.user

            self._client.set_access_token(session.access_token)
            profile = await self._load_profile(user.id)
            self._set_state(user=user, profile=profile, loading=False)
        except (AuthError, SchemaError) as e:
            logger.info("Cached session is not valid anymore: %s", e)
            await self._forget()
            self._client.set_access_token(None)
            self._set_state(user=None, profile=None, loading=False)
        except NetworkError as e:
            # кэш не трогаем: при следующем старте попробуем снова
            logger.warning("Session restore failed, backend unreachable: %s", e)
            self._client.set_access_token(None)
            self._set_state(user=None, profile=None, loading=False)
        except AppError:
            logger.exception("Session restore failed")
            self._client.set_access_token(None)
            self._set_state(user=None, profile=None, loading=False)
        finally:
            self._ready.set()
        return self._state

    async def sign_in(self, email: str, password: str) -> SessionState:
        """Ошибки авторизации/сети уходят вызывающему (экрану логина)."""
        self._set_state(loading=True)
        session = None
        try:
            session = await self._auth.sign_in(self._client, email, password)
            await self._remember(session)
            self._client.set_access_token(session.access_token)
            profile = await self._load_profile(session.user.id)
        except Exception:
            if session is not None:
                await self._drop_session()
            self._set_state(loading=False)
            raise
        self._set_state(user=session.user, profile=profile, loading=False)
        self._ready.set()
        logger.info("User %s signed in", session.user.id)
        return self._state

    async def sign_up(self, email: str, password: str, name: Optional[str] = None) -> SessionState:
        self._set_state(loading=True)
        session = None
        try:
            session = await self._auth.sign_up(self._client, email, password, name)
            profile = None
            if session is not None:
                await self._remember(session)
                self._client.set_access_token(session.access_token)
                profile = await self._load_profile(session.user.id)
        except Exception:
            if session is not None:
                await self._drop_session()
            self._set_state(loading=False)
            raise
        if session is None:
            self._set_state(loading=False)
        else:
            self._set_state(user=session.user, profile=profile, loading=False)
        return self._state

    async def refresh_profile(self) -> Optional[Profile]:
        if self._state.user is None:
            return None
        profile = await self._load_profile(self._state.user.id)
        self._set_state(profile=profile)
        return profile

    async def sign_out(self) -> None:
        """
        Чистит identity и профиль. Навигацию на экран входа делает вызывающий.
        """
        token = self._client.access_token
        try:
            if token:
                await self._auth.sign_out(self._client, token)
        except AppError as e:
            # локальный выход важнее: токен всё равно выкидываем
            logger.warning("Remote sign-out failed: %s", e)
        finally:
            await self._forget()
            self._client.set_access_token(None)
            self._set_state(user=None, profile=None, loading=False)
        logger.info("Signed out")
