from typing import Iterable, NamedTuple, Optional

from .schemas.profile import Profile, UserRole

# Кому открыт экран. Иерархии нет: admin попадает в менеджерский экран
# только потому, что явно перечислен здесь.
ADMIN_SCREEN = frozenset({UserRole.admin})
MANAGER_SCREEN = frozenset({UserRole.shop_manager, UserRole.admin})


class Tab(NamedTuple):
    key: str
    title: str
    path: str


def has_role(profile: Optional[Profile], allowed: Iterable[UserRole]) -> bool:
    if profile is None:
        return False
    return profile.role in frozenset(allowed)


def visible_tabs(profile: Optional[Profile]) -> list[Tab]:
    """
    Вкладки нижнего меню. Видимость ролевых вкладок: прямое сравнение роли:
    admin не видит вкладку менеджера, даже имея доступ к самому экрану.
    """
    role = profile.role if profile else None

    tabs = [
        Tab("cars", "Cars", "/"),
        Tab("shop", "Shop", "/shop"),
    ]
    if role == UserRole.admin:
        tabs.append(Tab("admin", "Admin", "/admin"))
    if role == UserRole.shop_manager:
        tabs.append(Tab("manager", "Manager", "/manager"))
    tabs.extend(
        [
            Tab("tracking", "Tracking", "/tracking"),
            Tab("profile", "Profile", "/profile"),
        ]
    )
    return tabs
