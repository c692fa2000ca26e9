from typing import Any, Optional


class AppError(Exception):
    """Базовая ошибка приложения."""


class NetworkError(AppError):
    """Транспорт не доехал до backend'а (DNS, соединение, обрыв сокета)."""


class BackendError(AppError):
    """
    Backend ответил отказом: ошибка запроса, нарушение ограничения (FK, unique) и т.п.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"Backend error {self.status_code}: {self.message}"
        return self.message


class NotFoundError(BackendError):
    """Запрос по id не вернул ни одной строки."""


class AuthError(BackendError):
    """Отказ авторизации: неверный пароль, протухший/битый токен."""


class ValidationError(AppError):
    """Проверка обязательных полей формы до отправки в backend."""

    def __init__(self, message: str, fields: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.fields = list(fields or [])
