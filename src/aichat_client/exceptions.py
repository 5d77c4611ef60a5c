"""
Исключения для AI Chat Client.
"""

from typing import Optional, Dict, Any


class AIChatError(Exception):
    """Базовое исключение для AI Chat Client."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(AIChatError):
    """Ошибка аутентификации."""
    pass


class TokenExpiredError(AuthenticationError):
    """Токен истёк, а захватить новый из сессии браузера не удалось."""
    pass


class APIError(AIChatError):
    """Ошибка API запроса."""

    def __init__(
        self,
        message: str,
        status_code: int,
        error_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.error_type = error_type
        super().__init__(message, details)


class NotFoundError(APIError):
    """Ресурс не найден (404)."""

    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=404, error_type="not_found", details=details)


class ServerError(APIError):
    """Внутренняя ошибка сервера (5xx)."""

    def __init__(
        self,
        message: str = "Server error",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        super().__init__(message, status_code=status_code, error_type="server_error", details=details)


class ValidationError(APIError):
    """Ошибка валидации данных (400/422)."""

    def __init__(self, message: str = "Validation error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, error_type="validation_error", details=details)


class TransportError(APIError):
    """Сетевая ошибка: сервер недоступен или не ответил вовремя."""

    def __init__(self, message: str = "Transport error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=0, error_type="transport_error", details=details)


class StorageError(AIChatError):
    """Ошибка чтения или записи локального хранилища."""
    pass


class RenderError(AIChatError):
    """Ошибка рендеринга сообщения."""
    pass


class MathRenderError(RenderError):
    """Формулу LaTeX не удалось свёрстать."""

    def __init__(self, message: str, formula: str = ""):
        self.formula = formula
        super().__init__(message, {"formula": formula})
