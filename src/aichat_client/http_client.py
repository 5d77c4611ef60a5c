"""
HTTP клиент для OpenAI-совместимого endpoint'а chat/completions.
"""

import logging
from typing import Optional, Dict, Any, List

import httpx

from aichat_client.auth import TokenManager
from aichat_client.config import ConfigManager, get_config_manager
from aichat_client.exceptions import (
    AuthenticationError,
    APIError,
    NotFoundError,
    ServerError,
    TokenExpiredError,
    TransportError,
    ValidationError,
)
from aichat_client.models import ChatCompletionResponse, CompletionMessage

logger = logging.getLogger(__name__)


class HTTPClient:
    """
    HTTP клиент для AI endpoint'а.

    Поддерживает:
    - Авторизацию по API ключу или токену из сессии браузера
    - Автоматическое добавление Authorization header
    - Обработку ошибок API
    """

    DEFAULT_TIMEOUT = 60.0

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        token_manager: Optional[TokenManager] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Инициализация HTTP клиента.

        Args:
            config_manager: Менеджер конфигурации.
            token_manager: Менеджер токена. По умолчанию - файл из data dir.
            timeout: Таймаут запросов в секундах.
            transport: Транспорт httpx (для тестов).
        """
        self.config_manager = config_manager or get_config_manager()
        if token_manager is None:
            token_manager = TokenManager(self.config_manager.get_token_file())
            token_manager.load()
        self.token_manager = token_manager
        self.timeout = timeout
        self._transport = transport

        self._client: Optional[httpx.Client] = None

    @property
    def api_url(self) -> str:
        """URL endpoint'а chat/completions."""
        return self.config_manager.get_config().api_url

    @property
    def is_authenticated(self) -> bool:
        """Есть ли чем подписать запрос."""
        return self._get_bearer_token() is not None

    def _get_sync_client(self) -> httpx.Client:
        """Получить синхронный HTTP клиент."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, transport=self._transport)
        return self._client

    def _get_bearer_token(self) -> Optional[str]:
        api_key = self.config_manager.get_config().api_key
        if api_key:
            return api_key
        return self.token_manager.get_bearer_token()

    def _get_auth_headers(self) -> Dict[str, str]:
        """
        Получить заголовки авторизации.

        Raises:
            TokenExpiredError: Токен сессии истёк
            AuthenticationError: Нет ни API ключа, ни токена
        """
        token = self._get_bearer_token()
        if token is None:
            if self.token_manager.token_data is not None:
                raise TokenExpiredError(
                    "Session token expired. Log in to the web UI again and run 'aichat login'."
                )
            raise AuthenticationError(
                "No API key configured and no valid session token. "
                "Run 'aichat login' or 'aichat config set-key'."
            )
        return {"Authorization": f"Bearer {token}"}

    def _handle_response_error(self, response: httpx.Response) -> None:
        """
        Обработать ошибку ответа.

        Args:
            response: HTTP ответ

        Raises:
            APIError: При ошибке API
        """
        if response.is_success:
            return

        try:
            error_data = response.json()
            error = error_data.get("error")
            # OpenAI-стиль: {"error": {"message": ..., "type": ...}}
            if isinstance(error, dict):
                error_type = error.get("type", "unknown_error")
                message = error.get("message", response.text)
            else:
                error_type = error or "unknown_error"
                message = error_data.get("message", response.text)
            details = error_data.get("details")
        except Exception:
            error_type = "unknown_error"
            message = response.text or f"HTTP {response.status_code}"
            details = None

        if response.status_code in (401, 403):
            raise AuthenticationError(message, details)
        elif response.status_code == 404:
            raise NotFoundError(message, details)
        elif response.status_code in (400, 422):
            raise ValidationError(message, details)
        elif response.status_code >= 500:
            raise ServerError(message, details, status_code=response.status_code)
        else:
            raise APIError(message, response.status_code, error_type, details)

    def post_json(self, payload: Dict[str, Any]) -> httpx.Response:
        """
        POST на endpoint с авторизацией.

        Raises:
            AuthenticationError: Нет токена
            TransportError: Сетевая ошибка
            APIError: Ошибка API
        """
        headers = self._get_auth_headers()
        client = self._get_sync_client()

        try:
            response = client.post(self.api_url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request to {self.api_url} timed out") from e
        except httpx.TransportError as e:
            raise TransportError(f"Cannot reach {self.api_url}: {e}") from e

        self._handle_response_error(response)
        return response

    def chat_completion(
        self,
        messages: List[CompletionMessage],
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        web_search: bool = False
    ) -> ChatCompletionResponse:
        """
        Запросить ответ модели.

        Args:
            messages: Контекст разговора
            model: Модель (по умолчанию из конфигурации)
            max_tokens: Лимит токенов ответа
            temperature: Температура
            web_search: Разрешить модели поиск в интернете

        Returns:
            ChatCompletionResponse
        """
        config = self.config_manager.get_config()
        payload: Dict[str, Any] = {
            "model": model or config.model,
            "messages": [m.model_dump() for m in messages],
            "max_tokens": max_tokens if max_tokens is not None else config.max_tokens,
            "temperature": temperature if temperature is not None else config.temperature,
        }
        if web_search:
            payload["web_search"] = True

        logger.debug(f"chat_completion: model={payload['model']}, messages={len(messages)}")
        response = self.post_json(payload)

        try:
            return ChatCompletionResponse(**response.json())
        except Exception as e:
            raise APIError(f"Malformed completion response: {e}", response.status_code, "bad_response") from e

    def close(self) -> None:
        """Закрыть HTTP клиент."""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
