"""
Управление bearer-токеном.

Токен захватывается из localStorage залогиненной сессии браузера
(веб-интерфейс по адресу UI_URL) и хранится в JSON-файле.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from aichat_client.models import TokenData

logger = logging.getLogger(__name__)

# Токен считается истёкшим за 5 минут до реального срока
EXPIRY_BUFFER = timedelta(minutes=5)
# Срок жизни, если сессия не сообщила tokenExpiresAt
DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)

# Ключи localStorage в порядке приоритета
TOKEN_STORAGE_KEYS = ("accessToken", "token", "oktaToken")
EXPIRY_STORAGE_KEY = "tokenExpiresAt"


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _to_ms(delta: timedelta) -> int:
    return int(delta.total_seconds() * 1000)


def parse_storage_dump(raw: str) -> Dict[str, Any]:
    """
    Разобрать дамп localStorage, снятый в консоли браузера
    командой JSON.stringify(localStorage).

    Raises:
        ValueError: не JSON или не объект
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("localStorage dump must be a JSON object")
    return data


class TokenManager:
    """Хранение и проверка bearer-токена."""

    def __init__(self, token_file: Path):
        """
        Args:
            token_file: Путь к JSON-файлу с токеном
        """
        self.token_file = Path(token_file)
        self._token: Optional[TokenData] = None

    @property
    def token_data(self) -> Optional[TokenData]:
        return self._token

    def load(self) -> Optional[TokenData]:
        """
        Загрузить токен из файла.

        Returns:
            TokenData или None, если файла нет или он повреждён
        """
        if not self.token_file.exists():
            self._token = None
            return None

        try:
            with open(self.token_file, "r", encoding="utf-8") as f:
                self._token = TokenData(**json.load(f))
        except (OSError, json.JSONDecodeError, TypeError, PydanticValidationError) as e:
            logger.warning(f"Token file {self.token_file} is unreadable: {e}")
            self._token = None

        return self._token

    def is_token_valid(self) -> bool:
        """Токен есть и не истекает в ближайшие 5 минут."""
        if self._token is None:
            return False
        return self._token.expires_at > _now_ms() + _to_ms(EXPIRY_BUFFER)

    def get_bearer_token(self) -> Optional[str]:
        """Токен для заголовка Authorization или None."""
        if self.is_token_valid():
            return self._token.access_token
        return None

    def update_token_data(self, token_data: TokenData) -> None:
        """Сохранить новый токен."""
        self._token = token_data
        self.token_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.token_file, "w", encoding="utf-8") as f:
            json.dump(token_data.model_dump(), f, indent=2)
        logger.info("Auth token updated")

    def capture_from_storage(self, storage: Mapping[str, Any]) -> bool:
        """
        Захватить токен из localStorage сессии браузера.

        Args:
            storage: Содержимое localStorage (ключ -> значение)

        Returns:
            True, если токен найден и сохранён
        """
        token = next(
            (str(storage[key]) for key in TOKEN_STORAGE_KEYS if storage.get(key)),
            None,
        )
        if not token:
            logger.debug("No token found in browser storage")
            return False

        expires_at = _now_ms() + _to_ms(DEFAULT_TOKEN_LIFETIME)
        raw_expiry = storage.get(EXPIRY_STORAGE_KEY)
        if raw_expiry:
            try:
                expires_at = int(float(raw_expiry))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring malformed {EXPIRY_STORAGE_KEY}: {raw_expiry!r}")

        self.update_token_data(TokenData(access_token=token, expires_at=expires_at))
        return True

    def clear(self) -> None:
        """Удалить сохранённый токен."""
        self._token = None
        self.token_file.unlink(missing_ok=True)
        logger.info("Auth token cleared")
