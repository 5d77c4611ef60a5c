"""
Управление конфигурацией клиента.

Хранит настройки в файле в домашней директории пользователя,
переменные окружения AI_API_URL, AI_API_KEY, AI_MODEL и UI_URL
имеют приоритет над файлом.
"""

import json
import os
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from aichat_client.models import ClientConfig

logger = logging.getLogger(__name__)

# =============================================================================
# НАСТРОЙКИ ПО УМОЛЧАНИЮ
# =============================================================================
DEFAULT_API_URL = "https://api.perplexity.ai/chat/completions"
DEFAULT_MODEL = "sonar"
DEFAULT_UI_URL = "http://localhost:3000"

# Переменная окружения -> поле ClientConfig
ENV_OVERRIDES = {
    "AI_API_URL": "api_url",
    "AI_API_KEY": "api_key",
    "AI_MODEL": "model",
    "UI_URL": "ui_url",
}
# =============================================================================


class ConfigManager:
    """Настройки клиента: config.json + переменные окружения."""

    CONFIG_DIR_NAME = ".aichat"
    CONFIG_FILE_NAME = "config.json"
    TOKEN_FILE_NAME = "auth-token.json"
    CONVERSATIONS_FILE_NAME = "conversations.json"

    def __init__(self, config_dir: Optional[Path] = None, use_env: bool = True):
        """
        Args:
            config_dir: Где лежит config.json (по умолчанию ~/.aichat/)
            use_env: Применять переопределения из переменных окружения
        """
        if config_dir is None:
            self.config_dir = Path.home() / self.CONFIG_DIR_NAME
        else:
            self.config_dir = Path(config_dir)

        self.config_file = self.config_dir / self.CONFIG_FILE_NAME
        self.use_env = use_env
        # _stored - то, что в файле; _config - с учётом окружения
        self._stored: Optional[ClientConfig] = None
        self._config: Optional[ClientConfig] = None

    @staticmethod
    def _default_config() -> ClientConfig:
        return ClientConfig(
            api_url=DEFAULT_API_URL,
            model=DEFAULT_MODEL,
            ui_url=DEFAULT_UI_URL,
        )

    def _apply_env(self, config: ClientConfig) -> ClientConfig:
        """Переопределить поля значениями из окружения."""
        if not self.use_env:
            return config
        updates = {
            field: os.environ[var]
            for var, field in ENV_OVERRIDES.items()
            if os.environ.get(var)
        }
        if updates:
            logger.debug(f"Config overridden from environment: {sorted(updates)}")
            config = config.model_copy(update=updates)
        return config

    def load(self) -> ClientConfig:
        """
        Прочитать config.json (один раз за жизнь менеджера).

        Нет файла или он битый - значения по умолчанию; окружение
        применяется поверх в обоих случаях.
        """
        if self._config is not None:
            return self._config

        if not self.config_file.exists():
            self._stored = self._default_config()
            self._config = self._apply_env(self._stored)
            return self._config

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            config = ClientConfig(**{"api_url": DEFAULT_API_URL, **data})
        except (json.JSONDecodeError, TypeError, PydanticValidationError) as e:
            # Поврежденный файл - используем конфигурацию по умолчанию
            logger.warning(f"Config file {self.config_file} is corrupted, using defaults: {e}")
            config = self._default_config()

        self._stored = config
        self._config = self._apply_env(config)
        return self._config

    def save(self, config: Optional[ClientConfig] = None) -> None:
        """Записать config (или текущую конфигурацию) в config.json.

        Значения из окружения в файл не попадают.
        """
        if config is not None:
            self._stored = config
            self._config = self._apply_env(config)

        if self._stored is None:
            return

        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(self._stored.model_dump(), f, indent=2, ensure_ascii=False)

    def get_config(self) -> ClientConfig:
        return self._config if self._config is not None else self.load()

    def _update(self, **changes) -> ClientConfig:
        self.get_config()
        config = self._stored.model_copy(update=changes)
        self.save(config)
        return config

    def set_api_url(self, url: str) -> None:
        """
        Установить URL endpoint'а chat/completions.

        Args:
            url: URL (например, https://api.perplexity.ai/chat/completions)
        """
        self._update(api_url=url.rstrip("/"))

    def set_api_key(self, api_key: Optional[str]) -> None:
        """Установить API ключ (None - использовать токен из браузера)."""
        self._update(api_key=api_key or None)

    def set_model(self, model: str) -> None:
        """Установить модель."""
        self._update(model=model)

    # ===== ЛОКАЛЬНЫЕ ДАННЫЕ =====

    def set_data_dir(self, path: Optional[str]) -> None:
        """Папка для токена и истории; None - вернуть ~/.aichat/data."""
        self._update(data_dir=path)

    def get_data_dir(self) -> Path:
        """Папка для токена и истории разговоров (создаётся при обращении)."""
        custom = self.get_config().data_dir
        path = Path(custom) if custom else self.config_dir / "data"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_token_file(self) -> Path:
        """Путь к файлу с bearer-токеном."""
        return self.get_data_dir() / self.TOKEN_FILE_NAME

    def get_conversations_file(self) -> Path:
        """Путь к файлу с историей разговоров."""
        return self.get_data_dir() / self.CONVERSATIONS_FILE_NAME


# Общий на процесс менеджер
_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_dir: Optional[Path] = None) -> ConfigManager:
    """Общий менеджер; явный config_dir создаёт новый и делает его общим."""
    global _config_manager

    if _config_manager is None or config_dir is not None:
        _config_manager = ConfigManager(config_dir)

    return _config_manager
