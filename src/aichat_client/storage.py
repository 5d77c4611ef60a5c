"""
Локальное хранилище разговоров.

Все разговоры лежат в одном JSON-файле вида {"conversations": [...]},
самые свежие первыми.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from aichat_client.exceptions import StorageError
from aichat_client.models import Conversation

logger = logging.getLogger(__name__)


class ConversationStore:
    """Файловое хранилище разговоров."""

    def __init__(self, path: Path):
        """
        Args:
            path: Путь к conversations.json
        """
        self.path = Path(path)

    def init(self) -> None:
        """Создать директорию и пустой файл, если их нет."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._write([])
            logger.info(f"Created conversation store {self.path}")

    def _write(self, conversations: List[Conversation]) -> None:
        data = {"conversations": [c.model_dump() for c in conversations]}
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise StorageError(f"Cannot write {self.path}: {e}") from e

    def load_conversations(self) -> List[Conversation]:
        """
        Загрузить все разговоры.

        Returns:
            Список разговоров (пустой, если файл отсутствует или повреждён)
        """
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return [Conversation(**item) for item in data.get("conversations", [])]
        except (OSError, json.JSONDecodeError, AttributeError, TypeError, PydanticValidationError) as e:
            logger.error(f"Failed to load conversations from {self.path}: {e}")
            return []

    def save_conversation(self, conversation: Conversation) -> None:
        """Сохранить разговор (заменяет существующий с тем же id) в начало списка."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conversations = [c for c in self.load_conversations() if c.id != conversation.id]
        conversations.insert(0, conversation)
        self._write(conversations)
        logger.debug(f"Saved conversation {conversation.id}")

    def delete_conversation(self, conversation_id: str) -> bool:
        """
        Удалить разговор.

        Returns:
            True, если разговор был найден и удалён
        """
        conversations = self.load_conversations()
        remaining = [c for c in conversations if c.id != conversation_id]
        if len(remaining) == len(conversations):
            return False
        self._write(remaining)
        logger.info(f"Deleted conversation {conversation_id}")
        return True

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Найти разговор по id."""
        for conversation in self.load_conversations():
            if conversation.id == conversation_id:
                return conversation
        return None

    @staticmethod
    def create_conversation(title: str = "New Conversation") -> Conversation:
        """Создать новый разговор (без сохранения)."""
        return Conversation(title=title)
