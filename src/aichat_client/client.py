"""
Основной клиент AI Chat.

Держит контекст каждого разговора, отправляет сообщения модели
и сохраняет историю в локальное хранилище.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from aichat_client.auth import TokenManager
from aichat_client.config import ConfigManager, get_config_manager
from aichat_client.http_client import HTTPClient
from aichat_client.models import ChatMessage, CompletionMessage, Conversation
from aichat_client.storage import ConversationStore

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Conversation"
TITLE_LENGTH = 30


def make_title(text: str) -> str:
    """Заголовок разговора из первого сообщения пользователя."""
    text = " ".join(text.split())
    if len(text) > TITLE_LENGTH:
        return text[:TITLE_LENGTH] + "..."
    return text


class ChatClient:
    """
    Клиент для общения с моделью.

    Пример использования:

    ```python
    client = ChatClient()
    conversation = client.new_conversation()
    reply = client.send_message(conversation, "Что такое ряд Тейлора?")
    print(reply.text)
    ```
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        config_manager: Optional[ConfigManager] = None,
        http_client: Optional[HTTPClient] = None,
        store: Optional[ConversationStore] = None
    ):
        """
        Инициализация клиента.

        Args:
            config_dir: Директория для хранения конфигурации
            config_manager: Готовый менеджер конфигурации
            http_client: Готовый HTTP клиент
            store: Готовое хранилище разговоров
        """
        self._config_manager = config_manager or get_config_manager(config_dir)
        self._http = http_client or HTTPClient(config_manager=self._config_manager)
        self._store = store or ConversationStore(self._config_manager.get_conversations_file())
        self._contexts: Dict[str, List[CompletionMessage]] = {}

    @property
    def http(self) -> HTTPClient:
        return self._http

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def token_manager(self) -> TokenManager:
        return self._http.token_manager

    @property
    def is_authenticated(self) -> bool:
        """Есть ли API ключ или действующий токен."""
        return self._http.is_authenticated

    def _system_message(self) -> CompletionMessage:
        return CompletionMessage(
            role="system",
            content=self._config_manager.get_config().system_prompt,
        )

    # ===== CONTEXT =====

    def get_context(self, conversation_id: str) -> List[CompletionMessage]:
        """Контекст разговора (начинается с системного промпта)."""
        if conversation_id not in self._contexts:
            self._contexts[conversation_id] = [self._system_message()]
        return list(self._contexts[conversation_id])

    def set_context(self, conversation_id: str, messages: List[CompletionMessage]) -> None:
        """Заменить контекст; системный промпт добавляется, если его нет."""
        messages = list(messages)
        if not messages or messages[0].role != "system":
            messages.insert(0, self._system_message())
        self._contexts[conversation_id] = messages

    def reset_context(self, conversation_id: str) -> None:
        """Сбросить контекст разговора."""
        self._contexts.pop(conversation_id, None)

    def _restore_context(self, conversation: Conversation) -> None:
        """Восстановить контекст из сохранённой истории."""
        if conversation.id in self._contexts or not conversation.messages:
            return
        self.set_context(conversation.id, [
            CompletionMessage(role="user" if m.is_user else "assistant", content=m.text)
            for m in conversation.messages
        ])

    # ===== CONVERSATIONS =====

    def new_conversation(self, title: str = DEFAULT_TITLE) -> Conversation:
        """Создать разговор (сохраняется при первом сообщении)."""
        return self._store.create_conversation(title)

    def list_conversations(self) -> List[Conversation]:
        return self._store.load_conversations()

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return self._store.get_conversation(conversation_id)

    def delete_conversation(self, conversation_id: str) -> bool:
        """Удалить разговор вместе с его контекстом."""
        self.reset_context(conversation_id)
        return self._store.delete_conversation(conversation_id)

    # ===== MESSAGES =====

    def send_message(
        self,
        conversation: Conversation,
        text: str,
        *,
        web_search: bool = False
    ) -> ChatMessage:
        """
        Отправить сообщение пользователя.

        Args:
            conversation: Разговор (изменяется на месте)
            text: Текст сообщения
            web_search: Разрешить модели поиск в интернете

        Returns:
            Ответ ассистента

        Raises:
            AuthenticationError: Нет API ключа и токена
            APIError: Ошибка API или сети
        """
        self._restore_context(conversation)
        context = self.get_context(conversation.id)
        context.append(CompletionMessage(role="user", content=text))

        response = self._http.chat_completion(context, web_search=web_search)
        answer = response.text

        context.append(CompletionMessage(role="assistant", content=answer))
        self._contexts[conversation.id] = context

        is_first = not any(m.is_user for m in conversation.messages)
        conversation.messages.append(ChatMessage(text=text, is_user=True))
        assistant_message = ChatMessage(text=answer, is_user=False)
        conversation.messages.append(assistant_message)

        if is_first and conversation.title == DEFAULT_TITLE:
            conversation.title = make_title(text)

        self._store.save_conversation(conversation)
        logger.info(f"Conversation {conversation.id}: {len(conversation.messages)} messages")
        return assistant_message

    def close(self) -> None:
        """Закрыть клиент."""
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
