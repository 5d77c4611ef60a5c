"""
AI Chat Python Client.

Чат с OpenAI-совместимой моделью и рендер ответов
(markdown, LaTeX, подсветка кода) в HTML.
"""

from aichat_client.client import ChatClient
from aichat_client.markdown_formatter import format_message, format_user_message
from aichat_client.models import (
    MathFragment,
    ChatMessage,
    Conversation,
    TokenData,
    ClientConfig,
    ChatCompletionResponse,
)
from aichat_client.exceptions import (
    AIChatError,
    AuthenticationError,
    TokenExpiredError,
    APIError,
    NotFoundError,
    ServerError,
    ValidationError,
    TransportError,
    StorageError,
    RenderError,
    MathRenderError,
)

__version__ = "1.0.0"

__all__ = [
    # Client
    "ChatClient",
    # Rendering
    "format_message",
    "format_user_message",
    # Models
    "MathFragment",
    "ChatMessage",
    "Conversation",
    "TokenData",
    "ClientConfig",
    "ChatCompletionResponse",
    # Exceptions
    "AIChatError",
    "AuthenticationError",
    "TokenExpiredError",
    "APIError",
    "NotFoundError",
    "ServerError",
    "ValidationError",
    "TransportError",
    "StorageError",
    "RenderError",
    "MathRenderError",
]
