"""
Pydantic модели клиента.

Модели чата совпадают с форматом OpenAI-совместимого endpoint'а
/chat/completions, модели разговоров - с форматом локального хранилища.
"""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, Field


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ===== RENDER MODELS =====

class MathFragment(BaseModel):
    """Фрагмент LaTeX, вынесенный из текста перед markdown-преобразованием."""
    model_config = ConfigDict(frozen=True)

    formula: str
    is_display: bool = False


class Extraction(BaseModel):
    """Текст с плейсхолдерами и упорядоченный список фрагментов."""
    text: str
    fragments: List[MathFragment] = Field(default_factory=list)
    nonce: str = Field(default="", description="Метка плейсхолдеров этого вызова")


# ===== CONVERSATION MODELS =====

class ChatMessage(BaseModel):
    """Сообщение в разговоре."""
    text: str
    is_user: bool
    timestamp: str = Field(default_factory=_now_iso)


class Conversation(BaseModel):
    """Разговор, как он хранится в conversations.json."""
    id: str = Field(default_factory=lambda: str(_now_ms()))
    title: str = "New Conversation"
    timestamp: str = Field(default_factory=_now_iso)
    messages: List[ChatMessage] = Field(default_factory=list)


# ===== API MODELS =====

class CompletionMessage(BaseModel):
    """Сообщение в формате chat/completions."""
    role: Literal["system", "user", "assistant"]
    content: str


class CompletionChoice(BaseModel):
    """Вариант ответа модели."""
    index: int = 0
    message: CompletionMessage
    finish_reason: Optional[str] = None


class CompletionUsage(BaseModel):
    """Расход токенов."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionResponse(BaseModel):
    """Ответ endpoint'а /chat/completions."""
    id: Optional[str] = None
    model: Optional[str] = None
    conversation_id: Optional[str] = None
    choices: List[CompletionChoice] = Field(default_factory=list)
    usage: Optional[CompletionUsage] = None
    citations: List[str] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Текст первого варианта ответа."""
        if not self.choices:
            return ""
        return self.choices[0].message.content


class ErrorResponse(BaseModel):
    """Ответ с ошибкой."""
    error: Any = None
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


# ===== LOCAL CONFIG MODELS =====

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant. When providing code examples, always use "
    "markdown code blocks with language specification. For lists, use proper "
    "markdown formatting. For emphasis, use **bold** text."
)


class TokenData(BaseModel):
    """Bearer-токен, захваченный из сессии браузера."""
    access_token: str
    expires_at: int = Field(description="Время истечения, миллисекунды epoch")


class ClientConfig(BaseModel):
    """Конфигурация клиента."""
    api_url: str
    api_key: Optional[str] = None
    model: str = "sonar"
    ui_url: str = "http://localhost:3000"
    max_tokens: int = 1024
    temperature: float = 0.7
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    data_dir: Optional[str] = Field(
        default=None,
        description="Папка для локальных данных (разговоры, токен). None = ~/.aichat/data"
    )
