"""
CLI интерфейс для AI Chat Client.

Использование:
    aichat login --token YOUR_TOKEN
    aichat ask "Что такое ряд Тейлора?"
    aichat chat list
    aichat render answer.md --output answer.html
    aichat config set-model sonar-pro
"""

import sys
import os
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

# Windows кодировка
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")

import click
import httpx
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markdown import Markdown

from aichat_client.auth import parse_storage_dump
from aichat_client.client import ChatClient
from aichat_client.config import ConfigManager
from aichat_client.exceptions import AIChatError, AuthenticationError
from aichat_client.markdown_formatter import format_message, format_user_message
from aichat_client.math_renderer import MATHML, UNICODE
from aichat_client.models import TokenData

console = Console()


def get_config(ctx) -> ConfigManager:
    """Менеджер конфигурации для текущего вызова."""
    if "config" not in ctx.obj:
        ctx.obj["config"] = ConfigManager(ctx.obj.get("config_dir"))
    return ctx.obj["config"]


def get_client(ctx) -> ChatClient:
    """Получить клиент с текущей конфигурацией."""
    return ChatClient(config_manager=get_config(ctx))


def error(message: str) -> None:
    """Вывести ошибку."""
    console.print(f"[red]✗[/red] {message}", highlight=False)


def success(message: str) -> None:
    """Вывести успех."""
    console.print(f"[green]✓[/green] {message}", highlight=False)


def info(message: str) -> None:
    """Вывести информацию."""
    console.print(f"[blue]ℹ[/blue] {message}", highlight=False)


def mask(secret: Optional[str]) -> str:
    if not secret:
        return "не задан"
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}…{secret[-4:]}"


@click.group()
@click.option(
    "--config-dir",
    envvar="AICHAT_CONFIG_DIR",
    type=click.Path(file_okay=False, path_type=Path),
    help="Директория конфигурации (по умолчанию: ~/.aichat)"
)
@click.option("--verbose", "-v", is_flag=True, help="Подробный лог")
@click.pass_context
def main(ctx, config_dir: Optional[Path], verbose: bool):
    """AI Chat CLI - чат с моделью и рендер ответов в HTML."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir


# ===== RENDER =====

@main.command()
@click.argument("file", type=click.File("r", encoding="utf-8"), default="-")
@click.option("--user", "as_user", is_flag=True, help="Рендерить как сообщение пользователя")
@click.option(
    "--math", "math_output",
    type=click.Choice([MATHML, UNICODE]),
    default=MATHML,
    show_default=True,
    help="Формат формул"
)
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Файл для HTML")
def render(file, as_user: bool, math_output: str, output: Optional[Path]):
    """Преобразовать markdown из FILE (или stdin) в HTML."""
    text = file.read()
    result = format_user_message(text) if as_user else format_message(text, math_output)

    if output:
        output.write_text(result, encoding="utf-8")
        success(f"HTML записан в {output}")
    else:
        # click.echo: rich разобрал бы [..] как разметку
        click.echo(result)


# ===== AUTH COMMANDS =====

@main.command()
@click.option("--token", "-t", help="Bearer-токен из сессии браузера")
@click.option(
    "--storage",
    type=click.File("r", encoding="utf-8"),
    help="JSON-дамп localStorage залогиненной вкладки (JSON.stringify(localStorage))"
)
@click.option("--open", "open_ui", is_flag=True, help="Открыть веб-интерфейс и вставить дамп localStorage")
@click.option("--expires-in", type=int, default=3600, show_default=True, help="Срок жизни токена в секундах")
@click.pass_context
def login(ctx, token: Optional[str], storage, open_ui: bool, expires_in: int):
    """Сохранить bearer-токен сессии."""
    manager = get_client(ctx).token_manager

    raw_storage = storage.read() if storage is not None else None
    if open_ui:
        ui_url = get_config(ctx).get_config().ui_url
        info(f"Открываю {ui_url}")
        click.launch(ui_url)
        if raw_storage is None and not token:
            info("Войдите, затем выполните в консоли браузера: copy(JSON.stringify(localStorage))")
            raw_storage = click.prompt("Дамп localStorage")

    if raw_storage is not None:
        try:
            data = parse_storage_dump(raw_storage)
        except ValueError as e:
            error(f"Некорректный дамп localStorage: {e}")
            sys.exit(1)
        if not manager.capture_from_storage(data):
            error("Токен в localStorage не найден")
            sys.exit(1)
    elif token:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        manager.update_token_data(TokenData(
            access_token=token.strip(),
            expires_at=int(expires_at.timestamp() * 1000),
        ))
    else:
        error("Укажите --token, --storage или --open")
        sys.exit(1)

    success("Токен сохранён")
    minutes_left = (manager.token_data.expires_at // 1000 - int(datetime.now(timezone.utc).timestamp())) // 60
    info(f"Токен истекает через {minutes_left} минут")


@main.command()
@click.pass_context
def logout(ctx):
    """Удалить сохранённый токен."""
    client = get_client(ctx)
    client.token_manager.clear()
    success("Вы вышли из системы")


# ===== CONFIG COMMANDS =====

@main.group()
def config():
    """Управление конфигурацией клиента."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx):
    """Показать текущую конфигурацию."""
    manager = get_config(ctx)
    cfg = manager.get_config()

    table = Table(title="Конфигурация", show_header=False)
    table.add_column("Параметр", style="cyan")
    table.add_column("Значение")

    table.add_row("API URL", cfg.api_url)
    table.add_row("API Key", mask(cfg.api_key))
    table.add_row("Модель", cfg.model)
    table.add_row("UI URL", cfg.ui_url)
    table.add_row("Max tokens", str(cfg.max_tokens))
    table.add_row("Temperature", str(cfg.temperature))
    table.add_row("Данные", str(manager.get_data_dir()))

    console.print(table)


@config.command("set-url")
@click.argument("url")
@click.pass_context
def config_set_url(ctx, url: str):
    """Установить URL endpoint'а chat/completions."""
    get_config(ctx).set_api_url(url)
    success(f"API URL: [bold]{url.rstrip('/')}[/bold]")


@config.command("set-model")
@click.argument("name")
@click.pass_context
def config_set_model(ctx, name: str):
    """Установить модель."""
    get_config(ctx).set_model(name)
    success(f"Модель изменена на: [bold]{name}[/bold]")


@config.command("set-key")
@click.argument("key")
@click.pass_context
def config_set_key(ctx, key: str):
    """Установить API ключ ('none' для сброса)."""
    value = None if key.lower() == "none" else key
    get_config(ctx).set_api_key(value)
    success("API ключ сброшен" if value is None else f"API ключ сохранён: {mask(value)}")


# ===== CHAT COMMANDS =====

@main.command()
@click.argument("message")
@click.option("--conversation", "-c", "conversation_id", help="ID разговора")
@click.option("--web-search", is_flag=True, help="Разрешить поиск в интернете")
@click.pass_context
def ask(ctx, message: str, conversation_id: Optional[str], web_search: bool):
    """Задать вопрос модели."""
    try:
        client = get_client(ctx)

        if conversation_id:
            conversation = client.get_conversation(conversation_id)
            if conversation is None:
                error(f"Разговор {conversation_id} не найден")
                sys.exit(1)
        else:
            conversation = client.new_conversation()

        console.print("\n[dim]Вы:[/dim]")
        console.print(message, markup=False, highlight=False)
        console.print()

        with console.status("Ожидание ответа..."):
            reply = client.send_message(conversation, message, web_search=web_search)

        console.print(Panel(
            Markdown(reply.text),
            title="Ассистент",
            border_style="green"
        ))
        info(f"Разговор: {conversation.id}")

    except AuthenticationError as e:
        error(f"{e.message}")
        sys.exit(1)
    except AIChatError as e:
        error(f"Ошибка: {e.message}")
        sys.exit(1)


@main.group()
def chat():
    """Управление историей разговоров."""
    pass


@chat.command("list")
@click.option("--limit", "-n", default=20, show_default=True, help="Количество разговоров")
@click.pass_context
def chat_list(ctx, limit: int):
    """Список разговоров."""
    conversations = get_client(ctx).list_conversations()[:limit]

    if not conversations:
        info("Разговоров пока нет")
        return

    table = Table(title="Разговоры")
    table.add_column("ID", style="dim")
    table.add_column("Заголовок")
    table.add_column("Сообщений", justify="right")
    table.add_column("Создан")

    for conversation in conversations:
        table.add_row(
            conversation.id,
            conversation.title,
            str(len(conversation.messages)),
            conversation.timestamp[:16].replace("T", " "),
        )

    console.print(table)


@chat.command("show")
@click.argument("conversation_id")
@click.pass_context
def chat_show(ctx, conversation_id: str):
    """Показать разговор."""
    conversation = get_client(ctx).get_conversation(conversation_id)
    if conversation is None:
        error(f"Разговор {conversation_id} не найден")
        sys.exit(1)

    console.print(Panel(f"[bold]{conversation.title}[/bold]", border_style="blue"))

    for msg in conversation.messages:
        time = msg.timestamp[11:16]
        if msg.is_user:
            console.print(f"\n[bold blue]Вы[/bold blue] [dim]{time}[/dim]")
            console.print(msg.text, markup=False)
        else:
            console.print(f"\n[bold green]Ассистент[/bold green] [dim]{time}[/dim]")
            console.print(Markdown(msg.text))


@chat.command("delete")
@click.argument("conversation_id")
@click.pass_context
def chat_delete(ctx, conversation_id: str):
    """Удалить разговор."""
    if not get_client(ctx).delete_conversation(conversation_id):
        error(f"Разговор {conversation_id} не найден")
        sys.exit(1)
    success(f"Разговор {conversation_id} удалён")


# ===== HEALTH =====

@main.command()
@click.pass_context
def health(ctx):
    """Проверить авторизацию и доступность endpoint'а."""
    client = get_client(ctx)
    cfg = get_config(ctx).get_config()
    ok = True

    if cfg.api_key:
        success("Используется API ключ")
    elif client.token_manager.load() is not None and client.token_manager.is_token_valid():
        success("Токен сессии действителен")
    else:
        error("Нет API ключа и действующего токена. Выполните: aichat login")
        ok = False

    try:
        with httpx.Client(timeout=10.0) as http:
            response = http.get(cfg.api_url)
        # Любой HTTP-ответ (даже 405 на GET) означает, что endpoint доступен
        success(f"Endpoint доступен: {cfg.api_url} (HTTP {response.status_code})")
    except httpx.HTTPError as e:
        error(f"Не удалось подключиться к {cfg.api_url}: {e}")
        ok = False

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
