# -*- coding: utf-8 -*-
"""
AI Chat Client GUI (PyQt6).
"""

import sys
import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from PyQt6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QLineEdit, QPushButton, QLabel, QSplitter, QListWidget, QListWidgetItem,
    QScrollArea, QMenu, QDialog, QDialogButtonBox, QMessageBox,
    QGroupBox, QFormLayout, QSpinBox, QCheckBox, QPlainTextEdit
)
from PyQt6.QtCore import Qt, QThread, pyqtSignal, QTimer, QUrl
from PyQt6.QtGui import QFont, QAction, QDesktopServices

from aichat_client.auth import TokenManager, parse_storage_dump
from aichat_client.chat_widgets import (
    MessageBubbleWidget,
    SystemMessageWidget,
    TypingIndicatorWidget,
    install_exception_hook,
)
from aichat_client.client import ChatClient
from aichat_client.config import get_config_manager
from aichat_client.exceptions import AIChatError, AuthenticationError
from aichat_client.models import ChatMessage, Conversation, TokenData

logger = logging.getLogger(__name__)


class SendWorker(QThread):
    """Worker: отправка сообщения вне UI-потока."""

    completed = pyqtSignal(object)  # ChatMessage
    error_occurred = pyqtSignal(str)
    auth_required = pyqtSignal(str)  # сессия истекла или токена нет

    def __init__(self, client: ChatClient, conversation: Conversation, message: str, web_search: bool = False):
        super().__init__()
        self.client = client
        self.conversation = conversation
        self.message = message
        self.web_search = web_search

    def run(self):
        try:
            reply = self.client.send_message(
                self.conversation, self.message, web_search=self.web_search
            )
            self.completed.emit(reply)
        except AuthenticationError as e:
            self.auth_required.emit(f"Ошибка авторизации: {e.message}")
        except AIChatError as e:
            self.error_occurred.emit(e.message)
        except Exception as e:
            logger.exception("Send failed")
            self.error_occurred.emit(str(e))


class LoginDialog(QDialog):
    """
    Вход через сессию браузера.

    Открывает веб-интерфейс (UI_URL); пользователь входит и вставляет
    дамп localStorage либо сам bearer-токен.
    """

    def __init__(self, ui_url: str, parent=None):
        super().__init__(parent)
        self.ui_url = ui_url
        self.setWindowTitle("Авторизация - AI Chat")
        self.setMinimumWidth(500)

        layout = QVBoxLayout(self)

        browser_group = QGroupBox("Сессия браузера")
        browser_layout = QVBoxLayout(browser_group)
        self.open_btn = QPushButton(f"Открыть {ui_url}")
        self.open_btn.clicked.connect(self.open_ui)
        browser_layout.addWidget(self.open_btn)
        browser_layout.addWidget(QLabel(
            "После входа выполните в консоли браузера\n"
            "copy(JSON.stringify(localStorage)) и вставьте результат:"
        ))
        self.storage_edit = QPlainTextEdit()
        self.storage_edit.setPlaceholderText('{"accessToken": "...", "tokenExpiresAt": "..."}')
        self.storage_edit.setMaximumHeight(90)
        browser_layout.addWidget(self.storage_edit)
        layout.addWidget(browser_group)

        token_group = QGroupBox("Или токен вручную")
        form = QFormLayout(token_group)
        self.token_edit = QLineEdit()
        self.token_edit.setPlaceholderText("accessToken из localStorage")
        self.token_edit.setEchoMode(QLineEdit.EchoMode.Password)
        form.addRow("Токен:", self.token_edit)

        self.expires_spin = QSpinBox()
        self.expires_spin.setRange(5, 24 * 60)
        self.expires_spin.setValue(60)
        self.expires_spin.setSuffix(" мин")
        form.addRow("Срок жизни:", self.expires_spin)
        layout.addWidget(token_group)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok |
            QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def open_ui(self):
        logger.info(f"Opening web UI {self.ui_url}")
        QDesktopServices.openUrl(QUrl(self.ui_url))

    def get_storage(self) -> Optional[Dict[str, Any]]:
        """Вставленный дамп localStorage; None, если пусто или не JSON-объект."""
        raw = self.storage_edit.toPlainText().strip()
        if not raw:
            return None
        try:
            return parse_storage_dump(raw)
        except ValueError as e:
            logger.warning(f"Pasted localStorage dump is invalid: {e}")
            return None

    def get_token_data(self) -> Optional[TokenData]:
        token = self.token_edit.text().strip()
        if not token:
            return None
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=self.expires_spin.value())
        return TokenData(access_token=token, expires_at=int(expires_at.timestamp() * 1000))

    def apply(self, token_manager: TokenManager) -> bool:
        """Сохранить токен из дампа или из поля ввода. True при успехе."""
        storage = self.get_storage()
        if storage is not None and token_manager.capture_from_storage(storage):
            return True
        token_data = self.get_token_data()
        if token_data is None:
            return False
        token_manager.update_token_data(token_data)
        return True


class SettingsDialog(QDialog):
    """Настройки endpoint'а и модели."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Настройки")
        self.setMinimumWidth(500)

        config = get_config_manager().get_config()

        layout = QVBoxLayout(self)
        form = QFormLayout()

        self.url_edit = QLineEdit(config.api_url)
        form.addRow("API URL:", self.url_edit)

        self.model_edit = QLineEdit(config.model)
        form.addRow("Модель:", self.model_edit)

        self.key_edit = QLineEdit(config.api_key or "")
        self.key_edit.setEchoMode(QLineEdit.EchoMode.Password)
        self.key_edit.setPlaceholderText("пусто - использовать токен сессии")
        form.addRow("API Key:", self.key_edit)

        layout.addLayout(form)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Save |
            QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self._save)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def _save(self):
        manager = get_config_manager()
        if self.url_edit.text().strip():
            manager.set_api_url(self.url_edit.text().strip())
        if self.model_edit.text().strip():
            manager.set_model(self.model_edit.text().strip())
        manager.set_api_key(self.key_edit.text().strip() or None)
        self.accept()


class ConversationPanel(QWidget):
    """Левая панель со списком разговоров."""

    conversation_selected = pyqtSignal(str)  # conversation_id
    new_conversation_requested = pyqtSignal()
    delete_requested = pyqtSignal(str)  # conversation_id

    def __init__(self, parent=None):
        super().__init__(parent)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(5, 5, 5, 5)

        self.new_chat_btn = QPushButton("+ Новый чат")
        self.new_chat_btn.clicked.connect(self.new_conversation_requested.emit)
        layout.addWidget(self.new_chat_btn)

        self.chat_list = QListWidget()
        self.chat_list.itemClicked.connect(self._on_item_clicked)
        # Контекстное меню для удаления
        self.chat_list.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.chat_list.customContextMenuRequested.connect(self._on_context_menu)
        layout.addWidget(self.chat_list, 1)

    def set_conversations(self, conversations, current_id: Optional[str] = None):
        self.chat_list.clear()
        for conversation in conversations:
            item = QListWidgetItem(conversation.title)
            item.setData(Qt.ItemDataRole.UserRole, conversation.id)
            item.setToolTip(conversation.timestamp[:16].replace("T", " "))
            self.chat_list.addItem(item)
            if conversation.id == current_id:
                item.setSelected(True)

    def _on_item_clicked(self, item: QListWidgetItem):
        self.conversation_selected.emit(item.data(Qt.ItemDataRole.UserRole))

    def _on_context_menu(self, pos):
        item = self.chat_list.itemAt(pos)
        if item is None:
            return
        menu = QMenu(self)
        delete_action = menu.addAction("Удалить")
        if menu.exec(self.chat_list.mapToGlobal(pos)) == delete_action:
            self.delete_requested.emit(item.data(Qt.ItemDataRole.UserRole))


class ChatView(QWidget):
    """Область сообщений и строка ввода."""

    send_requested = pyqtSignal(str, bool)  # text, web_search

    def __init__(self, parent=None):
        super().__init__(parent)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(5, 5, 5, 5)

        self.scroll = QScrollArea()
        self.scroll.setWidgetResizable(True)
        self._messages_widget = QWidget()
        self._messages_layout = QVBoxLayout(self._messages_widget)
        self._messages_layout.addStretch()
        self.scroll.setWidget(self._messages_widget)
        layout.addWidget(self.scroll, 1)

        self.typing_indicator = TypingIndicatorWidget()
        self.typing_indicator.hide()
        layout.addWidget(self.typing_indicator)

        input_layout = QHBoxLayout()
        self.input_edit = QLineEdit()
        self.input_edit.setPlaceholderText("Сообщение...")
        self.input_edit.returnPressed.connect(self._on_send)
        input_layout.addWidget(self.input_edit, 1)

        self.web_search_check = QCheckBox("Поиск в интернете")
        input_layout.addWidget(self.web_search_check)

        self.send_btn = QPushButton("Отправить")
        self.send_btn.clicked.connect(self._on_send)
        input_layout.addWidget(self.send_btn)
        layout.addLayout(input_layout)

    def _on_send(self):
        text = self.input_edit.text().strip()
        if not text:
            return
        self.input_edit.clear()
        self.send_requested.emit(text, self.web_search_check.isChecked())

    def _add_widget(self, widget: QWidget):
        # Перед растяжкой в конце
        self._messages_layout.insertWidget(self._messages_layout.count() - 1, widget)
        QTimer.singleShot(50, self._scroll_to_bottom)

    def _scroll_to_bottom(self):
        bar = self.scroll.verticalScrollBar()
        bar.setValue(bar.maximum())

    def add_message(self, message: ChatMessage):
        self._add_widget(MessageBubbleWidget(message.text, message.is_user))

    def add_system_message(self, text: str, msg_type: str = "info"):
        self._add_widget(SystemMessageWidget(text, msg_type))

    def clear(self):
        while self._messages_layout.count() > 1:
            item = self._messages_layout.takeAt(0)
            if item.widget():
                item.widget().deleteLater()

    def set_busy(self, busy: bool):
        self.send_btn.setEnabled(not busy)
        self.input_edit.setEnabled(not busy)
        if busy:
            self.typing_indicator.start()
        else:
            self.typing_indicator.stop()


class MainWindow(QMainWindow):
    """Main application window."""

    def __init__(self):
        super().__init__()
        self.client = ChatClient()
        self.conversation: Optional[Conversation] = None
        self._worker: Optional[SendWorker] = None

        self.setWindowTitle("AI Chat")
        self.setMinimumSize(1000, 700)

        self._setup_menu()
        self._setup_ui()
        self._update_status()
        self._refresh_conversations()

    def _setup_menu(self):
        menubar = self.menuBar()

        file_menu = menubar.addMenu("Файл")

        login_action = QAction("Войти...", self)
        login_action.triggered.connect(self._show_login)
        file_menu.addAction(login_action)

        logout_action = QAction("Выйти", self)
        logout_action.triggered.connect(self._logout)
        file_menu.addAction(logout_action)

        file_menu.addSeparator()

        exit_action = QAction("Закрыть", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        settings_menu = menubar.addMenu("Настройки")
        settings_action = QAction("Настройки...", self)
        settings_action.triggered.connect(self._show_settings)
        settings_menu.addAction(settings_action)

    def _setup_ui(self):
        splitter = QSplitter(Qt.Orientation.Horizontal)

        self.left_panel = ConversationPanel()
        self.left_panel.setMinimumWidth(220)
        self.left_panel.setMaximumWidth(400)
        self.left_panel.conversation_selected.connect(self._on_conversation_selected)
        self.left_panel.new_conversation_requested.connect(self._new_conversation)
        self.left_panel.delete_requested.connect(self._on_conversation_delete)
        splitter.addWidget(self.left_panel)

        self.chat_view = ChatView()
        self.chat_view.send_requested.connect(self._send_message)
        splitter.addWidget(self.chat_view)

        splitter.setSizes([260, 740])
        self.setCentralWidget(splitter)

        self.auth_label = QLabel("")
        self.statusBar().addPermanentWidget(self.auth_label)

    def _update_status(self):
        config = get_config_manager().get_config()
        if config.api_key:
            auth = "API ключ"
        elif self.client.is_authenticated:
            auth = "токен сессии"
        else:
            auth = "не авторизован"
        self.auth_label.setText(f"{config.model} | {auth}")

    def _refresh_conversations(self):
        current = self.conversation.id if self.conversation else None
        self.left_panel.set_conversations(self.client.list_conversations(), current)

    # ===== ACTIONS =====

    def _show_login(self) -> bool:
        """Диалог входа; True, если токен сохранён."""
        dialog = LoginDialog(get_config_manager().get_config().ui_url, self)
        dialog.open_ui()
        if dialog.exec() != QDialog.DialogCode.Accepted:
            return False
        if not dialog.apply(self.client.token_manager):
            QMessageBox.warning(self, "Авторизация", "Токен не найден")
            return False
        self.statusBar().showMessage("Токен сохранён", 3000)
        self._update_status()
        return True

    def _ensure_authenticated(self) -> bool:
        if self.client.is_authenticated:
            return True
        return self._show_login() and self.client.is_authenticated

    def _logout(self):
        self.client.token_manager.clear()
        self._update_status()

    def _show_settings(self):
        if SettingsDialog(self).exec() == QDialog.DialogCode.Accepted:
            self._update_status()

    def _new_conversation(self):
        self.conversation = self.client.new_conversation()
        self.chat_view.clear()

    def _on_conversation_selected(self, conversation_id: str):
        conversation = self.client.get_conversation(conversation_id)
        if conversation is None:
            self._refresh_conversations()
            return
        self.conversation = conversation
        self.chat_view.clear()
        for message in conversation.messages:
            self.chat_view.add_message(message)

    def _on_conversation_delete(self, conversation_id: str):
        reply = QMessageBox.question(self, "Удаление", "Удалить разговор?")
        if reply != QMessageBox.StandardButton.Yes:
            return
        self.client.delete_conversation(conversation_id)
        if self.conversation and self.conversation.id == conversation_id:
            self._new_conversation()
        self._refresh_conversations()

    def _send_message(self, text: str, web_search: bool):
        if self._worker is not None and self._worker.isRunning():
            return
        if not self._ensure_authenticated():
            self.chat_view.add_system_message("Сообщение не отправлено: нужна авторизация", "error")
            return
        if self.conversation is None:
            self.conversation = self.client.new_conversation()

        self.chat_view.add_message(ChatMessage(text=text, is_user=True))
        self.chat_view.set_busy(True)

        self._worker = SendWorker(self.client, self.conversation, text, web_search)
        self._worker.completed.connect(self._on_reply)
        self._worker.error_occurred.connect(self._on_error)
        self._worker.auth_required.connect(self._on_auth_required)
        self._worker.finished.connect(lambda: self.chat_view.set_busy(False))
        self._worker.start()

    def _on_reply(self, message: ChatMessage):
        self.chat_view.add_message(message)
        self._refresh_conversations()

    def _on_error(self, message: str):
        logger.error(f"Send failed: {message}")
        self.chat_view.add_system_message(message, "error")
        self._update_status()

    def _on_auth_required(self, message: str):
        self._on_error(message)
        reply = QMessageBox.question(
            self, "Авторизация", "Сессия истекла. Войти снова через браузер?"
        )
        if reply == QMessageBox.StandardButton.Yes:
            self._show_login()


def run_gui():
    """Run GUI application."""
    if sys.platform == 'win32':
        os.environ['PYTHONIOENCODING'] = 'utf-8'

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    install_exception_hook()

    app = QApplication(sys.argv)
    app.setApplicationName("AI Chat")
    app.setStyle("Fusion")

    font = QFont("Segoe UI", 10)
    app.setFont(font)

    window = MainWindow()
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    run_gui()
