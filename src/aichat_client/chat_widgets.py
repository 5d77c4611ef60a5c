# -*- coding: utf-8 -*-
"""
Виджеты чата: пузыри сообщений, индикатор ожидания, системные сообщения.
"""

import sys
import logging
import traceback

from PyQt6.QtWidgets import (
    QFrame, QHBoxLayout, QLabel, QTextBrowser, QApplication
)
from PyQt6.QtCore import Qt, QTimer, QUrl
from PyQt6.QtGui import QFont, QDesktopServices

from aichat_client.highlighting import code_style_css
from aichat_client.markdown_formatter import (
    code_block_texts,
    copy_target,
    format_message,
    format_user_message,
    set_copy_label,
)
from aichat_client.math_renderer import UNICODE

logger = logging.getLogger(__name__)

COPY_LABEL = "Copy"
COPIED_LABEL = "Copied"
COPY_FEEDBACK_MS = 2000

# QTextBrowser понимает только подмножество CSS
MESSAGE_CSS = """
.code-block-wrapper { margin: 6px 0; }
.copy-button { color: #888; font-size: 9px; text-decoration: none; }
pre.hljs { background: #272822; color: #f8f8f2; padding: 8px; font-family: Consolas, monospace; }
code { font-family: Consolas, monospace; background: #f0f0f0; }
pre.hljs code { background: #272822; }
.math-block { margin: 8px 0; text-align: center; font-style: italic; }
.math-inline { font-style: italic; }
.citation-reference { color: #0066cc; font-size: 8px; }
.markdown-list { margin-left: 12px; }
.error { color: #dc3545; white-space: pre-wrap; }
table { border-collapse: collapse; }
th, td { border: 1px solid #ccc; padding: 4px 8px; }
"""


def message_stylesheet() -> str:
    """Стили документа: классы конвейера + токены Pygments."""
    return MESSAGE_CSS + code_style_css("pre.hljs")


def install_exception_hook():
    """Устанавливает глобальный обработчик необработанных исключений для PyQt6."""
    def _exception_hook(exc_type, exc_value, exc_tb):
        msg = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
        logger.critical(f"Unhandled exception:\n{msg}")
        # Вызов дефолтного обработчика (чтобы Python мог завершить процесс)
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _exception_hook


class MessageBubbleWidget(QFrame):
    """Пузырь сообщения (пользователь или ассистент)."""

    def __init__(self, text: str, is_user: bool, label: str = "", parent=None):
        super().__init__(parent)
        self._adjusting = False  # Защита от рекурсии при пересчёте высоты
        self._is_user = is_user
        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 5, 0, 5)
        layout.setSpacing(0)

        bubble = QTextBrowser()
        # Ссылки обрабатываются вручную: copy:N копирует блок кода
        bubble.setOpenLinks(False)
        bubble.anchorClicked.connect(self._on_anchor_clicked)
        bubble.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        bubble.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        bubble.setFont(QFont("Segoe UI", 11))
        bubble.document().setDefaultStyleSheet(message_stylesheet())
        self._bubble = bubble

        if is_user:
            layout.addStretch(2)
            bubble.setStyleSheet("""
                QTextBrowser {
                    background: #e0e0e0; color: #333;
                    border: none; border-radius: 18px;
                    padding: 12px 16px;
                }
            """)
            self._header = (
                '<div style="font-size: 9px; color: #666; font-weight: bold; '
                f'margin-bottom: 6px; text-align: right;">{label or "Вы"}</div>'
            )
            self._body = f'<div style="text-align: right;">{format_user_message(text)}</div>'
            layout.addWidget(bubble, 8)
        else:
            bubble.setStyleSheet("""
                QTextBrowser {
                    background: #ffffff; color: #333;
                    border: 1px solid #e0e0e0; border-radius: 18px;
                    padding: 12px 16px;
                }
            """)
            self._header = (
                '<div style="font-size: 9px; color: #009933; font-weight: bold; '
                f'margin-bottom: 6px;">{label or "Ассистент"}</div>'
            )
            self._body = format_message(text, math_output=UNICODE)
            layout.addWidget(bubble, 8)
            layout.addStretch(2)

        self._code_blocks = code_block_texts(self._body)
        self._render(self._body)

        # Первоначальная подгонка высоты
        self._apply_height()

    @property
    def html(self) -> str:
        return self._body

    def _render(self, body: str) -> None:
        self._bubble.setHtml(f"{self._header}<div>{body}</div>")

    def _on_anchor_clicked(self, url: QUrl) -> None:
        index = copy_target(url.toString())
        if index is None:
            QDesktopServices.openUrl(url)
            return
        self.copy_code_block(index)

    def copy_code_block(self, index: int) -> bool:
        """Скопировать блок кода в буфер обмена и показать "Copied" на 2 секунды."""
        if not 0 <= index < len(self._code_blocks):
            logger.warning(f"No code block #{index} to copy")
            return False

        QApplication.clipboard().setText(self._code_blocks[index])
        self._render(set_copy_label(self._body, index, COPIED_LABEL))
        QTimer.singleShot(COPY_FEEDBACK_MS, lambda: self._render(self._body))
        return True

    def _apply_height(self):
        """Вычислить и применить высоту QTextBrowser по содержимому."""
        self._bubble.document().setTextWidth(self._bubble.viewport().width() or 400)
        doc_height = self._bubble.document().size().height()
        h = int(doc_height) + 30
        if h > 2000:
            self._bubble.setMaximumHeight(2000)
            self._bubble.setMinimumHeight(60)
            self._bubble.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAsNeeded)
        else:
            self._bubble.setFixedHeight(max(h, 40))

    def resizeEvent(self, event):
        """Пересчитать высоту при изменении ширины виджета."""
        super().resizeEvent(event)
        if self._adjusting:
            return
        self._adjusting = True
        try:
            self._apply_height()
        finally:
            self._adjusting = False


class TypingIndicatorWidget(QLabel):
    """Анимированные точки, пока ждём ответ модели."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self._dots = 0
        self.setStyleSheet("color: #888; font-size: 14px; padding: 4px 12px;")
        self._timer = QTimer(self)
        self._timer.setInterval(400)
        self._timer.timeout.connect(self._tick)
        self._tick()

    def _tick(self):
        self._dots = self._dots % 3 + 1
        self.setText("●" * self._dots)

    def start(self):
        self.show()
        self._timer.start()

    def stop(self):
        self._timer.stop()
        self.hide()


class SystemMessageWidget(QLabel):
    """Системное сообщение (успех, ошибка)."""

    _COLORS = {
        "info": "#6c757d",
        "warning": "#ffc107",
        "error": "#dc3545",
        "success": "#28a745",
    }

    def __init__(self, text: str, msg_type: str = "info", parent=None):
        super().__init__(text, parent)
        color = self._COLORS.get(msg_type, self._COLORS["info"])
        self.setTextFormat(Qt.TextFormat.PlainText)
        self.setWordWrap(True)
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.setStyleSheet(
            f"color: {color}; font-size: 10px; font-style: italic; padding: 2px 0;"
        )
