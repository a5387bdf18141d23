from __future__ import annotations

import logging
from html import escape
from typing import Optional

import markdown
from PySide6.QtCore import Qt
from PySide6.QtGui import QTextCursor, QTextOption
from PySide6.QtWidgets import QTextBrowser, QWidget

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = [
    "markdown.extensions.fenced_code",
    "markdown.extensions.nl2br",
    "markdown.extensions.sane_lists",
    "markdown.extensions.tables",
]


def render_markdown(text: str) -> str:
    """
    Convert assistant markdown to inline-styled HTML that QTextBrowser can show.
    """
    normalized_text = text.replace("\r\n", "\n").replace("\r", "\n")
    html_content = markdown.markdown(
        normalized_text,
        extensions=MARKDOWN_EXTENSIONS,
        output_format="html5",
    )
    heading_styles = {
        "h1": "color: #1A73E8; font-size: 18px; margin: 10px 0 6px 0;",
        "h2": "color: #1A73E8; font-size: 17px; margin: 10px 0 6px 0;",
        "h3": "color: #1967D2; font-size: 16px; margin: 8px 0 4px 0;",
        "h4": "color: #1967D2; font-size: 15px; margin: 8px 0 4px 0;",
    }
    for tag, style in heading_styles.items():
        html_content = html_content.replace(f"<{tag}>", f"<{tag} style=\"{style}\">")
    html_content = html_content.replace(
        "<pre>",
        "<pre style=\"background-color: #F1F3F4; color: #202124; padding: 10px; "
        "border-radius: 6px; border-left: 3px solid #4285F4; margin: 8px 0; "
        "white-space: pre-wrap; font-family: 'Roboto Mono', monospace; font-size: 13px;\">",
    )
    html_content = html_content.replace(
        "<code>",
        "<code style=\"background-color: #F1F3F4; color: #C5221F; padding: 2px 6px; "
        "border-radius: 4px; font-family: 'Roboto Mono', monospace; font-size: 13px;\">",
    )
    html_content = html_content.replace("<p>", "<p style=\"margin: 6px 0;\">")
    return html_content


class ChatDisplayWidget(QTextBrowser):
    """
    Conversation log with user bubbles on the right and analyst replies on the left.
    """

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.setObjectName("chat_display")
        self.setFocusPolicy(Qt.NoFocus)
        self.setOpenExternalLinks(True)
        self.setWordWrapMode(QTextOption.WrapAtWordBoundaryOrAnywhere)
        self.setReadOnly(True)

    def display_message(self, role: str, content: str) -> None:
        if role == "user":
            self.display_user_message(content)
        else:
            self.display_assistant_message(content)

    def display_user_message(self, user_text: str) -> None:
        safe_text = escape(user_text).replace("\n", "<br>")
        user_html = (
            '<div style="margin: 15px 0; text-align: right;">'
            '<div style="display: inline-block; max-width: 65%; background-color: #E8F0FE; '
            'color: #202124; padding: 14px; border-radius: 8px; text-align: left; '
            "font-size: 14px; line-height: 1.55;\">"
            '<strong style="color: #1A73E8; font-size: 11px;">YOU</strong><br>'
            f"{safe_text}"
            "</div>"
            "</div><br>"
        )
        self._append_html(user_html)

    def display_assistant_message(self, response_text: str) -> None:
        assistant_html = (
            '<div style="margin: 15px 0; text-align: left;">'
            '<div style="display: inline-block; max-width: 70%; background-color: #FFFFFF; '
            'color: #202124; padding: 14px; border-radius: 8px; '
            "font-size: 14px; line-height: 1.55;\">"
            '<strong style="color: #34A853; font-size: 11px;">DATASIGHT</strong><br>'
            f"{render_markdown(response_text)}"
            "</div>"
            "</div><br>"
        )
        self._append_html(assistant_html)

    def display_notice(self, category: str, message: str) -> None:
        """
        Render a centered status line (uploads rejected, service warnings and so on).
        """
        color_map = {
            "INFO": "#1A73E8",
            "WARNING": "#E37400",
            "ERROR": "#D93025",
            "DEFAULT": "#5F6368",
        }
        color = color_map.get(category.upper(), color_map["DEFAULT"])
        safe_message = escape(message).replace("\n", "<br>")
        html = (
            '<div style="margin: 12px 0; text-align: center;">'
            f'<span style="color: {color}; font-size: 12px;">[{category.upper()}] {safe_message}</span>'
            "</div><br>"
        )
        self._append_html(html)

    def clear_chat(self) -> None:
        self.clear()

    def _append_html(self, html: str) -> None:
        self.moveCursor(QTextCursor.End)
        self.insertHtml(html)
        self.ensureCursorVisible()
