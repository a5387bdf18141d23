from __future__ import annotations

from typing import List, Optional

from PySide6.QtCore import Signal
from PySide6.QtWidgets import QFileDialog, QHBoxLayout, QPushButton, QSizePolicy, QWidget

from src.ui.widgets.chat_input import ChatInputTextEdit

FILE_DIALOG_FILTER = "Data files (*.png *.jpg *.jpeg *.csv *.xls *.xlsx *.pdf);;All files (*)"


class ChatInputWidget(QWidget):
    """
    Question box plus the upload and send actions.

    ``message_requested`` fires when the user asks to send the typed text;
    ``files_selected`` carries local paths picked in the dialog or dropped
    onto the input.
    """

    message_requested = Signal()
    files_selected = Signal(list)

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)
        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)

        self._text_edit = ChatInputTextEdit()
        self._text_edit.setObjectName("chat_input")
        self._text_edit.setPlaceholderText(
            "Ask about your data. Drop files here to analyze them. Enter to send."
        )
        self._text_edit.sendMessage.connect(self.message_requested.emit)
        self._text_edit.filesDropped.connect(self.files_selected.emit)
        self._text_edit.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Fixed)

        self._upload_button = QPushButton("Upload", self)
        self._upload_button.setObjectName("upload_button")
        self._upload_button.setFixedWidth(80)
        self._upload_button.setSizePolicy(QSizePolicy.Fixed, QSizePolicy.Expanding)
        self._upload_button.setToolTip("Choose data files to analyze")
        self._upload_button.clicked.connect(self._open_file_dialog)

        self._send_button = QPushButton("Send", self)
        self._send_button.setObjectName("send_button")
        self._send_button.setFixedWidth(70)
        self._send_button.setSizePolicy(QSizePolicy.Fixed, QSizePolicy.Expanding)
        self._send_button.setToolTip("Send (Enter). Shift+Enter for newline")
        self._send_button.clicked.connect(self.message_requested.emit)

        layout.addWidget(self._text_edit, 5)
        layout.addWidget(self._upload_button)
        layout.addWidget(self._send_button)

    def take_message(self) -> Optional[str]:
        """
        Return the trimmed input text and clear the box, or None when it is blank.
        """
        user_text = self._text_edit.toPlainText().strip()
        if not user_text:
            return None
        self._text_edit.clear()
        return user_text

    def set_text(self, text: str) -> None:
        self._text_edit.setPlainText(text)

    def focus_input(self) -> None:
        self._text_edit.setFocus()

    def setEnabled(self, enabled: bool) -> None:  # noqa: D401 - QWidget signature
        super().setEnabled(enabled)
        self._text_edit.setEnabled(enabled)
        self._upload_button.setEnabled(enabled)
        self._send_button.setEnabled(enabled)

    def _open_file_dialog(self) -> None:
        paths: List[str]
        paths, _ = QFileDialog.getOpenFileNames(self, "Select data files", "", FILE_DIALOG_FILTER)
        if paths:
            self.files_selected.emit(paths)
