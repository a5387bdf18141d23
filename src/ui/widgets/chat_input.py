from typing import List

from PySide6.QtWidgets import QTextEdit
from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QKeyEvent


class ChatInputTextEdit(QTextEdit):
    """
    A custom QTextEdit that emits sendMessage on Enter, keeps Shift+Enter
    for newlines, and turns dropped local files into a filesDropped signal.
    """
    sendMessage = Signal()
    filesDropped = Signal(list)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.setAcceptDrops(True)

    def keyPressEvent(self, event: QKeyEvent):
        if (event.key() == Qt.Key.Key_Return or event.key() == Qt.Key.Key_Enter) and not (event.modifiers() & Qt.KeyboardModifier.ShiftModifier):
            self.sendMessage.emit()
            event.accept()
        else:
            super().keyPressEvent(event)

    def canInsertFromMimeData(self, source):
        if source.hasUrls():
            return True
        return super().canInsertFromMimeData(source)

    def insertFromMimeData(self, source):
        """
        Dropped or pasted local files are handed to the upload flow instead
        of being inserted as text.
        """
        paths = self._local_paths(source)
        if paths:
            self.filesDropped.emit(paths)
            return
        super().insertFromMimeData(source)

    @staticmethod
    def _local_paths(source) -> List[str]:
        if not source.hasUrls():
            return []
        return [url.toLocalFile() for url in source.urls() if url.isLocalFile()]
