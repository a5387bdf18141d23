from __future__ import annotations

from typing import Any, Dict, List, Optional

from PySide6.QtCore import Signal
from PySide6.QtWidgets import QLabel, QPushButton, QVBoxLayout, QWidget

# Glyph shown next to each suggestion, keyed by category tag.
CATEGORY_GLYPHS = {
    "chart": "\U0001F4CA",
    "compare": "⚖",
    "export": "\U0001F4E4",
    "filter": "\U0001F50D",
    "predict": "\U0001F4C8",
    "share": "\U0001F517",
    "question": "❓",
    "code": "\U0001F4BB",
}


class SuggestionsWidget(QWidget):
    """
    Side list of suggested next steps. Clicking one emits its title so the
    window can pre-fill the question box.
    """

    suggestion_chosen = Signal(str)

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self._layout = QVBoxLayout(self)
        self._layout.setContentsMargins(0, 0, 0, 0)
        self._layout.setSpacing(6)

        header = QLabel("Suggested next steps", self)
        header.setObjectName("section_header")
        self._layout.addWidget(header)
        self._items: List[QPushButton] = []
        self._layout.addStretch(1)

    def set_suggestions(self, suggestions: List[Dict[str, Any]]) -> None:
        for button in self._items:
            self._layout.removeWidget(button)
            button.deleteLater()
        self._items = []

        for index, item in enumerate(suggestions):
            title = str(item.get("title") or "")
            description = str(item.get("description") or "")
            glyph = CATEGORY_GLYPHS.get(item.get("category"), CATEGORY_GLYPHS["question"])
            button = QPushButton(f"{glyph}  {title}", self)
            button.setObjectName("suggestion_item")
            button.setToolTip(description)
            button.clicked.connect(lambda _checked=False, text=title: self.suggestion_chosen.emit(text))
            # Keep the trailing stretch last.
            self._layout.insertWidget(1 + index, button)
            self._items.append(button)
