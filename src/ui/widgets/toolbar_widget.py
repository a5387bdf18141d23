from __future__ import annotations

from typing import Callable, Optional

from PySide6.QtCore import Qt, Signal, QSize
from PySide6.QtGui import QIcon
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QPushButton,
    QWidget,
    QStyle,
)


class ToolbarWidget(QWidget):
    """
    Top toolbar with the restart and settings actions and the dataset-memory counter.
    """

    restart_requested = Signal()
    configure_requested = Signal()

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self._setup_ui()

    def set_memory_size(self, size: int) -> None:
        """
        Show how many analyzed datasets the assistant remembers.
        """
        self._memory_label.setText(f"Datasets remembered: {size}")

    def _setup_ui(self) -> None:
        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 10)
        layout.setSpacing(8)

        title = QLabel("DataSight AI", self)
        title.setObjectName("app_title")

        style = self.style()
        btn_restart = self._create_icon_button(
            tooltip="Restart Chat",
            handler=self.restart_requested.emit,
            icon=style.standardIcon(QStyle.StandardPixmap.SP_BrowserReload),
        )
        btn_configure = self._create_icon_button(
            tooltip="Settings",
            handler=self.configure_requested.emit,
            icon=style.standardIcon(QStyle.StandardPixmap.SP_FileDialogDetailedView),
        )

        self._memory_label = QLabel(self)
        self._memory_label.setObjectName("memory_label")
        self._memory_label.setAlignment(Qt.AlignRight | Qt.AlignVCenter)
        self.set_memory_size(0)

        layout.addWidget(title)
        layout.addStretch()
        layout.addWidget(self._memory_label)
        layout.addWidget(btn_restart)
        layout.addWidget(btn_configure)

    def _create_icon_button(self, *, tooltip: str, handler: Callable[[], None], icon: QIcon) -> QPushButton:
        button = QPushButton("", self)
        button.setObjectName("icon_button")
        button.setToolTip(tooltip)
        button.setIcon(icon)
        button.setIconSize(QSize(18, 18))
        button.setFixedSize(QSize(36, 28))
        button.clicked.connect(handler)
        return button
