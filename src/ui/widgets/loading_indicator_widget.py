import logging

from PySide6.QtWidgets import QHBoxLayout, QLabel, QProgressBar, QWidget

logger = logging.getLogger(__name__)


class LoadingIndicatorWidget(QWidget):
    """
    Loading label plus an indeterminate progress bar, shown while an analysis is in flight.
    """

    def __init__(self, parent=None):
        super().__init__(parent)
        layout = QHBoxLayout(self)
        layout.setContentsMargins(10, 5, 10, 5)
        layout.setSpacing(10)

        self.loading_label = QLabel()
        self.loading_label.setObjectName("loading_label")

        # A 0..0 range renders Qt's busy animation.
        self.progress_bar = QProgressBar()
        self.progress_bar.setObjectName("loading_bar")
        self.progress_bar.setRange(0, 0)
        self.progress_bar.setTextVisible(False)
        self.progress_bar.setFixedHeight(6)

        layout.addWidget(self.loading_label)
        layout.addWidget(self.progress_bar, 1)
        self.hide()

    @property
    def is_animating(self) -> bool:
        return self.isVisible()

    def start(self, message: str):
        self.loading_label.setText(message)
        self.show()
        logger.debug("Loading indicator shown: %s", message)

    def stop(self):
        self.hide()
