import logging
from typing import Dict

from PySide6.QtWidgets import (
    QWidget,
    QVBoxLayout,
    QLabel,
    QComboBox,
    QLineEdit,
    QPushButton,
    QCheckBox,
    QDoubleSpinBox,
    QHBoxLayout,
)
from PySide6.QtCore import Qt

from src.datasight.app.event_bus import EventBus
from src.datasight.models.event_types import RELOAD_LLM_CONFIG
from src.datasight.models.events import Event
from src.datasight.services.user_settings_manager import (
    DEFAULT_BASE_URLS,
    DEFAULT_MODELS,
    PROVIDER_CHOICES,
    load_user_settings,
    update_llm_settings,
)


logger = logging.getLogger(__name__)


class SettingsWindow(QWidget):
    """
    Settings dialog for the completion backend: provider, model, endpoint,
    API key, request timeout and failed-turn handling.
    """

    SETTINGS_STYLESHEET = """
        QWidget {
            background-color: #FFFFFF;
            color: #202124;
            font-family: "Roboto", "Segoe UI", Arial, sans-serif;
            font-size: 14px;
        }
        QLabel#title {
            color: #1A73E8;
            font-size: 20px;
            font-weight: bold;
            padding: 4px 0 12px 0;
        }
        QLabel#field_label {
            color: #5F6368;
            min-width: 160px;
        }
        QComboBox, QLineEdit, QDoubleSpinBox {
            background-color: #F8F9FA;
            border: 1px solid #DADCE0;
            padding: 6px;
            border-radius: 4px;
        }
        QPushButton {
            background-color: #FFFFFF;
            border: 1px solid #1A73E8;
            color: #1A73E8;
            font-weight: bold;
            padding: 8px 16px;
            border-radius: 4px;
            min-width: 140px;
        }
        QPushButton#save_button {
            background-color: #1A73E8;
            color: #FFFFFF;
        }
    """

    def __init__(self, event_bus: EventBus, parent=None):
        super().__init__(parent)
        self.event_bus = event_bus
        self.setWindowTitle("DataSight Settings")
        self.setWindowFlags(Qt.WindowType.Tool)
        self.setGeometry(200, 200, 520, 420)
        self.setStyleSheet(self.SETTINGS_STYLESHEET)
        self.setWindowModality(Qt.ApplicationModal)

        self.provider_combo: QComboBox
        self.model_input: QLineEdit
        self.base_url_input: QLineEdit
        self.timeout_input: QDoubleSpinBox
        self.api_key_inputs: Dict[str, QLineEdit] = {}
        self.rollback_checkbox: QCheckBox

        self._init_ui()
        self._load_settings()

    # ---- UI Construction -------------------------------------------------
    def _init_ui(self) -> None:
        main_layout = QVBoxLayout(self)
        main_layout.setContentsMargins(18, 18, 18, 18)
        main_layout.setSpacing(12)

        title = QLabel("DataSight Settings")
        title.setObjectName("title")
        title.setAlignment(Qt.AlignCenter)
        main_layout.addWidget(title)

        self.provider_combo = QComboBox()
        for value, display in PROVIDER_CHOICES:
            self.provider_combo.addItem(display, userData=value)
        self.provider_combo.currentIndexChanged.connect(self._on_provider_changed)
        main_layout.addLayout(self._create_field_row("Provider:", self.provider_combo))

        self.model_input = QLineEdit()
        main_layout.addLayout(self._create_field_row("Model:", self.model_input))

        self.base_url_input = QLineEdit()
        main_layout.addLayout(self._create_field_row("Endpoint:", self.base_url_input))

        api_key_input = QLineEdit()
        api_key_input.setObjectName("api_openai")
        api_key_input.setEchoMode(QLineEdit.Password)
        api_key_input.setPlaceholderText("Leave blank to use DATASIGHT_API_KEY / OPENAI_API_KEY")
        main_layout.addLayout(self._create_field_row("API key:", api_key_input))
        self.api_key_inputs["openai"] = api_key_input

        self.timeout_input = QDoubleSpinBox()
        self.timeout_input.setRange(1.0, 600.0)
        self.timeout_input.setSuffix(" s")
        main_layout.addLayout(self._create_field_row("Request timeout:", self.timeout_input))

        self.rollback_checkbox = QCheckBox("Drop my message from history when a request fails")
        main_layout.addWidget(self.rollback_checkbox)

        footer_layout = QHBoxLayout()
        footer_layout.addStretch(1)
        save_button = QPushButton("Save & Close")
        save_button.setObjectName("save_button")
        save_button.clicked.connect(self._handle_save)
        footer_layout.addWidget(save_button)
        main_layout.addStretch(1)
        main_layout.addLayout(footer_layout)

    def _create_field_row(self, label_text: str, widget: QWidget) -> QHBoxLayout:
        layout = QHBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(8)
        label = QLabel(label_text)
        label.setObjectName("field_label")
        layout.addWidget(label)
        layout.addWidget(widget, 1)
        return layout

    # ---- Data Binding ----------------------------------------------------
    def _load_settings(self) -> None:
        settings = load_user_settings()

        self.provider_combo.blockSignals(True)
        self._select_combo_value(self.provider_combo, settings.get("provider"))
        self.provider_combo.blockSignals(False)

        self.model_input.setText(settings.get("model") or "")
        self.base_url_input.setText(settings.get("base_url") or "")
        self.timeout_input.setValue(float(settings.get("request_timeout_seconds") or 30.0))

        api_keys = settings.get("api_keys") or {}
        for provider, input_field in self.api_key_inputs.items():
            input_field.setText(api_keys.get(provider, ""))

        self.rollback_checkbox.setChecked(bool(settings.get("rollback_failed_turns")))

    def _select_combo_value(self, combo: QComboBox, value: str) -> None:
        if not isinstance(value, str):
            return
        for index in range(combo.count()):
            if combo.itemData(index) == value:
                combo.setCurrentIndex(index)
                return

    def _collect_api_keys(self) -> Dict[str, str]:
        return {provider: field.text().strip() for provider, field in self.api_key_inputs.items()}

    # ---- Event Handlers --------------------------------------------------
    def _on_provider_changed(self) -> None:
        provider = self.provider_combo.currentData()
        self.model_input.setText(DEFAULT_MODELS.get(provider, ""))
        self.base_url_input.setText(DEFAULT_BASE_URLS.get(provider, ""))

    def _handle_save(self) -> None:
        updates = {
            "provider": self.provider_combo.currentData() or PROVIDER_CHOICES[0][0],
            "model": self.model_input.text().strip(),
            "base_url": self.base_url_input.text().strip(),
            "api_keys": self._collect_api_keys(),
            "request_timeout_seconds": self.timeout_input.value(),
            "rollback_failed_turns": self.rollback_checkbox.isChecked(),
        }

        try:
            update_llm_settings(updates)
        except OSError as exc:
            logger.error("Failed to save user settings: %s", exc)
            return

        self.event_bus.dispatch(Event(event_type=RELOAD_LLM_CONFIG))
        self.close()
