from __future__ import annotations

import logging
from typing import List, Optional

from PySide6.QtCore import Qt, QThreadPool, Signal
from PySide6.QtWidgets import (
    QApplication,
    QMainWindow,
    QSplitter,
    QTabWidget,
    QTextBrowser,
    QVBoxLayout,
    QWidget,
)

from src.datasight.app.event_bus import EventBus
from src.datasight.config import ALLOWED_FILE_TYPES, MAX_FILE_SIZE, MESSAGES
from src.datasight.models.event_types import (
    CONVERSATION_MESSAGE_ADDED,
    CONVERSATION_RESTARTED,
    FILES_REJECTED,
    LLM_SERVICE_ERROR,
    LLM_SERVICE_WARNING,
    LOADING_STATE_CHANGED,
    ORCHESTRATOR_BUSY,
    RECOMMENDATIONS_UPDATED,
    SUGGESTIONS_UPDATED,
    VISUALIZATION_UPDATED,
)
from src.datasight.models.events import Event
from src.datasight.models.visualization import VisualizationSpec
from src.datasight.services.conversation_orchestrator import ConversationOrchestrator
from src.datasight.services.file_ingestion import ingest_paths
from src.datasight.services.voice_input import VoiceCommandRouter
from src.ui.qt_worker import Worker
from src.ui.widgets.chat_display_widget import ChatDisplayWidget, render_markdown
from src.ui.widgets.chat_input_widget import ChatInputWidget
from src.ui.widgets.charts_panel_widget import ChartsPanelWidget
from src.ui.widgets.loading_indicator_widget import LoadingIndicatorWidget
from src.ui.widgets.suggestions_widget import SuggestionsWidget
from src.ui.widgets.toolbar_widget import ToolbarWidget
from src.ui.windows.main_window_constants import DATASIGHT_STYLESHEET
from src.ui.windows.settings_window import SettingsWindow

logger = logging.getLogger(__name__)

STATUS_MESSAGE_TIMEOUT_MS = 10000


class MainWindow(QMainWindow):
    """
    DataSight main window: message log and input on the left, suggestions,
    charts and recommendations on the right.

    Every orchestrator call runs on the global QThreadPool; results come
    back through the event bus, which delivers on the UI thread.
    """

    commentary_ready = Signal(str, str)
    # (transcript, confidence) alternatives from a speech front-end.
    voice_transcript_received = Signal(list)

    def __init__(self, event_bus: EventBus, orchestrator: ConversationOrchestrator) -> None:
        super().__init__()
        self.event_bus = event_bus
        self.orchestrator = orchestrator
        self.settings_window: Optional[SettingsWindow] = None
        self._latest_spec: Optional[VisualizationSpec] = None
        self._thread_pool = QThreadPool.globalInstance()
        self.voice_router = VoiceCommandRouter(self.orchestrator.send_user_text)

        self.setWindowTitle("DataSight AI")
        self.setGeometry(100, 100, 1280, 800)
        self.setMinimumSize(900, 600)
        self.setStyleSheet(DATASIGHT_STYLESHEET)

        self.toolbar = ToolbarWidget(parent=self)
        self.chat_display = ChatDisplayWidget(parent=self)
        self.chat_input = ChatInputWidget(parent=self)
        self.loading_indicator = LoadingIndicatorWidget(parent=self)
        self.suggestions = SuggestionsWidget(parent=self)
        self.charts_panel = ChartsPanelWidget(parent=self)
        self.recommendations_view = QTextBrowser(self)
        self.recommendations_view.setObjectName("recommendations_view")
        self.recommendations_view.setOpenExternalLinks(True)
        self.recommendations_view.setPlainText("Upload data to receive recommendations.")

        self._build_layout()
        self._connect_signals()
        self._subscribe_events()

        self.toolbar.set_memory_size(len(self.orchestrator.memory))
        self.chat_display.display_notice("INFO", MESSAGES["welcome"])

    def _build_layout(self) -> None:
        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(10, 10, 10, 10)
        layout.setSpacing(10)
        layout.addWidget(self.toolbar)

        chat_column = QWidget()
        chat_layout = QVBoxLayout(chat_column)
        chat_layout.setContentsMargins(0, 0, 0, 0)
        chat_layout.addWidget(self.chat_display, 1)
        chat_layout.addWidget(self.loading_indicator)
        chat_layout.addWidget(self.chat_input)

        self.insight_tabs = QTabWidget()
        self.insight_tabs.addTab(self.charts_panel, "Visualizations")
        self.insight_tabs.addTab(self.recommendations_view, "Recommendations")

        side_column = QWidget()
        side_layout = QVBoxLayout(side_column)
        side_layout.setContentsMargins(0, 0, 0, 0)
        side_layout.addWidget(self.suggestions)
        side_layout.addWidget(self.insight_tabs, 1)

        self.splitter = QSplitter(Qt.Horizontal)
        self.splitter.addWidget(chat_column)
        self.splitter.addWidget(side_column)
        self.splitter.setStretchFactor(0, 3)
        self.splitter.setStretchFactor(1, 2)
        layout.addWidget(self.splitter, 1)

    def _connect_signals(self) -> None:
        self.toolbar.restart_requested.connect(self._handle_restart_requested)
        self.toolbar.configure_requested.connect(self._open_settings_dialog)
        self.chat_input.message_requested.connect(self._handle_message_requested)
        self.chat_input.files_selected.connect(self._handle_files_selected)
        self.suggestions.suggestion_chosen.connect(self._handle_suggestion_chosen)
        self.charts_panel.commentary_requested.connect(self._handle_commentary_requested)
        self.commentary_ready.connect(self.charts_panel.show_commentary)
        self.voice_transcript_received.connect(self._handle_voice_transcript)

    def _subscribe_events(self) -> None:
        self.event_bus.subscribe(CONVERSATION_MESSAGE_ADDED, self._handle_message_added)
        self.event_bus.subscribe(CONVERSATION_RESTARTED, self._handle_restarted)
        self.event_bus.subscribe(LOADING_STATE_CHANGED, self._handle_loading_changed)
        self.event_bus.subscribe(ORCHESTRATOR_BUSY, self._handle_busy)
        self.event_bus.subscribe(SUGGESTIONS_UPDATED, self._handle_suggestions_updated)
        self.event_bus.subscribe(RECOMMENDATIONS_UPDATED, self._handle_recommendations_updated)
        self.event_bus.subscribe(VISUALIZATION_UPDATED, self._handle_visualization_updated)
        self.event_bus.subscribe(FILES_REJECTED, self._handle_files_rejected)
        self.event_bus.subscribe(LLM_SERVICE_WARNING, self._handle_service_warning)
        self.event_bus.subscribe(LLM_SERVICE_ERROR, self._handle_service_error)

    # ---- User actions ----------------------------------------------------
    def _handle_message_requested(self) -> None:
        user_text = self.chat_input.take_message()
        if user_text is None:
            return
        self._run_in_background(self.orchestrator.send_user_text, user_text)

    def _handle_files_selected(self, paths: List[str]) -> None:
        result = ingest_paths(paths, max_size=MAX_FILE_SIZE, allowed_types=ALLOWED_FILE_TYPES)
        if result.rejected:
            self.event_bus.dispatch(
                Event(
                    event_type=FILES_REJECTED,
                    payload={
                        "rejections": [
                            {"file_name": error.file_name, "reason": error.reason}
                            for error in result.rejected
                        ]
                    },
                )
            )
        if not result.records:
            return
        self._run_in_background(self.orchestrator.start_analysis, result.records)

    def _handle_voice_transcript(self, alternatives: list) -> None:
        self._run_in_background(self.voice_router.submit, list(alternatives))

    def _handle_restart_requested(self) -> None:
        self._run_in_background(self.orchestrator.restart)

    def _handle_suggestion_chosen(self, text: str) -> None:
        self.chat_input.set_text(text)
        self.chat_input.focus_input()

    def _handle_commentary_requested(self, chart_type: str) -> None:
        if self._latest_spec is None:
            return
        chart = self._latest_spec.charts().get(chart_type)
        if chart is None:
            return
        self.charts_panel.show_commentary(chart_type, "Generating detailed commentary...")
        self._run_in_background(self._generate_commentary_background, chart_type, chart)

    def _generate_commentary_background(self, chart_type: str, chart) -> None:
        """Runs in background thread - safe to block."""
        text = self.orchestrator.visualization_service.generate_commentary(chart_type, chart)
        self.commentary_ready.emit(chart_type, text)

    def _open_settings_dialog(self) -> None:
        if self.settings_window is None:
            self.settings_window = SettingsWindow(self.event_bus)
        self.settings_window.show()

    def _run_in_background(self, fn, *args) -> None:
        worker = Worker(fn, *args)
        worker.signals.error.connect(lambda message: self.chat_display.display_notice("ERROR", message))
        self._thread_pool.start(worker)

    # ---- Event handlers --------------------------------------------------
    def _handle_message_added(self, event: Event) -> None:
        payload = event.payload or {}
        self.chat_display.display_message(payload.get("role", "assistant"), payload.get("content", ""))

    def _handle_restarted(self, event: Event) -> None:
        self.chat_display.clear_chat()
        self._latest_spec = None
        self.charts_panel.show_message("Upload data to see visualizations.")
        self.recommendations_view.setPlainText("Upload data to receive recommendations.")
        self.toolbar.set_memory_size((event.payload or {}).get("memory_size", 0))

    def _handle_loading_changed(self, event: Event) -> None:
        loading = bool((event.payload or {}).get("loading"))
        self.chat_input.setEnabled(not loading)
        if loading:
            self.loading_indicator.start(MESSAGES["processing"])
        else:
            self.loading_indicator.stop()
            self.toolbar.set_memory_size(len(self.orchestrator.memory))
            self.chat_input.focus_input()

    def _handle_busy(self, event: Event) -> None:
        self.chat_display.display_notice("WARNING", (event.payload or {}).get("message", MESSAGES["busy"]))

    def _handle_suggestions_updated(self, event: Event) -> None:
        self.suggestions.set_suggestions((event.payload or {}).get("suggestions") or [])

    def _handle_recommendations_updated(self, event: Event) -> None:
        content = (event.payload or {}).get("content") or ""
        self.recommendations_view.setHtml(render_markdown(content))

    def _handle_visualization_updated(self, event: Event) -> None:
        payload = event.payload or {}
        if not payload.get("ok"):
            self._latest_spec = None
            self.charts_panel.show_message(payload.get("message") or MESSAGES["error"])
            return
        spec = payload.get("spec") or {}
        self._latest_spec = VisualizationSpec.model_validate(spec)
        self.charts_panel.show_charts(payload.get("charts") or {}, spec)

    def _handle_files_rejected(self, event: Event) -> None:
        for rejection in (event.payload or {}).get("rejections") or []:
            self.chat_display.display_notice(
                "WARNING",
                f"{rejection.get('file_name')}: {rejection.get('reason')}",
            )

    def _handle_service_warning(self, event: Event) -> None:
        message = (event.payload or {}).get("message")
        if message:
            self.loading_indicator.loading_label.setText(message)

    def _handle_service_error(self, event: Event) -> None:
        # The failed turn posts its own reply to the log; the details go to the status line.
        details = (event.payload or {}).get("message") or MESSAGES["error"]
        logger.warning("Completion service error: %s", details)
        self.statusBar().showMessage(details, STATUS_MESSAGE_TIMEOUT_MS)

    def closeEvent(self, event) -> None:  # noqa: D401 - QWidget signature
        QApplication.quit()
        super().closeEvent(event)
