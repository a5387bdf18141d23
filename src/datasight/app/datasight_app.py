import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from PySide6.QtWidgets import QApplication

from src.datasight.app.event_bus import EventBus
from src.datasight.config import STORAGE_DB
from src.datasight.models.event_types import RELOAD_LLM_CONFIG
from src.datasight.models.events import Event
from src.datasight.services.conversation_orchestrator import ConversationOrchestrator
from src.datasight.services.dataset_memory import DatasetMemoryStore
from src.datasight.services.llm_service import LLMService
from src.datasight.services.logging_service import LoggingService
from src.datasight.services.storage_service import KeyValueStore
from src.datasight.services.user_settings_manager import load_user_settings
from src.ui.windows.main_window import MainWindow


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line options for the desktop application.

    Args:
        argv: Optional list of CLI arguments to inspect.
    """
    parser = argparse.ArgumentParser(prog="datasight", add_help=True)
    parser.add_argument(
        "--storage",
        type=Path,
        default=STORAGE_DB,
        help="SQLite file holding the conversation and dataset memory.",
    )
    args, _ = parser.parse_known_args(argv)
    return args


class DataSightApp:
    """
    The main application class for DataSight AI.
    """

    def __init__(self):
        LoggingService.setup_logging()
        logging.info("Initializing DataSightApp...")
        args = parse_args(sys.argv[1:])

        self.app = QApplication(sys.argv)
        self.app.setOrganizationName("DataSight")
        self.app.setApplicationName("DataSight AI")

        self.user_settings = load_user_settings()
        self.event_bus = EventBus()
        self.storage = KeyValueStore(args.storage)
        if self.storage.fallback_mode:
            logging.warning("Durable storage unavailable; this session will not be saved.")

        self.llm_service = LLMService(self.event_bus, settings=self.user_settings)
        self.orchestrator = ConversationOrchestrator(
            self.event_bus,
            self.llm_service,
            self.storage,
            memory=DatasetMemoryStore(self.storage),
            rollback_failed_turns=self.user_settings["rollback_failed_turns"],
        )

        self.main_window = MainWindow(self.event_bus, self.orchestrator)

        self._register_event_handlers()
        self.orchestrator.load()
        self.main_window.toolbar.set_memory_size(len(self.orchestrator.memory))
        self.app.aboutToQuit.connect(self._shutdown)

        logging.info("DataSightApp initialized successfully.")

    def _register_event_handlers(self):
        self.event_bus.subscribe(RELOAD_LLM_CONFIG, self._handle_reload_llm_config)

    def _handle_reload_llm_config(self, event: Event) -> None:
        self.user_settings = load_user_settings()
        self.llm_service.reload_settings(self.user_settings)
        self.orchestrator.rollback_failed_turns = self.user_settings["rollback_failed_turns"]
        logging.info(
            "Completion backend reloaded: %s / %s",
            self.user_settings["provider"],
            self.user_settings["model"],
        )

    def _shutdown(self) -> None:
        self.orchestrator.shutdown(wait=False)
        self.storage.close()

    def run(self):
        """Shows the main window and starts the application."""
        logging.info("Starting DataSight application...")
        self.main_window.show()
        sys.exit(self.app.exec())
