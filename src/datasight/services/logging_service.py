import logging
import sys
from logging.handlers import RotatingFileHandler
from src.datasight.config import LOGS_DIR


class ColorFormatter(logging.Formatter):
    """A logging formatter that adds color to console output."""

    GREY = "\x1b[38;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    CYAN = "\x1b[36;20m"
    RESET = "\x1b[0m"

    _BASE = "%(asctime)s - %(levelname)s - %(name)s:%(funcName)s:%(lineno)d - %(message)s"

    FORMATS = {
        logging.DEBUG: f"{CYAN}{_BASE}{RESET}",
        logging.INFO: f"{GREY}{_BASE}{RESET}",
        logging.WARNING: f"{YELLOW}{_BASE}{RESET}",
        logging.ERROR: f"{RED}{_BASE}{RESET}",
        logging.CRITICAL: f"{BOLD_RED}{_BASE}{RESET}",
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno, self._BASE)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


class LoggingService:
    """
    Configures centralized logging for the application.
    """
    LOG_FILE = "datasight.log"
    _configured = False

    @staticmethod
    def setup_logging(logs_dir=None):
        """
        Configures the root logger for file and console output.
        Safe to call more than once; only the first call installs handlers.
        """
        if LoggingService._configured:
            return
        logs_dir = logs_dir or LOGS_DIR
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_file_path = logs_dir / LoggingService.LOG_FILE

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(ColorFormatter())

        file_handler = RotatingFileHandler(
            log_file_path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(ColorFormatter._BASE))

        root_logger.addHandler(console_handler)
        root_logger.addHandler(file_handler)
        LoggingService._configured = True

        logging.info("Logging service initialized.")
