from PySide6.QtCore import QObject, QRunnable, Signal, Slot
import logging

logger = logging.getLogger(__name__)


class WorkerSignals(QObject):
    """Signals a Worker uses to report back to the UI thread."""

    finished = Signal()
    error = Signal(str)


class Worker(QRunnable):
    """
    Runs one orchestrator call off the UI thread.

    The orchestrator reports progress through the event bus, so the worker
    only has to signal completion and unexpected crashes.
    """
    def __init__(self, fn, *args, **kwargs):
        super(Worker, self).__init__()
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self.signals = WorkerSignals()

    @Slot()
    def run(self):
        try:
            self.fn(*self.args, **self.kwargs)
        except Exception as e:
            logger.error(f"Error in worker thread: {e}", exc_info=True)
            self.signals.error.emit(str(e))
        finally:
            self.signals.finished.emit()
