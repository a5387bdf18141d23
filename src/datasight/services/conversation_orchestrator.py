"""
Conversation orchestration between UI events and the completion service.

The orchestrator owns the conversation log, the current file batch and
the dataset memory for one session. Mutating operations are single-flight:
a request that arrives while another is in flight is rejected with a
``busy`` outcome instead of racing on the shared log.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from src.datasight.config import (
    CONVERSATION_KEY,
    CURRENT_DATA_KEY,
    DATASET_MEMORY_KEY,
    MESSAGES,
)
from src.datasight.models.conversation import ImagePart, Message, TextPart
from src.datasight.models.dataset import FileRecord
from src.datasight.models.event_types import (
    CONVERSATION_MESSAGE_ADDED,
    CONVERSATION_RESTARTED,
    LOADING_STATE_CHANGED,
    ORCHESTRATOR_BUSY,
)
from src.datasight.models.events import Event
from src.datasight.models.exceptions import OrchestratorBusyError
from src.datasight.services.conversation_state import ConversationState
from src.datasight.services.dataset_memory import DatasetMemoryStore
from src.datasight.services.prompt_builder import build_analysis_request, build_system_prompt
from src.datasight.services.recommendation_service import RecommendationService
from src.datasight.services.storage_service import KeyValueStore
from src.datasight.services.suggestion_service import SuggestionService
from src.datasight.services.visualization_service import VisualizationService

logger = logging.getLogger(__name__)

_CURRENT_DATA = TypeAdapter(Optional[List[FileRecord]])
_RENDERERS = ("visualization", "recommendations", "suggestions")


class TurnStatus(str, Enum):
    COMPLETED = "completed"
    IGNORED = "ignored"
    BUSY = "busy"
    FAILED = "failed"


@dataclass
class TurnOutcome:
    """
    Result of one orchestrator operation.

    Attributes:
        status: How the operation ended.
        reply: The assistant message appended (or announced) by the operation.
        error: The exception behind a FAILED status.
        render_futures: Downstream renderer jobs started by the operation.
    """

    status: TurnStatus
    reply: Optional[Message] = None
    error: Optional[BaseException] = None
    render_futures: List[Future] = field(default_factory=list)


class _CurrentResultBus:
    """
    Event bus handed to the renderer services.

    Events dispatched from a renderer job whose result has been superseded
    (by a restart or by a newer job of the same renderer) are dropped.
    """

    def __init__(self, event_bus: Any, is_current: Callable[[], bool], lock: threading.RLock) -> None:
        self._event_bus = event_bus
        self._is_current = is_current
        self._lock = lock

    def dispatch(self, event: Event) -> None:
        with self._lock:
            if not self._is_current():
                logger.debug("Dropping stale '%s' from a superseded renderer job", event.event_type)
                return
            self._event_bus.dispatch(event)


class ConversationOrchestrator:
    """Owns conversation state for a session and drives every remote round trip."""

    AGENT_NAME = "analyst"

    def __init__(
        self,
        event_bus: Any,
        llm_service: Any,
        storage: KeyValueStore,
        *,
        memory: Optional[DatasetMemoryStore] = None,
        suggestion_service: Optional[SuggestionService] = None,
        recommendation_service: Optional[RecommendationService] = None,
        visualization_service: Optional[VisualizationService] = None,
        rollback_failed_turns: bool = False,
        render_executor: Optional[Executor] = None,
    ) -> None:
        self.event_bus = event_bus
        self.llm_service = llm_service
        self.storage = storage
        self.memory = memory if memory is not None else DatasetMemoryStore(storage)

        self._generation_lock = threading.RLock()
        self._generations: Dict[str, int] = {name: 0 for name in _RENDERERS}
        self._render_context = threading.local()
        render_bus = _CurrentResultBus(event_bus, self._is_current_render, self._generation_lock)
        self.suggestion_service = suggestion_service or SuggestionService(llm_service, render_bus)
        self.recommendation_service = recommendation_service or RecommendationService(llm_service, render_bus)
        self.visualization_service = visualization_service or VisualizationService(llm_service, render_bus)
        self.rollback_failed_turns = rollback_failed_turns

        self._conversation = ConversationState()
        self._current_data: Optional[List[FileRecord]] = None
        self._guard = threading.Lock()
        self._render_executor = render_executor or ThreadPoolExecutor(
            max_workers=3,
            thread_name_prefix="datasight-render",
        )

    # ------------------------------------------------------------------ #
    # State accessors
    # ------------------------------------------------------------------ #

    @property
    def conversation(self) -> List[Message]:
        return self._conversation.messages

    @property
    def current_data(self) -> Optional[List[FileRecord]]:
        return list(self._current_data) if self._current_data is not None else None

    @property
    def is_busy(self) -> bool:
        return self._guard.locked()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def load(self) -> List[Future]:
        """
        Restore the previous session from storage and replay it to the message log.

        Unreadable records are reset to their empty state.
        """
        with self._guard:
            self._conversation = ConversationState.loads(self.storage.get(CONVERSATION_KEY))
            self._current_data = self._load_current_data()
            self.memory.load()
            for message in self._conversation.messages:
                self._display(message)
            snapshot = self._conversation.messages

        logger.info(
            "Session restored: %d messages, %d remembered datasets",
            len(snapshot),
            len(self.memory),
        )
        return [self._submit("suggestions", self.suggestion_service.refresh, snapshot)]

    def shutdown(self, wait: bool = True) -> None:
        self._render_executor.shutdown(wait=wait)

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #

    def start_analysis(self, files: Sequence[FileRecord]) -> TurnOutcome:
        """Record the batch, ask for an analysis and start the downstream renderers."""
        files = list(files or [])
        if not files:
            logger.debug("start_analysis called without files; ignoring")
            return TurnOutcome(TurnStatus.IGNORED)

        try:
            self._acquire("start_analysis")
        except OrchestratorBusyError:
            return TurnOutcome(TurnStatus.BUSY)

        try:
            return self._run_analysis(files)
        finally:
            self._guard.release()

    def send_user_text(self, text: str) -> TurnOutcome:
        """Append the user's question, trim the history and ask for a reply."""
        question = (text or "").strip()
        if not question:
            return TurnOutcome(TurnStatus.IGNORED)

        try:
            self._acquire("send_user_text")
        except OrchestratorBusyError:
            return TurnOutcome(TurnStatus.BUSY)

        try:
            return self._run_chat_turn(question)
        finally:
            self._guard.release()

    def restart(self) -> TurnOutcome:
        """Clear the conversation and current data; dataset memory is kept."""
        try:
            self._acquire("restart")
        except OrchestratorBusyError:
            return TurnOutcome(TurnStatus.BUSY)

        try:
            self._conversation.clear()
            self._current_data = None
            self._invalidate_renders()
            self.storage.remove(CONVERSATION_KEY)
            self.storage.remove(CURRENT_DATA_KEY)
            announcement = Message.assistant(MESSAGES["restarted"])
            snapshot = self._conversation.messages
        finally:
            self._guard.release()

        logger.info("Conversation restarted; %d datasets remain in memory", len(self.memory))
        self._dispatch(CONVERSATION_RESTARTED, {"memory_size": len(self.memory)})
        self._display(announcement)
        future = self._submit("suggestions", self.suggestion_service.refresh, snapshot)
        return TurnOutcome(TurnStatus.COMPLETED, reply=announcement, render_futures=[future])

    # ------------------------------------------------------------------ #
    # Turn implementations (guard held)
    # ------------------------------------------------------------------ #

    def _run_analysis(self, files: List[FileRecord]) -> TurnOutcome:
        self._current_data = files
        checkpoint = len(self._conversation)
        self._set_loading(True)
        try:
            self.memory.record_batch(files)
            if self._conversation.is_empty:
                self._conversation.seed_system(build_system_prompt(self.memory.fingerprints))

            request_text = build_analysis_request(files)
            user_message = Message.user(
                [TextPart(text=request_text), *(ImagePart.from_data_url(record.data_url) for record in files)]
            )
            self._conversation.append(user_message)

            reply = self.llm_service.complete_for_agent(self.AGENT_NAME, self._conversation.messages)
            self._conversation.append(reply)
            self._conversation.trim()
            self._persist()

            self._display(user_message)
            self._display(reply)

            snapshot = self._conversation.messages
            futures = [
                self._submit("visualization", self.visualization_service.generate, files, snapshot),
                self._submit(
                    "recommendations",
                    self.recommendation_service.generate,
                    snapshot,
                    files,
                    len(self.memory),
                ),
                self._submit("suggestions", self.suggestion_service.refresh, snapshot),
            ]
            return TurnOutcome(TurnStatus.COMPLETED, reply=reply, render_futures=futures)
        except Exception as exc:  # noqa: BLE001 - every failure ends in a recoverable UI state
            logger.error("Analysis failed: %s", exc, exc_info=True)
            if self.rollback_failed_turns:
                self._conversation.rollback_to(checkpoint)
            self._display(Message.assistant(MESSAGES["analysis_error"]))
            return TurnOutcome(TurnStatus.FAILED, error=exc)
        finally:
            self._set_loading(False)

    def _run_chat_turn(self, question: str) -> TurnOutcome:
        user_message = Message.user(question)
        self._display(user_message)
        self._conversation.append(user_message)
        self._conversation.trim()
        checkpoint = len(self._conversation) - 1

        try:
            reply = self.llm_service.complete_for_agent(self.AGENT_NAME, self._conversation.messages)
            self._conversation.append(reply)
            self._conversation.trim()
            self._persist()
            self._display(reply)
            snapshot = self._conversation.messages
            future = self._submit("suggestions", self.suggestion_service.refresh, snapshot)
            return TurnOutcome(TurnStatus.COMPLETED, reply=reply, render_futures=[future])
        except Exception as exc:  # noqa: BLE001 - every failure ends in a recoverable UI state
            logger.error("Chat turn failed: %s", exc, exc_info=True)
            if self.rollback_failed_turns:
                self._conversation.rollback_to(checkpoint)
            self._display(Message.assistant(MESSAGES["chat_error"]))
            return TurnOutcome(TurnStatus.FAILED, error=exc)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _acquire(self, operation: str) -> None:
        if self._guard.acquire(blocking=False):
            return
        logger.warning("Rejected '%s': another request is still in flight", operation)
        self._dispatch(ORCHESTRATOR_BUSY, {"operation": operation, "message": MESSAGES["busy"]})
        raise OrchestratorBusyError(operation)

    def _load_current_data(self) -> Optional[List[FileRecord]]:
        raw = self.storage.get(CURRENT_DATA_KEY)
        if raw is None:
            return None
        try:
            return _CURRENT_DATA.validate_json(raw)
        except (ValidationError, ValueError) as exc:
            logger.warning("Stored current data is unreadable; clearing it: %s", exc)
            return None

    def _persist(self) -> None:
        current = (
            [record.model_dump(by_alias=True) for record in self._current_data]
            if self._current_data is not None
            else None
        )
        self.storage.set(CONVERSATION_KEY, self._conversation.dumps())
        self.storage.set(CURRENT_DATA_KEY, json.dumps(current))
        self.storage.set(DATASET_MEMORY_KEY, self.memory.snapshot())

    def _display(self, message: Message) -> None:
        if message.is_system:
            return
        text = message.display_text()
        if not text:
            return
        self._dispatch(CONVERSATION_MESSAGE_ADDED, {"role": message.role.value, "content": text})

    def _set_loading(self, loading: bool) -> None:
        self._dispatch(LOADING_STATE_CHANGED, {"loading": loading})

    def _dispatch(self, event_type: str, payload: dict) -> None:
        self.event_bus.dispatch(Event(event_type=event_type, payload=payload))

    def _invalidate_renders(self) -> None:
        with self._generation_lock:
            for name in self._generations:
                self._generations[name] += 1

    def _is_current_render(self) -> bool:
        ticket = getattr(self._render_context, "ticket", None)
        if ticket is None:
            return True
        name, generation = ticket
        with self._generation_lock:
            return self._generations.get(name) == generation

    def _submit(self, name: str, fn: Callable[..., Any], *args: Any) -> Future:
        """Run a renderer job; only the newest job per renderer may publish its result."""
        with self._generation_lock:
            generation = self._generations.get(name, 0) + 1
            self._generations[name] = generation

        def _run() -> Any:
            self._render_context.ticket = (name, generation)
            try:
                return fn(*args)
            except Exception:
                logger.error("Renderer '%s' failed", name, exc_info=True)
                return None
            finally:
                self._render_context.ticket = None

        return self._render_executor.submit(_run)
