from __future__ import annotations

import os
import sys
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import pytest

from src.datasight.models.conversation import Message
from src.datasight.models.dataset import FileRecord
from src.datasight.models.events import Event
from src.datasight.services.conversation_orchestrator import ConversationOrchestrator
from src.datasight.services.dataset_memory import DatasetMemoryStore
from src.datasight.services.storage_service import KeyValueStore


class RecordingEventBus:
    """Synchronous in-memory event bus used by tests."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Callable[[Event], None]]] = {}
        self.dispatched: List[Event] = []

    def subscribe(self, event_type: str, callback: Callable[[Event], None]) -> None:
        self._subscribers.setdefault(event_type, []).append(callback)

    def dispatch(self, event: Event) -> None:
        self.dispatched.append(event)
        for callback in self._subscribers.get(event.event_type, []):
            callback(event)

    def of_type(self, event_type: str) -> List[Event]:
        return [event for event in self.dispatched if event.event_type == event_type]


@dataclass
class LLMCall:
    agent_name: str
    messages: List[Message]
    json_mode: bool


Reply = Union[str, Exception, Callable[[List[Message]], str]]


class ScriptedLLM:
    """
    Stand-in for LLMService that answers from per-agent scripts and records
    a copy of every message list it receives.
    """

    DEFAULT_REPLIES = {
        "analyst": "Here is the analysis of your data.",
        "recommendations": "## Recommendations\n- Keep going.",
    }

    def __init__(self) -> None:
        self.calls: List[LLMCall] = []
        self._scripts: Dict[str, List[Reply]] = {}
        self._failures: Dict[str, Exception] = {}

    def script(self, agent_name: str, *replies: Reply) -> "ScriptedLLM":
        self._scripts.setdefault(agent_name, []).extend(replies)
        return self

    def fail(self, agent_name: str, error: Exception) -> "ScriptedLLM":
        self._failures[agent_name] = error
        return self

    def calls_for(self, agent_name: str) -> List[LLMCall]:
        return [call for call in self.calls if call.agent_name == agent_name]

    def complete_for_agent(
        self,
        agent_name: str,
        messages: Sequence[Message],
        *,
        json_mode: bool = False,
    ) -> Message:
        snapshot = list(messages)
        self.calls.append(LLMCall(agent_name, snapshot, json_mode))
        if agent_name in self._failures:
            raise self._failures[agent_name]

        queue = self._scripts.get(agent_name)
        reply: Reply = queue.pop(0) if queue else self.DEFAULT_REPLIES.get(agent_name, "not json")
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(snapshot)
        return Message.assistant(reply)


class InlineExecutor(Executor):
    """Runs submitted callables immediately so renderer effects are visible synchronously."""

    def submit(self, fn, *args, **kwargs):  # type: ignore[override]
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:  # noqa: BLE001 - mirror executor semantics
            future.set_exception(exc)
        return future


@pytest.fixture(scope="session")
def qapp():
    """One QApplication for the whole session; widgets need it and the Qt event bus runs on its loop."""
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv[:1])
    return app


@pytest.fixture
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def kv_store(tmp_path: Path):
    store = KeyValueStore(tmp_path / "storage.db")
    yield store
    store.close()


@pytest.fixture
def file_record_factory() -> Callable[..., FileRecord]:
    """Factory fixture for FileRecord instances with sensible defaults."""

    def _factory(**overrides: Any) -> FileRecord:
        defaults: Dict[str, Any] = {
            "name": "sales.csv",
            "type": "text/csv",
            "size": 1000,
            "data_url": "data:text/csv;base64,bW9udGgsc2FsZXMKSmFuLDEw",
        }
        defaults.update(overrides)
        return FileRecord(**defaults)

    return _factory


@dataclass
class OrchestratorHarness:
    orchestrator: ConversationOrchestrator
    event_bus: RecordingEventBus
    llm: ScriptedLLM
    storage: KeyValueStore
    memory: DatasetMemoryStore = field(repr=False)

    def displayed(self) -> List[Dict[str, Any]]:
        return [event.payload for event in self.event_bus.of_type("CONVERSATION_MESSAGE_ADDED")]


@pytest.fixture
def orchestrator_factory(
    event_bus: RecordingEventBus,
    scripted_llm: ScriptedLLM,
    kv_store: KeyValueStore,
) -> Callable[..., OrchestratorHarness]:
    """Factory that wires a ConversationOrchestrator to fakes and a temporary SQLite store."""
    created: List[ConversationOrchestrator] = []

    def _factory(
        *,
        rollback_failed_turns: bool = False,
        storage: Optional[KeyValueStore] = None,
        executor: Optional[Executor] = None,
    ) -> OrchestratorHarness:
        store = storage or kv_store
        memory = DatasetMemoryStore(store)
        orchestrator = ConversationOrchestrator(
            event_bus,
            scripted_llm,
            store,
            memory=memory,
            rollback_failed_turns=rollback_failed_turns,
            render_executor=executor or InlineExecutor(),
        )
        created.append(orchestrator)
        return OrchestratorHarness(orchestrator, event_bus, scripted_llm, store, memory)

    yield _factory

    for orchestrator in created:
        orchestrator.shutdown()
