"""Tests for ConversationOrchestrator - turns, truncation, restart and single-flight."""

from __future__ import annotations

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List

import pytest

from src.datasight.config import (
    CONVERSATION_KEY,
    CURRENT_DATA_KEY,
    DATASET_MEMORY_KEY,
    MESSAGES,
)
from src.datasight.models.conversation import ImagePart, Message, Role, TextPart
from src.datasight.models.event_types import (
    CONVERSATION_RESTARTED,
    LOADING_STATE_CHANGED,
    ORCHESTRATOR_BUSY,
    RECOMMENDATIONS_UPDATED,
    SUGGESTIONS_UPDATED,
    VISUALIZATION_UPDATED,
)
from src.datasight.models.exceptions import LLMConnectionError, LLMTimeoutError
from src.datasight.services.conversation_orchestrator import TurnStatus
from src.datasight.services.conversation_state import ConversationState


def _seeded_history(pairs: int) -> List[Message]:
    messages = [Message.system("You are an expert data analyst.")]
    for index in range(pairs):
        messages.append(Message.user(f"question {index}"))
        messages.append(Message.assistant(f"answer {index}"))
    return messages


# -- Start analysis -------------------------------------------------------------------


def test_fresh_start_seeds_system_prompt_and_appends_round_trip(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()
    record = file_record_factory()

    outcome = harness.orchestrator.start_analysis([record])

    assert outcome.status is TurnStatus.COMPLETED
    assert len(harness.memory) == 1
    assert harness.memory.fingerprints[0].file_types == ["text/csv"]

    analyst_calls = harness.llm.calls_for("analyst")
    assert len(analyst_calls) == 1
    sent = analyst_calls[0].messages
    assert [message.role for message in sent] == [Role.SYSTEM, Role.USER]

    conversation = harness.orchestrator.conversation
    assert [message.role for message in conversation] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]
    assert conversation[2].content == "Here is the analysis of your data."


def test_analysis_request_carries_one_image_part_per_file(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()
    files = [
        file_record_factory(),
        file_record_factory(name="chart.png", type="image/png", data_url="data:image/png;base64,iVBORw0KGgo="),
    ]

    harness.orchestrator.start_analysis(files)

    user_message = harness.orchestrator.conversation[1]
    assert isinstance(user_message.content[0], TextPart)
    assert user_message.content[0].text.startswith("I've uploaded 2 file(s) for analysis: sales.csv, chart.png.")
    image_parts = [part for part in user_message.content if isinstance(part, ImagePart)]
    assert [part.image_url.url for part in image_parts] == [record.data_url for record in files]


def test_system_prompt_reflects_the_batch_just_recorded(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()

    harness.orchestrator.start_analysis([file_record_factory()])

    system_prompt = harness.orchestrator.conversation[0].content
    assert "previously analyzed: 1 text/csv files" in system_prompt


def test_second_analysis_does_not_reseed_system_message(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()

    harness.orchestrator.start_analysis([file_record_factory()])
    harness.orchestrator.start_analysis([file_record_factory(name="q2.csv")])

    conversation = harness.orchestrator.conversation
    assert len(conversation) == 5
    assert sum(1 for message in conversation if message.is_system) == 1
    assert len(harness.memory) == 2


def test_empty_batch_is_ignored(orchestrator_factory) -> None:
    harness = orchestrator_factory()

    outcome = harness.orchestrator.start_analysis([])

    assert outcome.status is TurnStatus.IGNORED
    assert harness.llm.calls == []
    assert harness.event_bus.dispatched == []
    assert len(harness.memory) == 0


def test_analysis_persists_full_snapshot(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()

    harness.orchestrator.start_analysis([file_record_factory()])

    stored_conversation = json.loads(harness.storage.get(CONVERSATION_KEY))
    assert [entry["role"] for entry in stored_conversation] == ["system", "user", "assistant"]
    stored_data = json.loads(harness.storage.get(CURRENT_DATA_KEY))
    assert stored_data[0]["dataUrl"].startswith("data:text/csv")
    stored_memory = json.loads(harness.storage.get(DATASET_MEMORY_KEY))
    assert stored_memory[0]["fileNames"] == ["sales.csv"]


def test_analysis_triggers_all_downstream_renderers(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()

    outcome = harness.orchestrator.start_analysis([file_record_factory()])

    assert len(outcome.render_futures) == 3
    assert {call.agent_name for call in harness.llm.calls} == {
        "analyst",
        "visualization",
        "recommendations",
        "suggestions",
    }
    assert harness.event_bus.of_type(VISUALIZATION_UPDATED)[0].payload["ok"] is True
    assert harness.event_bus.of_type(RECOMMENDATIONS_UPDATED)[0].payload["ok"] is True
    assert harness.event_bus.of_type(SUGGESTIONS_UPDATED)


def test_renderer_failure_does_not_affect_conversation(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()
    harness.llm.fail("visualization", LLMTimeoutError("timed out"))
    harness.llm.fail("recommendations", LLMTimeoutError("timed out"))
    harness.llm.fail("suggestions", LLMTimeoutError("timed out"))

    outcome = harness.orchestrator.start_analysis([file_record_factory()])

    assert outcome.status is TurnStatus.COMPLETED
    assert len(harness.orchestrator.conversation) == 3
    assert harness.event_bus.of_type(VISUALIZATION_UPDATED)[0].payload["ok"] is False
    assert harness.event_bus.of_type(RECOMMENDATIONS_UPDATED)[0].payload["ok"] is False


def test_loading_indicator_is_cleared_after_success(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()

    harness.orchestrator.start_analysis([file_record_factory()])

    states = [event.payload["loading"] for event in harness.event_bus.of_type(LOADING_STATE_CHANGED)]
    assert states == [True, False]


def test_analysis_failure_surfaces_error_and_clears_loading(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()
    harness.llm.fail("analyst", LLMConnectionError("connection refused"))

    outcome = harness.orchestrator.start_analysis([file_record_factory()])

    assert outcome.status is TurnStatus.FAILED
    assert isinstance(outcome.error, LLMConnectionError)
    states = [event.payload["loading"] for event in harness.event_bus.of_type(LOADING_STATE_CHANGED)]
    assert states == [True, False]

    errors = [entry for entry in harness.displayed() if entry["content"] == MESSAGES["analysis_error"]]
    assert len(errors) == 1
    assert errors[0]["role"] == "assistant"

    # The user's request stays in history; nothing is persisted for the failed turn.
    assert [message.role for message in harness.orchestrator.conversation] == [Role.SYSTEM, Role.USER]
    assert harness.storage.get(CONVERSATION_KEY) is None
    assert not harness.event_bus.of_type(VISUALIZATION_UPDATED)


def test_analysis_failure_rolls_back_when_configured(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory(rollback_failed_turns=True)
    harness.llm.fail("analyst", LLMConnectionError("connection refused"))

    harness.orchestrator.start_analysis([file_record_factory()])

    assert harness.orchestrator.conversation == []
    assert len(harness.memory) == 1


# -- Send user text -------------------------------------------------------------------


def test_send_user_text_appends_question_and_reply(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()
    harness.orchestrator.start_analysis([file_record_factory()])
    harness.llm.script("analyst", "Sales peaked in March.")

    outcome = harness.orchestrator.send_user_text("  When did sales peak?  ")

    assert outcome.status is TurnStatus.COMPLETED
    conversation = harness.orchestrator.conversation
    assert conversation[-2] == Message.user("When did sales peak?")
    assert conversation[-1] == Message.assistant("Sales peaked in March.")
    assert harness.displayed()[-2:] == [
        {"role": "user", "content": "When did sales peak?"},
        {"role": "assistant", "content": "Sales peaked in March."},
    ]


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_blank_text_is_ignored(orchestrator_factory, text: str) -> None:
    harness = orchestrator_factory()

    outcome = harness.orchestrator.send_user_text(text)

    assert outcome.status is TurnStatus.IGNORED
    assert harness.llm.calls == []
    assert harness.orchestrator.conversation == []


def test_truncation_scenario_keeps_system_plus_last_ten(orchestrator_factory, kv_store) -> None:
    history = _seeded_history(11)
    assert len(history) == 23
    kv_store.set(CONVERSATION_KEY, ConversationState(history).dumps())
    harness = orchestrator_factory()
    harness.orchestrator.load()

    harness.orchestrator.send_user_text("x")

    sent = harness.llm.calls_for("analyst")[0].messages
    assert len(sent) == 11
    assert sent[0] == history[0]
    assert sent[1:-1] == history[-9:]
    assert sent[-1] == Message.user("x")
    assert len(harness.orchestrator.conversation) == 12


def test_system_message_survives_repeated_truncation(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()
    harness.orchestrator.start_analysis([file_record_factory()])
    system_message = harness.orchestrator.conversation[0]

    for index in range(20):
        harness.orchestrator.send_user_text(f"question {index}")
        conversation = harness.orchestrator.conversation
        assert conversation[0] == system_message
        assert len(conversation) <= 12
        assert sum(1 for message in conversation if message.is_system) == 1


def test_repeated_analyses_keep_stored_log_within_cap(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()

    for index in range(8):
        harness.orchestrator.start_analysis([file_record_factory(name=f"batch{index}.csv")])
        conversation = harness.orchestrator.conversation
        stored = ConversationState.loads(harness.storage.get(CONVERSATION_KEY))
        assert len(conversation) <= 12
        assert len(stored) == len(conversation)
        assert conversation[0].is_system

    assert harness.orchestrator.conversation[-1] == Message.assistant("Here is the analysis of your data.")


def test_chat_failure_keeps_user_message_by_default(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()
    harness.orchestrator.start_analysis([file_record_factory()])
    harness.llm.script("analyst", LLMTimeoutError("timed out"))

    outcome = harness.orchestrator.send_user_text("Any outliers?")

    assert outcome.status is TurnStatus.FAILED
    conversation = harness.orchestrator.conversation
    assert len(conversation) == 4
    assert conversation[-1] == Message.user("Any outliers?")
    assert harness.displayed()[-1] == {"role": "assistant", "content": MESSAGES["chat_error"]}


def test_chat_failure_rolls_back_when_configured(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory(rollback_failed_turns=True)
    harness.orchestrator.start_analysis([file_record_factory()])
    harness.llm.script("analyst", LLMTimeoutError("timed out"))

    harness.orchestrator.send_user_text("Any outliers?")

    assert len(harness.orchestrator.conversation) == 3


def test_system_messages_are_never_displayed(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()

    harness.orchestrator.start_analysis([file_record_factory()])
    harness.orchestrator.send_user_text("Summarize again")

    assert all(entry["role"] != "system" for entry in harness.displayed())


# -- Restart --------------------------------------------------------------------------


def test_restart_is_idempotent_and_preserves_memory(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()
    harness.orchestrator.start_analysis([file_record_factory()])
    fingerprints_before = harness.memory.fingerprints

    first = harness.orchestrator.restart()
    state_after_first = harness.orchestrator.conversation
    second = harness.orchestrator.restart()

    assert first.status is second.status is TurnStatus.COMPLETED
    assert first.reply == second.reply == Message.assistant(MESSAGES["restarted"])
    assert state_after_first == harness.orchestrator.conversation == []
    assert harness.orchestrator.current_data is None
    assert harness.memory.fingerprints == fingerprints_before

    assert harness.storage.get(CONVERSATION_KEY) is None
    assert harness.storage.get(CURRENT_DATA_KEY) is None
    assert harness.storage.get(DATASET_MEMORY_KEY) is not None

    restarted = harness.event_bus.of_type(CONVERSATION_RESTARTED)
    assert [event.payload["memory_size"] for event in restarted] == [1, 1]


def test_restart_refreshes_suggestions_with_defaults(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()
    harness.orchestrator.start_analysis([file_record_factory()])
    suggestion_calls = len(harness.llm.calls_for("suggestions"))

    harness.orchestrator.restart()

    assert len(harness.llm.calls_for("suggestions")) == suggestion_calls
    latest = harness.event_bus.of_type(SUGGESTIONS_UPDATED)[-1].payload["suggestions"]
    assert [item["title"] for item in latest] == ["Upload Data", "Ask Technical Questions"]


# -- Load -----------------------------------------------------------------------------


def test_load_restores_previous_session(orchestrator_factory, file_record_factory, kv_store) -> None:
    first = orchestrator_factory()
    first.orchestrator.start_analysis([file_record_factory()])

    second = orchestrator_factory(storage=kv_store)
    second.event_bus.dispatched.clear()
    second.orchestrator.load()

    assert second.orchestrator.conversation == first.orchestrator.conversation
    assert second.orchestrator.current_data == first.orchestrator.current_data
    assert len(second.memory) == 1
    assert [entry["role"] for entry in second.displayed()] == ["user", "assistant"]


def test_load_resets_corrupt_records(orchestrator_factory, kv_store) -> None:
    kv_store.set(CONVERSATION_KEY, "{not json")
    kv_store.set(CURRENT_DATA_KEY, '[{"name": 1}]')
    kv_store.set(DATASET_MEMORY_KEY, "garbage")
    harness = orchestrator_factory()

    harness.orchestrator.load()

    assert harness.orchestrator.conversation == []
    assert harness.orchestrator.current_data is None
    assert len(harness.memory) == 0


# -- Single-flight --------------------------------------------------------------------


def test_concurrent_requests_are_rejected_while_busy(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory()
    entered = threading.Event()
    release = threading.Event()

    def _slow_reply(messages: List[Message]) -> str:
        entered.set()
        assert release.wait(timeout=5)
        return "slow answer"

    harness.llm.script("analyst", _slow_reply)
    outcomes = {}
    worker = threading.Thread(
        target=lambda: outcomes.setdefault("first", harness.orchestrator.send_user_text("first question"))
    )
    worker.start()
    assert entered.wait(timeout=5)

    try:
        assert harness.orchestrator.is_busy
        assert harness.orchestrator.send_user_text("second question").status is TurnStatus.BUSY
        assert harness.orchestrator.start_analysis([file_record_factory()]).status is TurnStatus.BUSY
        assert harness.orchestrator.restart().status is TurnStatus.BUSY
    finally:
        release.set()
        worker.join(timeout=5)

    assert outcomes["first"].status is TurnStatus.COMPLETED
    assert [message.content for message in harness.orchestrator.conversation] == [
        "first question",
        "slow answer",
    ]
    busy_events = harness.event_bus.of_type(ORCHESTRATOR_BUSY)
    assert [event.payload["operation"] for event in busy_events] == [
        "send_user_text",
        "start_analysis",
        "restart",
    ]
    assert not harness.orchestrator.is_busy


# -- Renderer results after restart ---------------------------------------------------


def _held_reply(entered: threading.Event, release: threading.Event, text: str) -> Callable[[List[Message]], str]:
    def _reply(messages: List[Message]) -> str:
        entered.set()
        assert release.wait(timeout=5)
        return text

    return _reply


def test_restart_drops_results_of_renderers_still_running(orchestrator_factory, file_record_factory) -> None:
    harness = orchestrator_factory(executor=ThreadPoolExecutor(max_workers=3))
    release = threading.Event()
    entered = {name: threading.Event() for name in ("visualization", "recommendations", "suggestions")}
    harness.llm.script("visualization", _held_reply(entered["visualization"], release, "not json"))
    harness.llm.script("recommendations", _held_reply(entered["recommendations"], release, "## Late"))
    harness.llm.script("suggestions", _held_reply(entered["suggestions"], release, "not json"))

    analysis = harness.orchestrator.start_analysis([file_record_factory()])
    for event in entered.values():
        assert event.wait(timeout=5)

    cut = len(harness.event_bus.dispatched)
    restarted = harness.orchestrator.restart()
    release.set()
    for future in analysis.render_futures + restarted.render_futures:
        future.result(timeout=5)

    after = harness.event_bus.dispatched[cut:]
    published = [event.event_type for event in after]
    assert VISUALIZATION_UPDATED not in published
    assert RECOMMENDATIONS_UPDATED not in published
    suggestions = [event for event in after if event.event_type == SUGGESTIONS_UPDATED]
    assert len(suggestions) == 1
    assert [item["title"] for item in suggestions[0].payload["suggestions"]] == [
        "Upload Data",
        "Ask Technical Questions",
    ]
    assert harness.orchestrator.current_data is None


def test_newer_suggestions_job_supersedes_slower_one(orchestrator_factory) -> None:
    harness = orchestrator_factory(executor=ThreadPoolExecutor(max_workers=2))
    entered = threading.Event()
    release = threading.Event()
    harness.llm.script("suggestions", _held_reply(entered, release, "not json"), "not json")

    first = harness.orchestrator.send_user_text("first question")
    assert entered.wait(timeout=5)
    second = harness.orchestrator.send_user_text("second question")
    second.render_futures[0].result(timeout=5)
    release.set()
    first.render_futures[0].result(timeout=5)

    assert len(harness.event_bus.of_type(SUGGESTIONS_UPDATED)) == 1
