from typing import Any, Dict, List, Optional

import pytest
from requests import exceptions as requests_exceptions

from src.datasight.models.conversation import Message, Role
from src.datasight.models.exceptions import (
    LLMConnectionError,
    LLMRateLimitError,
    LLMServiceError,
    LLMTimeoutError,
)
from src.datasight.services.llm_service import LLMService, classify_error


class FlakyProvider:
    provider_name = "DummyProvider"

    def __init__(self, failures: Optional[List[Exception]] = None, reply: str = "ok") -> None:
        self.failures = list(failures or [])
        self.reply = reply
        self.invocations = 0
        self.calls: List[Dict[str, Any]] = []

    def get_available_models(self) -> List[str]:
        return ["test-model"]

    def complete(self, model_name: str, messages: List[Dict[str, Any]], config: dict, *, json_mode: bool = False, timeout: float = 30.0) -> str:
        self.invocations += 1
        self.calls.append(
            {"model": model_name, "messages": messages, "config": config, "json_mode": json_mode, "timeout": timeout}
        )
        if self.failures:
            raise self.failures.pop(0)
        return self.reply


class AlwaysFailProvider(FlakyProvider):
    def __init__(self, error: Exception) -> None:
        super().__init__()
        self.error = error

    def complete(self, *args: Any, **kwargs: Any) -> str:
        self.invocations += 1
        raise self.error


def _service(event_bus, provider: Any) -> LLMService:
    return LLMService(event_bus, settings={"model": "test-model", "request_timeout_seconds": 5}, provider=provider)


@pytest.fixture
def sleep_calls(monkeypatch: pytest.MonkeyPatch) -> List[int]:
    calls: List[int] = []
    monkeypatch.setattr("src.datasight.services.llm_service.time.sleep", lambda value: calls.append(value))
    return calls


def test_complete_for_agent_passes_wire_payload(event_bus, sleep_calls: List[int]) -> None:
    provider = FlakyProvider(reply="Sales grew 12%.")
    service = _service(event_bus, provider)

    reply = service.complete_for_agent("analyst", [Message.system("rules"), Message.user("trend?")], json_mode=True)

    assert reply.role is Role.ASSISTANT
    assert reply.content == "Sales grew 12%."
    call = provider.calls[0]
    assert call["model"] == "test-model"
    assert call["messages"] == [{"role": "system", "content": "rules"}, {"role": "user", "content": "trend?"}]
    assert call["config"]["temperature"] == 0.4
    assert call["json_mode"] is True
    assert call["timeout"] == 5.0
    assert sleep_calls == []


def test_complete_for_agent_retries_then_succeeds(event_bus, sleep_calls: List[int]) -> None:
    provider = FlakyProvider(failures=[TimeoutError("simulated timeout"), ConnectionError("simulated reset")])
    service = _service(event_bus, provider)

    reply = service.complete_for_agent("analyst", [Message.user("hi")])

    assert reply.content == "ok"
    assert provider.invocations == 3
    assert sleep_calls == [1, 2]
    assert [event.payload["message"] for event in event_bus.of_type("LLM_SERVICE_WARNING")] == [
        "Retrying LLM call (attempt 1/3)...",
        "Retrying LLM call (attempt 2/3)...",
    ]
    assert not event_bus.of_type("LLM_SERVICE_ERROR")


def test_complete_for_agent_raises_after_exhausted_retries(event_bus, sleep_calls: List[int]) -> None:
    provider = AlwaysFailProvider(error=TimeoutError("still timing out"))
    service = _service(event_bus, provider)

    with pytest.raises(LLMTimeoutError) as exc_info:
        service.complete_for_agent("analyst", [Message.user("hi")])

    assert "failed after 4 attempt(s)" in str(exc_info.value)
    assert exc_info.value.agent_name == "analyst"
    assert provider.invocations == 4
    assert sleep_calls == [1, 2, 4]
    assert len(event_bus.of_type("LLM_SERVICE_WARNING")) == 3
    error_events = event_bus.of_type("LLM_SERVICE_ERROR")
    assert len(error_events) == 1
    assert error_events[0].payload["suggestions"] == [
        "Check your API key configuration.",
        "Verify your provider quota usage.",
        "Ensure your network connection is stable.",
    ]


def test_non_retryable_error_fails_immediately(event_bus, sleep_calls: List[int]) -> None:
    provider = AlwaysFailProvider(error=KeyError("choices"))
    service = _service(event_bus, provider)

    with pytest.raises(LLMServiceError) as exc_info:
        service.complete_for_agent("suggestions", [Message.user("hi")])

    assert type(exc_info.value) is LLMServiceError
    assert provider.invocations == 1
    assert sleep_calls == []
    assert not event_bus.of_type("LLM_SERVICE_WARNING")


def test_http_429_is_classified_as_rate_limit(event_bus, sleep_calls: List[int]) -> None:
    class _Response:
        status_code = 429

    error = requests_exceptions.HTTPError("429 Client Error", response=_Response())
    provider = FlakyProvider(failures=[error])
    service = _service(event_bus, provider)

    assert service.complete_for_agent("analyst", [Message.user("hi")]).content == "ok"
    assert sleep_calls == [1]

    category, retryable = classify_error(error, "analyst")
    assert isinstance(category, LLMRateLimitError)
    assert retryable is True


def test_http_503_is_classified_as_connection_issue() -> None:
    class _Response:
        status_code = 503

    category, retryable = classify_error(
        requests_exceptions.HTTPError("503 Server Error", response=_Response()),
        "analyst",
    )

    assert isinstance(category, LLMConnectionError)
    assert retryable is True


def test_unknown_agent_is_rejected(event_bus) -> None:
    provider = FlakyProvider()
    service = _service(event_bus, provider)

    with pytest.raises(ValueError):
        service.complete_for_agent("poet", [Message.user("hi")])
    assert provider.invocations == 0


def test_missing_model_is_rejected(event_bus) -> None:
    service = LLMService(event_bus, settings={"model": ""}, provider=FlakyProvider())

    with pytest.raises(ValueError):
        service.complete_for_agent("analyst", [Message.user("hi")])


def test_reload_settings_keeps_injected_provider(event_bus) -> None:
    provider = FlakyProvider()
    service = _service(event_bus, provider)

    service.reload_settings({"provider": "ollama", "model": "llava", "request_timeout_seconds": 12})

    assert service.provider is provider
    assert service.model_name == "llava"
    assert service.timeout == 12.0
    assert service.get_available_models() == ["test-model"]
