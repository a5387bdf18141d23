"""
Blocking chat-completion dispatcher shared by every remote call in the app.

Each call is made on behalf of a named agent from ``AGENT_CONFIG`` so the
analyst, suggestions, visualization, recommendations and commentary
requests keep their own generation parameters. Transient provider
failures are retried here, before a reply ever reaches the conversation.
"""

import copy
import logging
import socket
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from requests import exceptions as requests_exceptions

from src.datasight.config import AGENT_CONFIG, DEFAULT_REQUEST_TIMEOUT_SECONDS
from src.datasight.models.conversation import Message
from src.datasight.models.event_types import LLM_SERVICE_ERROR, LLM_SERVICE_WARNING
from src.datasight.models.events import Event
from src.datasight.models.exceptions import (
    LLMConnectionError,
    LLMRateLimitError,
    LLMServiceError,
    LLMTimeoutError,
)
from src.datasight.services.user_settings_manager import load_user_settings, resolve_api_key
from src.providers.base import LLMProvider
from src.providers.ollama_provider import OllamaProvider
from src.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

_CONNECTION_PHRASES = (
    "connection reset",
    "connection aborted",
    "connection refused",
    "connection closed",
    "temporary failure in name resolution",
    "network unreachable",
    "dns failure",
)

_CONNECTION_TYPES = (
    ConnectionError,
    socket.gaierror,
    requests_exceptions.ConnectionError,
    requests_exceptions.ProxyError,
    requests_exceptions.SSLError,
    requests_exceptions.ChunkedEncodingError,
)


def _status_code(exc: Exception) -> Optional[int]:
    response = getattr(exc, "response", None)
    code = getattr(response, "status_code", None)
    return code if code is not None else getattr(exc, "status_code", None)


def _looks_like_timeout(exc: Exception) -> bool:
    if isinstance(exc, (TimeoutError, socket.timeout, requests_exceptions.Timeout)):
        return True
    text = str(exc).lower()
    return "timeout" in text or "timed out" in text


def _looks_like_rate_limit(exc: Exception) -> bool:
    if _status_code(exc) == 429:
        return True
    text = str(exc).lower()
    return "rate limit" in text or "quota" in text


def _looks_like_connection_issue(exc: Exception) -> bool:
    if isinstance(exc, _CONNECTION_TYPES):
        return True
    if isinstance(exc, requests_exceptions.HTTPError) and _status_code(exc) in (502, 503, 504):
        return True
    text = str(exc).lower()
    return any(phrase in text for phrase in _CONNECTION_PHRASES)


# Checked in order; the first matching rule decides the error class.
_TRANSIENT_RULES: Tuple[Tuple[Callable[[Exception], bool], Type[LLMServiceError], str], ...] = (
    (_looks_like_timeout, LLMTimeoutError, "Timeout"),
    (_looks_like_rate_limit, LLMRateLimitError, "Rate limit"),
    (_looks_like_connection_issue, LLMConnectionError, "Connection issue"),
)


def classify_error(exc: Exception, agent_name: str) -> Tuple[LLMServiceError, bool]:
    """
    Map a provider exception onto the service error hierarchy.

    Returns:
        ``(error, retryable)``. Errors already raised as ``LLMServiceError``
        are passed through and never retried.
    """
    if isinstance(exc, LLMServiceError):
        return exc, False
    for matches, error_class, label in _TRANSIENT_RULES:
        if matches(exc):
            return error_class(f"{label} for agent '{agent_name}': {exc}", agent_name=agent_name, cause=exc), True
    return LLMServiceError(f"Provider error for agent '{agent_name}': {exc}", agent_name=agent_name, cause=exc), False


class LLMService:
    """
    Dispatches completions to the configured provider.

    The provider is rebuilt from user settings on every ``reload_settings``
    call unless one was injected at construction time.
    """

    RETRY_DELAYS: Tuple[int, ...] = (1, 2, 4)
    FAILURE_HINTS: Tuple[str, ...] = (
        "Check your API key configuration.",
        "Verify your provider quota usage.",
        "Ensure your network connection is stable.",
    )

    def __init__(
        self,
        event_bus: Any,
        settings: Optional[Dict[str, Any]] = None,
        provider: Optional[LLMProvider] = None,
    ) -> None:
        self.event_bus = event_bus
        self.provider: Optional[LLMProvider] = provider
        self._owns_provider = provider is None
        self.settings: Dict[str, Any] = {}
        self.agent_config: Dict[str, Dict[str, Any]] = {}
        self.model_name = ""
        self.timeout = DEFAULT_REQUEST_TIMEOUT_SECONDS
        self.reload_settings(settings)

    def reload_settings(self, settings: Optional[Dict[str, Any]] = None) -> None:
        self.settings = settings if settings is not None else load_user_settings()
        self.model_name = self.settings.get("model") or ""
        self.timeout = float(self.settings.get("request_timeout_seconds") or DEFAULT_REQUEST_TIMEOUT_SECONDS)
        self.agent_config = copy.deepcopy(AGENT_CONFIG)
        if self._owns_provider:
            self.provider = self._provider_for(self.settings)
        logger.info(
            "Completion backend: %s / %s (timeout %.1fs)",
            getattr(self.provider, "provider_name", None),
            self.model_name,
            self.timeout,
        )

    @staticmethod
    def _provider_for(settings: Dict[str, Any]) -> LLMProvider:
        if settings.get("provider") == "ollama":
            return OllamaProvider(host=settings.get("base_url"))
        return OpenAIProvider(base_url=settings["base_url"], api_key=resolve_api_key(settings))

    def complete_for_agent(
        self,
        agent_name: str,
        messages: Sequence[Message],
        *,
        json_mode: bool = False,
    ) -> Message:
        """
        Send ``messages`` and return the assistant reply.

        Raises:
            ValueError: If the agent is unknown or no model is configured.
            LLMServiceError: If the provider still fails after the retries.
        """
        params = self.agent_config.get(agent_name)
        if params is None or not self.model_name or self.provider is None:
            raise ValueError(f"Agent '{agent_name}' is not configured with a valid model.")

        provider = self.provider
        wire_messages: List[Dict[str, Any]] = [message.to_payload() for message in messages]
        text = self._with_retries(
            agent_name,
            lambda: provider.complete(
                self.model_name,
                wire_messages,
                params,
                json_mode=json_mode,
                timeout=self.timeout,
            ),
        )
        return Message.assistant(text)

    def _with_retries(self, agent_name: str, call: Callable[[], str]) -> str:
        retries = len(self.RETRY_DELAYS)
        attempt = 0
        while True:
            attempt += 1
            try:
                result = call()
            except Exception as exc:  # noqa: BLE001 - classified below
                error, retryable = classify_error(exc, agent_name)
                if not retryable or attempt > retries:
                    raise self._final_failure(agent_name, error, attempt)

                logger.warning("Completion for '%s' failed (%s); retry %d/%d", agent_name, error, attempt, retries)
                self._notify(LLM_SERVICE_WARNING, {"message": f"Retrying LLM call (attempt {attempt}/{retries})..."})
                time.sleep(self.RETRY_DELAYS[attempt - 1])
                continue

            logger.info("Completion for '%s' succeeded on attempt %d", agent_name, attempt)
            return result

    def _final_failure(self, agent_name: str, error: LLMServiceError, attempts: int) -> LLMServiceError:
        message = f"complete for agent '{agent_name}' failed after {attempts} attempt(s): {error}"
        logger.error("LLM %s", message)
        self._notify(LLM_SERVICE_ERROR, {"message": message, "suggestions": list(self.FAILURE_HINTS)})
        return error.__class__(message, agent_name=agent_name, cause=error.__cause__ or error)

    def _notify(self, event_type: str, payload: Dict[str, Any]) -> None:
        # Telemetry must never mask the completion result.
        try:
            self.event_bus.dispatch(Event(event_type=event_type, payload=payload))
        except Exception:  # pragma: no cover
            logger.debug("Could not dispatch %s", event_type, exc_info=True)

    def get_available_models(self) -> List[str]:
        return self.provider.get_available_models() if self.provider is not None else []
