"""
Custom exceptions raised by the DataSight services.

Remote-call errors carry enough context for the orchestrator to degrade
to a visible-but-recoverable state while operators get the root cause
in the logs.
"""
from __future__ import annotations

from typing import Optional


class LLMServiceError(Exception):
    """
    Base exception for failures that originate from the LLM service layer.

    Args:
        message: Human-readable description of the error.
        agent_name: Optional agent identifier associated with the failure.
        cause: Optional underlying exception that triggered the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        agent_name: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.agent_name = agent_name
        self.__cause__ = cause


class LLMRateLimitError(LLMServiceError):
    """
    Raised when the completion service signals that the client exceeded a
    rate limit or quota threshold.
    """


class LLMTimeoutError(LLMServiceError):
    """
    Raised when a completion request exceeds the configured timeout window.
    """


class LLMConnectionError(LLMServiceError):
    """
    Raised when the client cannot reach the completion service due to network
    connectivity issues.
    """


class FileValidationError(Exception):
    """Raised for an uploaded file that fails the size or type checks."""

    def __init__(self, file_name: str, reason: str) -> None:
        super().__init__(f"{file_name}: {reason}")
        self.file_name = file_name
        self.reason = reason


class OrchestratorBusyError(RuntimeError):
    """Raised when a conversation mutation is attempted while another is in flight."""
