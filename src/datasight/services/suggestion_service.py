"""Best-effort next-step suggestions derived from the conversation."""

import logging
from typing import Any, List, Sequence

from src.datasight.models.conversation import Message, non_system_messages
from src.datasight.models.event_types import SUGGESTIONS_UPDATED
from src.datasight.models.events import Event
from src.datasight.models.suggestion import Suggestion, SuggestionCategory, SuggestionSet
from src.datasight.services.prompt_builder import build_suggestions_instruction
from src.datasight.utils.decoding import decode_with_fallback, parse_json_object

logger = logging.getLogger(__name__)


def default_suggestions() -> List[Suggestion]:
    return [
        Suggestion(
            title="Upload Data",
            description="Upload your data files for comprehensive analysis and insights.",
            category=SuggestionCategory.CHART,
        ),
        Suggestion(
            title="Ask Technical Questions",
            description="Ask about specific data points, trends, or statistical analysis.",
            category=SuggestionCategory.CODE,
        ),
    ]


def malformed_response_suggestions() -> List[Suggestion]:
    return [
        Suggestion(
            title="Run Predictive Analysis",
            description="Project future trends based on the current data patterns.",
            category=SuggestionCategory.PREDICT,
        ),
        Suggestion(
            title="Export Analysis Report",
            description="Generate a comprehensive PDF report with all insights.",
            category=SuggestionCategory.EXPORT,
        ),
    ]


def failed_call_suggestions() -> List[Suggestion]:
    return [
        Suggestion(
            title="Ask Follow-up Questions",
            description="Ask further questions to get more insights from your data.",
            category=SuggestionCategory.QUESTION,
        ),
    ]


def _decode_suggestions(raw: str) -> List[Suggestion]:
    return SuggestionSet.model_validate(parse_json_object(raw)).suggestions


class SuggestionService:
    """
    Turns the current conversation into 2-3 suggested next steps.

    Never raises and never touches the conversation it is given: every
    failure resolves to a fixed suggestion set.
    """

    AGENT_NAME = "suggestions"

    def __init__(self, llm_service: Any, event_bus: Any) -> None:
        self.llm_service = llm_service
        self.event_bus = event_bus

    def refresh(self, messages: Sequence[Message]) -> List[Suggestion]:
        """
        Compute suggestions for ``messages`` (a snapshot of the conversation) and publish them.
        """
        suggestions = self._compute(list(messages))
        self.event_bus.dispatch(
            Event(
                event_type=SUGGESTIONS_UPDATED,
                payload={"suggestions": [item.model_dump(mode="json") for item in suggestions]},
            )
        )
        return suggestions

    def _compute(self, messages: List[Message]) -> List[Suggestion]:
        if len(messages) <= 1:
            return default_suggestions()

        context = non_system_messages(messages)
        request = [Message.system(build_suggestions_instruction()), *context]
        try:
            reply = self.llm_service.complete_for_agent(self.AGENT_NAME, request, json_mode=True)
        except Exception as exc:  # noqa: BLE001 - suggestions are advisory only
            logger.error("Suggestions request failed: %s", exc)
            return failed_call_suggestions()

        return decode_with_fallback(
            reply.display_text(),
            _decode_suggestions,
            malformed_response_suggestions,
            label="suggestions",
        )
