import logging
from typing import Any, Optional, Sequence

from src.datasight.models.conversation import Message, non_system_messages
from src.datasight.models.dataset import FileRecord
from src.datasight.models.event_types import RECOMMENDATIONS_UPDATED
from src.datasight.models.events import Event
from src.datasight.services.prompt_builder import build_recommendations_instruction

logger = logging.getLogger(__name__)

RECOMMENDATIONS_FAILURE_TEXT = "Unable to generate recommendations. Please try again."


class RecommendationService:
    """Predictions and actionable recommendations for the analyzed batch."""

    AGENT_NAME = "recommendations"

    def __init__(self, llm_service: Any, event_bus: Any) -> None:
        self.llm_service = llm_service
        self.event_bus = event_bus

    def generate(
        self,
        messages: Sequence[Message],
        current_data: Optional[Sequence[FileRecord]],
        memory_size: int,
    ) -> Optional[str]:
        """
        Request recommendations using every non-system message as context.

        Returns the recommendation text, the fixed failure text, or None when
        there is no analyzed data to talk about.
        """
        if not current_data:
            logger.debug("No analyzed data; skipping recommendations")
            return None

        request = [
            Message.system(build_recommendations_instruction(memory_size)),
            *non_system_messages(messages),
        ]
        try:
            reply = self.llm_service.complete_for_agent(self.AGENT_NAME, request)
            content, ok = reply.display_text(), True
        except Exception as exc:  # noqa: BLE001 - renderer failures stay local
            logger.error("Recommendations request failed: %s", exc)
            content, ok = RECOMMENDATIONS_FAILURE_TEXT, False

        self.event_bus.dispatch(
            Event(event_type=RECOMMENDATIONS_UPDATED, payload={"content": content, "ok": ok})
        )
        return content
