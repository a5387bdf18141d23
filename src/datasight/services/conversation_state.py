"""Ordered chat log with system-message placement rules, trimming and JSON snapshots."""

import json
import logging
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from src.datasight.config import CONVERSATION_TAIL_SIZE, CONVERSATION_TRIM_THRESHOLD
from src.datasight.models.conversation import Message

logger = logging.getLogger(__name__)

_MESSAGE_LIST = TypeAdapter(List[Message])


class ConversationState:
    """
    Ordered message log sent to the completion service.

    At most one system message exists and, when present, it is the first
    entry. The log only grows during normal operation; ``trim`` and
    ``clear`` are the only ways entries leave it.
    """

    def __init__(self, messages: Optional[List[Message]] = None) -> None:
        self._messages: List[Message] = []
        for message in messages or []:
            self.append(message)

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    @property
    def is_empty(self) -> bool:
        return not self._messages

    def append(self, message: Message) -> None:
        if message.is_system and self._messages:
            raise ValueError("A system message may only be the first entry of the conversation.")
        self._messages.append(message)

    def seed_system(self, text: str) -> None:
        if not self.is_empty:
            raise ValueError("Only an empty conversation can be seeded.")
        self._messages.append(Message.system(text))

    def rollback_to(self, length: int) -> None:
        """Drop every entry after the first ``length`` ones."""
        del self._messages[max(length, 0):]

    def trim(
        self,
        threshold: int = CONVERSATION_TRIM_THRESHOLD,
        tail: int = CONVERSATION_TAIL_SIZE,
    ) -> bool:
        """
        Keep the head entry plus the ``tail`` most recent ones once the log exceeds ``threshold``.

        The head is kept whatever its role so a leading system message always survives.
        Returns True when entries were dropped.
        """
        if len(self._messages) <= threshold:
            return False
        dropped = len(self._messages) - tail - 1
        self._messages = [self._messages[0], *self._messages[-tail:]]
        logger.debug("Trimmed %d messages from conversation history", dropped)
        return True

    def clear(self) -> None:
        self._messages = []

    def to_payload(self) -> List[dict]:
        return [message.to_payload() for message in self._messages]

    def dumps(self) -> str:
        return json.dumps(self.to_payload())

    @classmethod
    def loads(cls, raw: Optional[str]) -> "ConversationState":
        """Rebuild a conversation from a snapshot; unreadable snapshots yield an empty one."""
        if not raw:
            return cls()
        try:
            return cls(_MESSAGE_LIST.validate_json(raw))
        except (ValidationError, ValueError) as exc:
            logger.warning("Stored conversation is unreadable; starting empty: %s", exc)
            return cls()
