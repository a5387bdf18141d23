"""
Post-processing for speech transcripts before they enter the chat.

Speech capture belongs to the platform layer; this module only picks the
best transcript, strips filler words and forwards the text to the same
entry point as typed input.
"""

import logging
import re
from typing import Any, Callable, Optional, Sequence, Tuple

from src.datasight.config import VOICE_CONFIG

logger = logging.getLogger(__name__)

FILLER_WORDS = ("um", "uh", "like", "so", "you know", "actually")

_FILLER_PATTERNS = [re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE) for word in FILLER_WORDS]
_WHITESPACE = re.compile(r"\s+")

# (transcript, confidence) for the top alternative of each recognized segment.
Alternative = Tuple[str, float]


def select_transcript(
    alternatives: Sequence[Alternative],
    threshold: float = VOICE_CONFIG["confidence_threshold"],
) -> str:
    """
    Pick the most confident transcript above ``threshold``.

    When nothing clears the threshold, every transcript is joined in order.
    """
    best_text = ""
    best_confidence = 0.0
    for text, confidence in alternatives:
        if confidence > best_confidence and confidence > threshold:
            best_confidence = confidence
            best_text = text

    if not best_text and alternatives:
        best_text = " ".join(text for text, _ in alternatives)
    return best_text


def clean_transcript(transcript: Optional[str]) -> str:
    if not transcript:
        return ""
    cleaned = transcript
    for pattern in _FILLER_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


class VoiceCommandRouter:
    """Feeds recognized speech into the conversation as if it had been typed."""

    def __init__(self, send_user_text: Callable[[str], Any], threshold: float = VOICE_CONFIG["confidence_threshold"]) -> None:
        self._send_user_text = send_user_text
        self.threshold = threshold

    def submit(self, alternatives: Sequence[Alternative]) -> Optional[Any]:
        """Clean the best transcript and send it; empty results are dropped."""
        command = clean_transcript(select_transcript(alternatives, self.threshold))
        if not command:
            logger.debug("Voice input produced no usable transcript")
            return None
        logger.info("Submitting voice command (%d chars)", len(command))
        return self._send_user_text(command)
