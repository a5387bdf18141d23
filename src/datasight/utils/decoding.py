"""Helpers for turning structured model output into typed values."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, TypeVar, Union

from pydantic import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.S | re.I)
_BARE_JSON = re.compile(r"(\{.*\})", re.S)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def parse_json_object(raw: str) -> Dict[str, Any]:
    """
    Extract a JSON object from model output.

    Accepts a bare object, an object wrapped in a fenced code block, or an
    object embedded in surrounding prose. Trailing commas are tolerated.

    Raises:
        ValueError: If no JSON object can be decoded.
    """
    if not isinstance(raw, str):
        raise TypeError(f"Expected text, got {type(raw).__name__}")

    text = raw.strip()
    candidates = [text]
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    bare = _BARE_JSON.search(text)
    if bare:
        candidates.append(bare.group(1))

    for candidate in candidates:
        for attempt in (candidate, _TRAILING_COMMA.sub(r"\1", candidate)):
            try:
                value = json.loads(attempt)
            except json.JSONDecodeError:
                continue
            if isinstance(value, dict):
                return value
    raise ValueError("No JSON object found in model output")


def decode_with_fallback(
    raw: Any,
    decoder: Callable[[Any], T],
    fallback: Union[T, Callable[[], T]],
    *,
    label: str = "structured response",
) -> T:
    """
    Decode ``raw`` with ``decoder``; return ``fallback`` when decoding fails.

    ``fallback`` may be a zero-argument callable so mutable defaults are
    rebuilt on every use.
    """
    try:
        return decoder(raw)
    except (ValueError, TypeError, KeyError, ValidationError) as exc:
        logger.warning("Failed to decode %s; using fallback: %s", label, exc)
        return fallback() if callable(fallback) else fallback
