# extractor/response_extractor.py
# ==============================
# Pulls a structured (JSON) value out of raw AI text that may be wrapped
# in prose or code fences
# ==============================

import json
import logging
from typing import Any, Callable, List, Optional, Tuple

from core.errors import ParseFailure
from core.json_llm_utils import JSON_FENCE, FENCE, fenced_block, brace_span

logger = logging.getLogger(__name__)

_MISSING = object()


def _try_parse(candidate: Optional[str]) -> Any:
    """json.loads that returns _MISSING instead of raising."""
    if candidate is None:
        return _MISSING
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, TypeError):
        return _MISSING


def _candidates(text: str) -> List[Tuple[str, Callable[[], Optional[str]]]]:
    """Extraction strategies in strict precedence order."""
    steps = [("direct", lambda: text)]
    if JSON_FENCE in text:
        steps.append(("json fence", lambda: fenced_block(text, JSON_FENCE)))
    elif FENCE in text:
        steps.append(("fence", lambda: fenced_block(text, FENCE)))
    steps.append(("braces", lambda: brace_span(text)))
    return steps


def extract_structured(raw_text: str) -> Any:
    """
    Extract a parsed JSON value from raw AI output.

    Precedence:
        1. The whole text as JSON.
        2. The first ```json fenced block, if any.
        3. Otherwise the first generic ``` fenced block, if any.
        4. The span from the first '{' to the last '}' inclusive.

    Malformed JSON is never repaired.

    A step that applies but fails to parse falls through to the next.

    Args:
        raw_text: Text returned by the AI client.

    Returns:
        The parsed value (usually a dict).

    Raises:
        ParseFailure: If no step yields valid JSON. Carries the raw text.
    """
    if raw_text is None:
        raise ParseFailure("", "AI response was empty")

    for name, strategy in _candidates(raw_text):
        value = _try_parse(strategy())
        if value is not _MISSING:
            logger.debug("Extracted structured payload via %s", name)
            return value

    raise ParseFailure(raw_text)
