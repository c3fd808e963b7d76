# core/json_llm_utils.py
# ==============================
# JSON extraction utilities for LLM outputs
# Locates ```json / ``` fenced blocks and outermost {...} spans
# ==============================

from typing import Optional

FENCE = "```"
JSON_FENCE = "```json"


def fenced_block(text: str, opening: str = FENCE) -> Optional[str]:
    """
    Return the stripped content between the first `opening` fence and the
    next ``` fence.

    If the block is never closed, everything after the opening fence is
    returned.

    Args:
        text: Raw LLM output.
        opening: The opening marker, e.g. "```json" or "```".

    Returns:
        The block content, or None if `opening` does not occur.
    """
    if not text or opening not in text:
        return None
    after = text.split(opening, 1)[1]
    return after.split(FENCE, 1)[0].strip()


def brace_span(text: str) -> Optional[str]:
    """
    Return the substring from the first '{' to the last '}' inclusive.

    Args:
        text: Raw LLM output.

    Returns:
        The span, or None if there is no '{' followed later by a '}'.
    """
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None
    return text[start:end + 1]

