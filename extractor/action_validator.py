# extractor/action_validator.py
# ==============================
# Validates an extracted payload against the diagnostic action grammar
# and turns it into a typed instruction
# ==============================

from typing import Any, Mapping

from core.errors import InvalidAction, MissingPayload, InvalidPayload
from .response_extractor import extract_structured
from .schema import (
    DiagnosisAction, ActionInstruction,
    GetPlantVitals, LogState, AskUser, Conclude
)

ACTION_NAMES = ", ".join(a.value for a in DiagnosisAction)


def _required_text(payload: Mapping[str, Any], action: DiagnosisAction, field: str) -> str:
    """Return a non-empty string field or raise InvalidPayload."""
    value = payload.get(field)
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload(
            f"{action.value} payload must contain a non-empty '{field}' string",
            {"action": action.value, "field": field},
        )
    return value


def _parse_action_name(value: Any) -> DiagnosisAction:
    if not isinstance(value, Mapping):
        raise InvalidAction(
            f"AI response must be a JSON object, got {type(value).__name__}"
        )
    name = value.get("action")
    if not isinstance(name, str):
        raise InvalidAction("Missing 'action' field in AI response")
    try:
        return DiagnosisAction(name)
    except ValueError:
        raise InvalidAction(
            f"Invalid action: {name}", {"expected": ACTION_NAMES}
        ) from None


def validate_action(value: Any) -> ActionInstruction:
    """
    Check a parsed value against the grammar of diagnostic actions.

    Expected shape: {"action": <name>, "payload": {...}}.

    Args:
        value: A value produced by extract_structured().

    Returns:
        The typed instruction for the action.

    Raises:
        InvalidAction: Not an object, or action missing/unrecognized.
        MissingPayload: Payload missing or null.
        InvalidPayload: Payload does not match the action's grammar.
    """
    action = _parse_action_name(value)

    payload = value.get("payload")
    if payload is None:
        raise MissingPayload("Missing 'payload' field in AI response", {"action": action.value})

    if action is DiagnosisAction.GET_PLANT_VITALS:
        return GetPlantVitals()

    if action is DiagnosisAction.LOG_STATE:
        if not isinstance(payload, Mapping) or not payload:
            raise InvalidPayload("LOG_STATE payload must be a non-empty object", {"action": action.value})
        return LogState(entries=dict(payload))

    if not isinstance(payload, Mapping):
        raise InvalidPayload(f"{action.value} payload must be an object", {"action": action.value})

    if action is DiagnosisAction.ASK_USER:
        return AskUser(question=_required_text(payload, action, "question"))

    if action is DiagnosisAction.CONCLUDE:
        return Conclude(
            finding=_required_text(payload, action, "finding"),
            recommendation=_required_text(payload, action, "recommendation"),
        )

    raise InvalidAction(f"Unhandled action: {action.value}")


def parse_action(raw_text: str) -> ActionInstruction:
    """Extract and validate an action instruction from raw AI text."""
    return validate_action(extract_structured(raw_text))
