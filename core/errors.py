# core/errors.py
# ==============================
# Error taxonomy shared by the diagnosis engine, stores and adapters
# ==============================

from typing import Any, Dict, Optional


class PlantCareError(Exception):
    """Base exception for all plant-care errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the error with a message and optional context.

        Args:
            message: Human-readable error message.
            details: Optional dict of extra context for debugging.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class NotFound(PlantCareError):
    """A plant or diagnosis session does not exist (for this user)."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}", {"id": identifier})


class Unauthorized(PlantCareError):
    """The session's plant does not belong to the caller."""

    def __init__(self, session_id: str, user_id: str):
        super().__init__(
            "Unauthorized access to diagnosis",
            {"session_id": session_id, "user_id": user_id},
        )


class InvalidState(PlantCareError):
    """An operation was attempted on a session in the wrong status."""

    def __init__(
        self,
        session_id: str,
        status: str,
        message: str = "Cannot update a completed or cancelled diagnosis"
    ):
        self.status = status
        super().__init__(message, {"session_id": session_id, "status": status})


class UpstreamError(PlantCareError):
    """An external API call failed or returned no usable content."""


class ParseFailure(PlantCareError):
    """No structured payload could be extracted from AI text."""

    def __init__(self, raw_text: str, message: str = "Could not parse AI response as valid JSON"):
        self.raw_text = raw_text
        super().__init__(message, {"raw_text": raw_text[:500]})


class ActionValidationError(PlantCareError):
    """Base class for diagnostic action validation failures."""


class InvalidAction(ActionValidationError):
    """The action name is missing or not one of the recognized kinds."""


class MissingPayload(ActionValidationError):
    """The payload field is missing or null."""


class InvalidPayload(ActionValidationError):
    """The payload does not match the grammar of its action."""


class StepLimitExceeded(PlantCareError):
    """The AI kept looping without asking or concluding."""

    def __init__(self, session_id: str, max_steps: int):
        self.max_steps = max_steps
        super().__init__(
            f"Diagnosis did not ask or conclude within {max_steps} steps",
            {"session_id": session_id},
        )


class ConfigError(PlantCareError):
    """A required configuration value is missing."""
