# core/llm_config.py
# ==============================
# LLM configuration helpers with environment-driven defaults
# Test mode talks to a local Ollama, prod mode to OpenRouter
# ==============================

import os
from typing import Literal, Dict, Any, Optional

from .llm_clients import BaseLLMClient, OllamaClient, OpenAICompatibleClient

LLMMode = Literal["test", "prod"]

# Default model names for each mode, per role:
# - diagnoser: drives the diagnostic conversation
# - care: writes care schedules for identified plants
DEFAULT_TEST_MODELS = {
    "diagnoser": "llama3.1:8b",
    "care": "llama3.1:8b",
}

DEFAULT_PROD_MODELS = {
    "diagnoser": "anthropic/claude-3.5-sonnet",
    "care": "anthropic/claude-3.5-sonnet",
}


def get_llm_mode() -> LLMMode:
    """
    Get the current LLM mode from environment.

    Returns:
        'test' or 'prod' based on LLM_MODE env var (default: 'prod').
    """
    mode = os.environ.get("LLM_MODE", "prod").lower()
    if mode in ("test", "local", "ollama"):
        return "test"
    return "prod"


def get_default_models(mode: Optional[LLMMode] = None) -> Dict[str, str]:
    """
    Get default model names for the given mode.

    In prod mode AI_MODEL applies to every role unless a role-specific
    LLM_PROD_<ROLE>_MODEL variable is set.

    Args:
        mode: 'test' or 'prod'. If None, uses get_llm_mode().

    Returns:
        Dict with 'diagnoser' and 'care' model names.
    """
    if mode is None:
        mode = get_llm_mode()

    if mode == "prod":
        shared = os.environ.get("AI_MODEL")
        return {
            role: os.environ.get(f"LLM_PROD_{role.upper()}_MODEL", shared or default)
            for role, default in DEFAULT_PROD_MODELS.items()
        }
    return {
        role: os.environ.get(f"LLM_TEST_{role.upper()}_MODEL", default)
        for role, default in DEFAULT_TEST_MODELS.items()
    }


def build_client(mode: Optional[LLMMode] = None, default_model: Optional[str] = None) -> BaseLLMClient:
    """
    Build an LLM client for the given mode.

    Args:
        mode: 'test' or 'prod'. If None, uses get_llm_mode().
        default_model: Model the client uses when complete() gets none.

    Returns:
        OllamaClient for test, OpenAICompatibleClient for prod.
    """
    if mode is None:
        mode = get_llm_mode()

    if mode == "prod":
        return OpenAICompatibleClient(default_model=default_model)
    return OllamaClient(default_model=default_model)


class LLMConfig:
    """
    Configuration container for LLM settings.
    Passed to the diagnosis engine and the care-schedule generator.
    """

    def __init__(
        self,
        mode: Optional[LLMMode] = None,
        diagnoser_model: Optional[str] = None,
        care_model: Optional[str] = None
    ):
        """
        Initialize LLM configuration.

        Args:
            mode: 'test' or 'prod'. If None, uses environment default.
            diagnoser_model: Model name for diagnosis. If None, uses default.
            care_model: Model name for care schedules. If None, uses default.
        """
        self.mode = mode or get_llm_mode()
        defaults = get_default_models(self.mode)

        self.diagnoser_model = diagnoser_model or defaults["diagnoser"]
        self.care_model = care_model or defaults["care"]

        self._client: Optional[BaseLLMClient] = None

    @property
    def client(self) -> BaseLLMClient:
        """Get or create the LLM client."""
        if self._client is None:
            self._client = build_client(self.mode, default_model=self.diagnoser_model)
        return self._client

    @client.setter
    def client(self, value: BaseLLMClient):
        """Set a custom LLM client."""
        self._client = value

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "mode": self.mode,
            "diagnoser_model": self.diagnoser_model,
            "care_model": self.care_model,
        }
