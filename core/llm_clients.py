# core/llm_clients.py
# ==============================
# LLM client abstractions for test (Ollama) and production (OpenRouter /
# OpenAI-compatible) endpoints, plus a scripted mock for tests
# ==============================

import os
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Union

from core.errors import ConfigError, UpstreamError

DEFAULT_PROD_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_OLLAMA_HOST = "http://localhost:11434"
COMPLETION_TIMEOUT = 300  # seconds, large models can be slow


def extract_content(response: Any) -> str:
    """
    Extract text content from the shapes a client may return.

    Handles plain strings, {'content': ...} dicts, Ollama-style
    {'message': {'content': ...}} dicts and lists of either.
    """
    if isinstance(response, str):
        return response
    if isinstance(response, dict):
        if "message" in response and isinstance(response["message"], dict):
            return response["message"].get("content") or ""
        return response.get("content") or ""
    if isinstance(response, list) and response:
        first = response[0]
        return first.get("content", "") if isinstance(first, dict) else str(first)
    return str(response) if response else ""


def _error_body(r) -> Any:
    try:
        return r.json()
    except ValueError:
        return {"error_text": r.text}


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients."""

    def __init__(self, default_model: Optional[str] = None):
        self.default_model = default_model

    @abstractmethod
    def chat(
        self,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float = 0.0
    ) -> Union[Dict[str, Any], str]:
        """
        Send a chat completion request.

        Args:
            model: The model name/identifier.
            messages: List of message dicts with 'role' and 'content'.
            temperature: Sampling temperature (0 = deterministic).

        Returns:
            Either a dict with 'content' key or a raw string.
        """

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.0
    ) -> str:
        """
        Send a system + user prompt pair and return the raw completion text.

        Args:
            system_prompt: Instructions for the model.
            user_prompt: The request body.
            model: Model override; defaults to the client's default_model.
            temperature: Sampling temperature.

        Returns:
            The completion text, never empty.

        Raises:
            ConfigError: If no model is given and the client has no default.
            UpstreamError: On transport/HTTP failure or empty completion.
        """
        model = model or self.default_model
        if not model:
            raise ConfigError("No model configured for LLM completion")

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        content = extract_content(self.chat(model=model, messages=messages, temperature=temperature))
        if not content.strip():
            raise UpstreamError("No response from AI", {"model": model})
        return content


class OllamaClient(BaseLLMClient):
    """
    Client for local Ollama HTTP API.
    Default endpoint: http://localhost:11434
    """

    def __init__(self, host: Optional[str] = None, default_model: Optional[str] = None):
        """
        Initialize Ollama client.

        Args:
            host: Ollama API host URL. Defaults to OLLAMA_HOST env var
                  or http://localhost:11434.
            default_model: Model used by complete() when none is passed.
        """
        import requests
        super().__init__(default_model)
        self._requests = requests
        self.host = (host or os.environ.get("OLLAMA_HOST", DEFAULT_OLLAMA_HOST)).rstrip("/")

    def chat(
        self,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float = 0.0
    ) -> Dict[str, Any]:
        """Send a chat request to Ollama."""
        payload = {
            "model": model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature}
        }

        try:
            r = self._requests.post(
                f"{self.host}/api/chat",
                json=payload,
                timeout=COMPLETION_TIMEOUT
            )
        except self._requests.exceptions.ConnectionError as e:
            raise UpstreamError(
                f"Could not connect to Ollama at {self.host}. "
                "Make sure Ollama is running (ollama serve)."
            ) from e
        except self._requests.exceptions.RequestException as e:
            raise UpstreamError(f"Ollama request failed: {e}") from e

        if not r.ok:
            raise UpstreamError(f"Ollama error {r.status_code}", {"body": _error_body(r)})

        data = r.json()
        msg = data.get("message") or {}
        return {"content": msg.get("content", "")}


class OpenAICompatibleClient(BaseLLMClient):
    """
    Client for OpenAI-compatible chat completion endpoints.
    Defaults to OpenRouter; also works with OpenAI, vLLM and similar services.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        default_model: Optional[str] = None
    ):
        """
        Initialize OpenAI-compatible client.

        Args:
            base_url: API base URL. Defaults to PROD_LLM_BASE_URL env var
                      or https://openrouter.ai/api/v1.
            api_key: API key. Defaults to PROD_LLM_API_KEY, then
                     OPENROUTER_API_KEY.
            default_model: Model used by complete() when none is passed.
        """
        import requests
        super().__init__(default_model)
        self._requests = requests

        self.base_url = (
            base_url or
            os.environ.get("PROD_LLM_BASE_URL", DEFAULT_PROD_BASE_URL)
        ).rstrip("/")
        self.api_key = (
            api_key
            or os.environ.get("PROD_LLM_API_KEY")
            or os.environ.get("OPENROUTER_API_KEY", "")
        )

    def chat(
        self,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float = 0.0
    ) -> Dict[str, Any]:
        """Send a chat completion request to an OpenAI-compatible endpoint."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }

        try:
            r = self._requests.post(
                f"{self.base_url}/chat/completions",
                headers=headers,
                json=payload,
                timeout=COMPLETION_TIMEOUT
            )
        except self._requests.exceptions.RequestException as e:
            raise UpstreamError(f"Could not reach LLM endpoint at {self.base_url}: {e}") from e

        if not r.ok:
            raise UpstreamError(f"AI API error {r.status_code}", {"body": _error_body(r)})

        data = r.json()
        choices = data.get("choices") or []
        if not choices:
            return {"content": ""}
        msg = choices[0].get("message") or {}
        return {"content": msg.get("content") or ""}


class MockLLMClient(BaseLLMClient):
    """
    Scripted client for tests.

    Returns the given replies in order, one per call, and records every
    request in call_history.
    """

    def __init__(self, replies: Optional[List[str]] = None, default_model: str = "mock-model"):
        super().__init__(default_model)
        self.replies = list(replies or [])
        self.call_history: List[Dict[str, Any]] = []

    def queue(self, *replies: str) -> None:
        self.replies.extend(replies)

    def chat(
        self,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float = 0.0
    ) -> Dict[str, Any]:
        """Return the next scripted reply."""
        self.call_history.append({
            "model": model,
            "messages": messages,
            "temperature": temperature
        })
        if not self.replies:
            raise UpstreamError("Mock client has no scripted replies left")
        return {"content": self.replies.pop(0)}
