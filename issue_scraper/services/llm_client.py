"""
LLM client for issue analysis via HTTP APIs.

Supports OpenAI-compatible servers (Jan, OpenAI, any /v1/chat/completions
endpoint) and Google Gemini's generateContent API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import requests

from issue_scraper.utils import get_logger

JAN_DEFAULT_URL = "http://localhost:1337"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_DEFAULT_MODEL = "gemini-2.0-flash-001"


@dataclass
class LLMResult:
    """Result from an LLM chat request."""

    content: str
    model: str
    finish_reason: str


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    @abstractmethod
    def chat(
        self,
        messages: list[dict[str, str]],
        response_format: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResult:
        """Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            response_format: Optional format hint ('json' for JSON output)
            max_tokens: Optional max tokens for response

        Returns:
            LLMResult with generated content
        """
        raise NotImplementedError

    @abstractmethod
    def test_connection(self) -> bool:
        """Test connectivity to the LLM service.

        Returns:
            True if service is reachable
        """
        raise NotImplementedError

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the client has valid configuration."""
        raise NotImplementedError

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name for logging."""
        raise NotImplementedError

    @property
    @abstractmethod
    def model(self) -> str:
        """Configured model name."""
        raise NotImplementedError


class APILLMClient(LLMClient):
    """LLM client for OpenAI-compatible APIs.

    Uses POST {url}/v1/chat/completions with optional Bearer token auth.
    """

    def __init__(
        self,
        url: str = "",
        model: str = "",
        api_key: str = "",
        timeout: int = 120,
        backend_name: str = "api",
    ):
        self._url = url.rstrip("/") if url else ""
        self._model = model
        self._api_key = api_key
        self._timeout = timeout
        self._backend_name = backend_name
        self.logger = get_logger(f"llm.{backend_name}")

    @property
    def name(self) -> str:
        return self._backend_name

    @property
    def model(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return bool(self._url and self._model)

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def test_connection(self) -> bool:
        if not self.is_configured():
            return False
        try:
            resp = requests.get(
                f"{self._url}/v1/models", headers=self._headers(), timeout=10
            )
            return resp.ok
        except requests.RequestException as e:
            self.logger.debug(f"Connection test failed: {e}")
            return False

    def chat(
        self,
        messages: list[dict[str, str]],
        response_format: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResult:
        if not self.is_configured():
            raise ValueError(f"{self._backend_name} LLM client not configured")

        payload: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": 0.3,
        }
        if response_format == "json":
            payload["response_format"] = {"type": "json_object"}
        if max_tokens:
            payload["max_tokens"] = max_tokens

        resp = requests.post(
            f"{self._url}/v1/chat/completions",
            json=payload,
            headers=self._headers(),
            timeout=self._timeout,
        )
        resp.raise_for_status()
        data = resp.json()

        choices = data.get("choices", []) if isinstance(data, dict) else []
        if not choices:
            raise ValueError(
                f"Unexpected API response: no choices. "
                f"Response keys: {list(data.keys()) if isinstance(data, dict) else type(data).__name__}"
            )

        choice = choices[0]
        content = choice.get("message", {}).get("content", "")
        finish_reason = choice.get("finish_reason", "stop")

        return LLMResult(
            content=content,
            model=data.get("model", self._model),
            finish_reason=finish_reason,
        )


class GeminiLLMClient(LLMClient):
    """LLM client for Google Gemini.

    Uses POST {base}/models/{model}:generateContent?key=... with the chat
    messages flattened into a single user turn.
    """

    def __init__(
        self,
        api_key: str = "",
        model: str = GEMINI_DEFAULT_MODEL,
        timeout: int = 120,
        temperature: float = 0.3,
        base_url: str = GEMINI_BASE_URL,
    ):
        self._api_key = api_key
        self._model = model or GEMINI_DEFAULT_MODEL
        self._timeout = timeout
        self._temperature = temperature
        self._base_url = base_url.rstrip("/")
        self.logger = get_logger("llm.gemini")

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def model(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return bool(self._api_key and self._model)

    def _endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    def test_connection(self) -> bool:
        if not self.is_configured():
            return False
        try:
            resp = requests.post(
                self._endpoint(),
                params={"key": self._api_key},
                json={
                    "contents": [{"parts": [{"text": "Hello"}]}],
                    "generationConfig": {"maxOutputTokens": 10, "temperature": 0.1},
                },
                timeout=10,
            )
            return resp.ok
        except requests.RequestException as e:
            self.logger.debug(f"Connection test failed: {e}")
            return False

    def chat(
        self,
        messages: list[dict[str, str]],
        response_format: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResult:
        if not self.is_configured():
            raise ValueError("Gemini LLM client not configured")

        prompt = "\n\n".join(m["content"] for m in messages if m.get("content"))
        generation_config: dict[str, Any] = {"temperature": self._temperature}
        if response_format == "json":
            generation_config["responseMimeType"] = "application/json"
        if max_tokens:
            generation_config["maxOutputTokens"] = max_tokens

        resp = requests.post(
            self._endpoint(),
            params={"key": self._api_key},
            json={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": generation_config,
            },
            timeout=self._timeout,
        )
        resp.raise_for_status()
        data = resp.json()

        candidates = data.get("candidates", []) if isinstance(data, dict) else []
        if not candidates:
            raise ValueError("Unexpected Gemini response: no candidates")

        candidate = candidates[0]
        parts = candidate.get("content", {}).get("parts", [])
        content = parts[0].get("text", "") if parts else ""

        return LLMResult(
            content=content,
            model=self._model,
            finish_reason=str(candidate.get("finishReason", "STOP")).lower(),
        )


def create_llm_client(
    backend: str = "jan",
    model: str = "",
    url: str = "",
    api_key: str = "",
    timeout: int = 120,
) -> LLMClient:
    """Factory function to create an LLM client.

    Args:
        backend: Backend type ("jan", "openai", "api" or "gemini")
        model: Model name
        url: Service URL (defaults to the local Jan server for "jan")
        api_key: API key
        timeout: Request timeout in seconds

    Returns:
        LLMClient instance

    Raises:
        ValueError: If backend type is unknown
    """
    if backend == "jan":
        return APILLMClient(
            url=url or JAN_DEFAULT_URL,
            model=model,
            api_key=api_key,
            timeout=timeout,
            backend_name="jan",
        )
    elif backend in ("openai", "api"):
        return APILLMClient(
            url=url,
            model=model,
            api_key=api_key,
            timeout=timeout,
            backend_name=backend,
        )
    elif backend == "gemini":
        return GeminiLLMClient(
            api_key=api_key,
            model=model or GEMINI_DEFAULT_MODEL,
            timeout=timeout,
        )
    else:
        raise ValueError(f"Unknown LLM backend: {backend}")
