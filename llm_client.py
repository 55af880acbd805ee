"""
Chat LLM Client
===============

Thin wrapper around an OpenAI-compatible chat completions endpoint used for
menu and recipe generation.

Retry contract:
- 429 (rate limited)            -> wait min(2s * attempt, 10s), retry
- timeout / connection reset    -> wait 1s, retry
- empty content                 -> retry
- any other HTTP error          -> raise immediately
After the last attempt the last error is raised.

Usage:
    from llm_client import ChatClient

    client = ChatClient()
    text = client.generate(prompt, temperature=0.7)
"""

import time
from typing import Any, Callable, Dict, Optional

import requests

from config import CHAT_API_URL, CHAT_MODEL, CHAT_SAMPLING, CHAT_TIMEOUT, get_config_value
from tools.logging_utils import get_logger

logger = get_logger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LLMError(Exception):
    """
    Base exception for chat LLM failures.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status code, if the server answered
        attempt: Attempt number that produced the error
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 attempt: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        self.attempt = attempt
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"(status={self.status_code})")
        if self.attempt is not None:
            parts.append(f"(attempt={self.attempt})")
        return " ".join(parts)


class EmptyResponse(LLMError):
    """The model answered with no content."""


class RateLimited(LLMError):
    """The endpoint answered 429 Too Many Requests."""


class TransientNetworkError(LLMError):
    """Timeout or dropped connection; worth retrying."""


# =============================================================================
# CLIENT
# =============================================================================

class ChatClient:
    """Synchronous chat completions client with retry."""

    def __init__(self, api_url: str = None, model: str = None, api_key: str = None,
                 timeout: float = None, session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        if api_key is None:
            from config import CHAT_API_KEY
            api_key = CHAT_API_KEY
        self.api_url = (api_url or CHAT_API_URL).rstrip("/")
        self.model = model or CHAT_MODEL
        self.api_key = api_key
        self.timeout = timeout or CHAT_TIMEOUT
        self.session = session or requests.Session()
        self._sleep = sleep

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _payload(self, prompt: str, temperature: float) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            **CHAT_SAMPLING,
        }

    def _post_once(self, prompt: str, temperature: float, attempt: int) -> str:
        try:
            response = self.session.post(
                f"{self.api_url}/chat/completions",
                json=self._payload(prompt, temperature),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            raise TransientNetworkError(f"Network error: {e}", attempt=attempt) from e

        if response.status_code == 429:
            raise RateLimited("Rate limited by chat API", status_code=429, attempt=attempt)
        if response.status_code != 200:
            raise LLMError(f"Chat API error: {response.text[:200]}",
                           status_code=response.status_code, attempt=attempt)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Unexpected response format from chat API: {e}",
                           status_code=response.status_code, attempt=attempt) from e

        if not content or not str(content).strip():
            raise EmptyResponse("Empty response from chat API", attempt=attempt)
        return str(content)

    def generate(self, prompt: str, temperature: float = 0.7, max_retries: int = None) -> str:
        """
        Run one chat completion with retries.

        Args:
            prompt: User prompt
            temperature: Sampling temperature
            max_retries: Total attempts (config retries.max_llm_retries if None)

        Returns:
            Model response text

        Raises:
            RateLimited, TransientNetworkError, EmptyResponse: after the last attempt
            LLMError: immediately on non-retryable HTTP errors
        """
        if max_retries is None:
            max_retries = get_config_value('retries', 'max_llm_retries', 3)
        max_retries = max(1, int(max_retries))

        last_error: Optional[LLMError] = None
        for attempt in range(1, max_retries + 1):
            logger.info(f"🔄 Chat API call (attempt {attempt}/{max_retries})")
            try:
                content = self._post_once(prompt, temperature, attempt)
                logger.info(f"✅ Chat API success ({len(content)} chars)")
                return content
            except RateLimited as e:
                last_error = e
                wait = min(2.0 * attempt, 10.0)
                logger.warning(f"⏳ Rate limited, waiting {wait:.0f}s...")
            except TransientNetworkError as e:
                last_error = e
                wait = 1.0
                logger.warning(f"⏳ Network error, retrying: {e.message}")
            except EmptyResponse as e:
                last_error = e
                wait = 0.0
                logger.warning(f"⚠️ {e.message} (attempt {attempt}/{max_retries})")
            except LLMError as e:
                logger.error(f"❌ Chat API error (attempt {attempt}): {e}")
                raise

            if attempt < max_retries and wait:
                self._sleep(wait)

        logger.error(f"❌ Chat API failed after {max_retries} attempts: {last_error}")
        raise last_error

    def __call__(self, prompt: str, temperature: float = 0.7, max_retries: int = None) -> str:
        return self.generate(prompt, temperature=temperature, max_retries=max_retries)

    def close(self) -> None:
        self.session.close()


_default_client: Optional[ChatClient] = None


def get_chat_client() -> ChatClient:
    """Process-wide client (lazily created)."""
    global _default_client
    if _default_client is None:
        _default_client = ChatClient()
    return _default_client


def generate(prompt: str, temperature: float = 0.7, max_retries: int = None) -> str:
    """Convenience wrapper around the process-wide client."""
    return get_chat_client().generate(prompt, temperature=temperature, max_retries=max_retries)
