"""LiteLLM adapter implementing the SolutionProvider interface.

Routes completion requests to Gemini or OpenAI via LiteLLM's unified API
in JSON mode, racing each call against a timeout and retrying transient
failures with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from issuesolver.providers.base import SolutionProvider
from issuesolver.schemas.config import SolverConfig

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds

DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 65536


def _short_error_reason(error: Exception | None) -> str:
    """Extract a short, user-friendly reason from a LiteLLM error."""
    if error is None:
        return "unknown error"
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str or "quota" in error_str:
        return "rate limit"
    if "overloaded" in error_str or "529" in error_str:
        return "overloaded"
    if "timeout" in error_str or "timed out" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "500" in error_str or "internal" in error_str:
        return "server error"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


class LiteLLMProvider(SolutionProvider):
    """LLM adapter powered by litellm.acompletion()."""

    def __init__(
        self,
        model: str,
        *,
        api_key: str = "",
        api_key_env: str = "",
        max_retries: int = _MAX_RETRIES,
        backoff: float = _BASE_BACKOFF,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        super().__init__(model, api_key_env)
        self._api_key = api_key
        self._max_retries = max(1, max_retries)
        self._backoff = backoff
        self._temperature = temperature
        self._max_tokens = max_tokens

    @classmethod
    def from_config(cls, config: SolverConfig) -> LiteLLMProvider:
        return cls(
            config.litellm_model,
            api_key=config.api_key,
            api_key_env=config.api_key_env,
        )

    async def complete(self, prompt: str, *, system: str = "", timeout: float = 3600.0) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs = self._build_completion_kwargs(messages, timeout)
        response = await self._call_with_retry(kwargs, timeout)

        content = self._extract_content(response)
        if not content.strip():
            raise RuntimeError(f"Empty response from {self._model}")
        return content

    def _build_completion_kwargs(self, messages: list[dict[str, str]], timeout: float) -> dict:
        kwargs: dict = {
            "model": self._model,
            "messages": messages,
            "timeout": float(timeout),
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "response_format": {"type": "json_object"},
        }
        if self._api_key:
            kwargs["api_key"] = self._api_key
        return kwargs

    async def _call_with_retry(self, kwargs: dict, timeout: float) -> litellm.ModelResponse:
        """Call litellm.acompletion with exponential backoff retry.

        Retries on transient errors (rate limits, server errors, timeouts).
        Non-retryable errors (auth, invalid request) are raised immediately.

        Raises:
            TimeoutError: If all retries time out.
            RuntimeError: If all retries fail with non-timeout errors.
        """
        last_error: Exception | None = None

        for attempt in range(self._max_retries):
            try:
                return await asyncio.wait_for(litellm.acompletion(**kwargs), timeout=timeout)
            except TimeoutError:
                last_error = TimeoutError(
                    f"Model call timed out after {timeout:g}s "
                    f"(attempt {attempt + 1}/{self._max_retries})"
                )
            except litellm.AuthenticationError:
                raise RuntimeError(
                    f"Authentication failed for {self._model}. "
                    f"Check that {self._api_key_env or 'the API key'} is set correctly."
                ) from None
            except litellm.BadRequestError as e:
                raise RuntimeError(f"Bad request to {self._model}: {e}") from e
            except (
                litellm.RateLimitError,
                litellm.ServiceUnavailableError,
                litellm.InternalServerError,
                litellm.APIConnectionError,
            ) as e:
                last_error = e

            if attempt < self._max_retries - 1:
                backoff = self._backoff * (2**attempt)
                logger.warning(
                    "Retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1,
                    self._max_retries,
                    self._model,
                    _short_error_reason(last_error),
                    backoff,
                )
                await asyncio.sleep(backoff)

        if isinstance(last_error, TimeoutError):
            raise last_error
        raise RuntimeError(
            f"Model call to {self._model} failed after {self._max_retries} "
            f"retries ({_short_error_reason(last_error)}): {last_error}"
        ) from last_error

    def _extract_content(self, response: litellm.ModelResponse) -> str:
        if not response.choices:
            return ""
        choice = response.choices[0]
        if getattr(choice, "finish_reason", None) == "length":
            logger.warning("Response from %s hit the token limit and may be truncated", self._model)
        message = choice.message
        return (message.content or "") if message else ""
