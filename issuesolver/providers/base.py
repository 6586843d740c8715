"""Abstract base class for LLM solution providers.

The solver interacts exclusively through this interface; it never calls
provider SDKs directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SolutionProvider(ABC):
    """Anything that turns a prompt into raw response text."""

    def __init__(self, model: str, api_key_env: str = "") -> None:
        self._model = model
        self._api_key_env = api_key_env

    @property
    def model_id(self) -> str:
        """LiteLLM model identifier used for routing."""
        return self._model

    @property
    def api_key_env(self) -> str:
        return self._api_key_env

    @abstractmethod
    async def complete(self, prompt: str, *, system: str = "", timeout: float = 3600.0) -> str:
        """Send a prompt and return the raw response text.

        Args:
            prompt: User prompt.
            system: Optional system prompt.
            timeout: Seconds allowed for the call.

        Raises:
            TimeoutError: If the call exceeds the timeout after all retries.
            RuntimeError: If the call fails after all retries, or the
                response carries no text.
        """
