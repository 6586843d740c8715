"""Provider layer.

All LLM interactions go through LiteLLMProvider via the SolutionProvider
interface.
"""

from issuesolver.providers.base import SolutionProvider
from issuesolver.providers.litellm_provider import LiteLLMProvider

__all__ = ["LiteLLMProvider", "SolutionProvider"]
