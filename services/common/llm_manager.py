"""
LLM management module.

Handles LiteLLM initialization and provides model management for services
that need LLM capabilities.
"""

import logging
import os
from typing import Any, Dict, List, Optional

from litellm import acompletion

from services.common.logging_config import get_logger

logger = get_logger(__name__)


class LLMError(Exception):
    """Raised when the model provider call fails or returns nothing usable."""


class LLMManager:
    """
    Manages LLM instances with LiteLLM, providing a unified interface for different models.
    """

    _instance = None

    def __new__(cls) -> "LLMManager":
        if cls._instance is None:
            cls._instance = object.__new__(cls)
        return cls._instance

    def get_llm(
        self, model: str, provider: str, api_key: Optional[str] = None, **kwargs: Any
    ) -> Any:
        """
        Get an LLM instance with the specified model and provider.
        Returns a LiteLLM backed instance or FakeLLM if no API key is found.

        Args:
            model: The model name (e.g., 'gpt-4.1-nano')
            provider: The provider name (e.g., 'openai', 'anthropic')
            api_key: Explicit API key; falls back to {PROVIDER}_API_KEY
            **kwargs: Additional arguments to pass to the LLM

        Returns:
            A RealLLM instance, or FakeLLM if no API key is found
        """
        if provider == "fake":
            return FakeLLM(model=model)

        api_key_env = f"{provider.upper()}_API_KEY"
        api_key = api_key or os.getenv(api_key_env)
        if not api_key:
            logger.warning(
                f"No {api_key_env} environment variable found. "
                "Falling back to FakeLLM. Set the appropriate API key to use a real LLM."
            )
            return FakeLLM(model=model)

        # Create a LiteLLM compatible model string
        if "/" not in model and provider:
            model = f"{provider}/{model}"

        return RealLLM(model=model, api_key=api_key, **kwargs)


class FakeLLM:
    """Fake LLM for testing and when no API key is available."""

    def __init__(self, **kwargs: Any) -> None:
        self.model = kwargs.get("model", "fake-model")
        self._prompt_logger = logging.getLogger(f"{__name__}.prompts")

    async def acomplete(self, messages: List[Dict[str, str]], **kwargs: Any) -> str:
        """Echo back the last prompt."""
        prompt = messages[-1]["content"] if messages else ""
        self._prompt_logger.info(f"=== FAKE LLM CALL ===\nPrompt: {prompt}")
        response = f"[FAKE LLM RESPONSE] You said: {prompt}"
        self._prompt_logger.info(f"=== FAKE LLM RESPONSE ===\nResponse: {response}")
        return response


class RealLLM:
    """Real LLM using LiteLLM for actual API calls."""

    def __init__(self, model: str, **kwargs: Any) -> None:
        self.model = model
        self.kwargs = kwargs
        self._prompt_logger = logging.getLogger(f"{__name__}.prompts")

    async def acomplete(self, messages: List[Dict[str, str]], **kwargs: Any) -> str:
        """
        Complete a chat prompt using LiteLLM.

        Raises:
            LLMError: If the provider call fails or the response has no content
        """
        call_kwargs = {**self.kwargs, **kwargs}
        self._prompt_logger.info(
            f"=== REAL LLM CALL ===\nModel: {self.model}\nMessages: {messages}"
        )

        try:
            response = await acompletion(
                model=self.model,
                messages=messages,
                **call_kwargs,
            )
        except Exception as e:
            logger.error(f"LLM call failed: {e}", model=self.model)
            raise LLMError(str(e)) from e

        content = None
        if hasattr(response, "choices") and response.choices:
            content = response.choices[0].message.content
        if not content:
            raise LLMError(f"Empty response from {self.model}")

        self._prompt_logger.info(f"=== REAL LLM RESPONSE ===\nResponse: {content}")
        return content


def get_llm_manager() -> LLMManager:
    """Get the global LLM manager instance."""
    return LLMManager()
