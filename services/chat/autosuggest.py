"""
Autosuggestion service.

Produces short completion suggestions for partially typed input and
"starter" suggestions for an empty composer. Suggestions come from a
pluggable source: the static mock dataset or a language model through
LiteLLM. Suggestions are a non-critical enhancement, so source failures
degrade to an empty list (typed input) or a fixed fallback list (starters)
instead of failing the request.
"""

import asyncio
import json
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence

from services.chat.mock_suggestions import MOCK_SUGGESTIONS
from services.chat.models import Suggestion
from services.chat.settings import Settings, get_settings
from services.common.http_errors import ValidationError
from services.common.llm_manager import get_llm_manager
from services.common.logging_config import get_logger

logger = get_logger(__name__)

SUGGESTION_TYPES = ("completion", "question", "command", "suggestion")
DEFAULT_CONFIDENCE = 0.8

FALLBACK_STARTER_SUGGESTIONS: List[Suggestion] = [
    Suggestion(
        id="starter-fallback-1", text="help me with", type="completion", confidence=0.9
    ),
    Suggestion(
        id="starter-fallback-2",
        text="what are the benefits of",
        type="question",
        confidence=0.8,
    ),
    Suggestion(
        id="starter-fallback-3",
        text="explain how to",
        type="completion",
        confidence=0.8,
    ),
    Suggestion(
        id="starter-fallback-4", text="create a", type="command", confidence=0.7
    ),
    Suggestion(
        id="starter-fallback-5", text="tell me about", type="completion", confidence=0.7
    ),
]

SUGGEST_PROMPT = """Generate {max_suggestions} autocomplete suggestions for the partial text: "{text}"

Return suggestions that:
1. Complete the user's thought naturally
2. Are contextually relevant and helpful
3. Vary in type (questions, commands, completions)
4. Are concise (under 50 characters)
5. Sound natural and conversational

Format as JSON array with: id, text, type, confidence
Types: "completion", "question", "command", "suggestion"
Confidence: 0.0 to 1.0 (higher = more relevant)

Example format:
[
  {{"id": "1", "text": "tell me about", "type": "completion", "confidence": 0.9}},
  {{"id": "2", "text": "what are the benefits of", "type": "question", "confidence": 0.8}}
]"""

STARTER_PROMPT = """Generate {max_suggestions} helpful starter suggestions for a chat interface.

These should be:
1. Common conversation starters
2. Helpful prompts for various tasks
3. Mix of questions, commands, and completions
4. Concise and engaging (under 50 characters)

Format as JSON array with: id, text, type, confidence
Types: "completion", "question", "command", "suggestion"

Example format:
[
  {{"id": "starter-1", "text": "help me with", "type": "completion", "confidence": 0.9}},
  {{"id": "starter-2", "text": "what are the benefits of", "type": "question", "confidence": 0.8}}
]"""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class SuggestionSource(ABC):
    """Where suggestions come from."""

    name: str = "source"

    @abstractmethod
    async def suggest(
        self, text: str, max_suggestions: int, model_id: str
    ) -> List[Suggestion]:
        """Suggestions completing ``text``."""

    @abstractmethod
    async def starter(self, max_suggestions: int, model_id: str) -> List[Suggestion]:
        """Suggestions for an empty composer."""


class MockSuggestionSource(SuggestionSource):
    """Prefix matches against the static dataset."""

    name = "mock"

    def __init__(self, dataset: Sequence[Suggestion] = MOCK_SUGGESTIONS):
        self.dataset = list(dataset)

    async def suggest(
        self, text: str, max_suggestions: int, model_id: str
    ) -> List[Suggestion]:
        needle = text.lower().strip()
        if not needle:
            return []
        # Strict prefix match; an exact match has nothing left to complete
        matched = [
            suggestion
            for suggestion in self.dataset
            if suggestion.text.lower().startswith(needle)
            and suggestion.text.lower() != needle
        ]
        matched.sort(key=lambda suggestion: suggestion.confidence, reverse=True)
        return matched[:max_suggestions]

    async def starter(self, max_suggestions: int, model_id: str) -> List[Suggestion]:
        confident = [s for s in self.dataset if s.confidence > 0.8][:3]
        return confident[:max_suggestions]


def parse_suggestions(raw: str, id_prefix: str) -> List[Suggestion]:
    """
    Parse a model response into suggestions.

    Missing ids get ``{id_prefix}-{millis}-{index}``, missing or unknown types
    become "completion", confidence defaults to 0.8 and is clamped to [0, 1].
    Entries without text are dropped.

    Raises:
        ValueError: If the response is not a JSON array of objects
    """
    payload = json.loads(_CODE_FENCE.sub("", raw.strip()))
    if not isinstance(payload, list):
        raise ValueError("Expected a JSON array of suggestions")

    millis = int(time.time() * 1000)
    suggestions = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ValueError(f"Suggestion {index} is not an object")
        text = item.get("text") or ""
        if not isinstance(text, str) or not text:
            continue
        suggestion_type = item.get("type") or "completion"
        if suggestion_type not in SUGGESTION_TYPES:
            suggestion_type = "completion"
        confidence = float(item.get("confidence") or DEFAULT_CONFIDENCE)
        suggestions.append(
            Suggestion(
                id=str(item.get("id") or f"{id_prefix}-{millis}-{index}"),
                text=text,
                type=suggestion_type,
                confidence=max(0.0, min(1.0, confidence)),
            )
        )
    return suggestions


class LLMSuggestionSource(SuggestionSource):
    """Asks a language model for suggestions."""

    name = "llm"

    def __init__(self, llm_for_model: Callable[[str], Any], timeout_seconds: float):
        self.llm_for_model = llm_for_model
        self.timeout_seconds = timeout_seconds

    async def _generate(
        self, model_id: str, prompt: str, temperature: float
    ) -> str:
        llm = self.llm_for_model(model_id)
        return await asyncio.wait_for(
            llm.acomplete(
                [{"role": "user", "content": prompt}],
                max_tokens=300,
                temperature=temperature,
            ),
            timeout=self.timeout_seconds,
        )

    async def suggest(
        self, text: str, max_suggestions: int, model_id: str
    ) -> List[Suggestion]:
        prompt = SUGGEST_PROMPT.format(max_suggestions=max_suggestions, text=text)
        raw = await self._generate(model_id, prompt, temperature=0.7)
        return parse_suggestions(raw, id_prefix="ai")[:max_suggestions]

    async def starter(self, max_suggestions: int, model_id: str) -> List[Suggestion]:
        prompt = STARTER_PROMPT.format(max_suggestions=max_suggestions)
        raw = await self._generate(model_id, prompt, temperature=0.8)
        return parse_suggestions(raw, id_prefix="starter")[:max_suggestions]


class AutosuggestService:
    def __init__(
        self,
        source: SuggestionSource,
        starter_source: Optional[SuggestionSource] = None,
        min_chars: int = 3,
    ):
        self.source = source
        self.starter_source = starter_source or source
        self.min_chars = min_chars

    async def suggest(
        self, text: Any, model_id: str, max_suggestions: int
    ) -> List[Suggestion]:
        """
        Suggestions for partially typed ``text``.

        Raises:
            ValidationError: If ``text`` is missing, empty or not a string
        """
        if not text or not isinstance(text, str):
            raise ValidationError("Text input is required", field="text")
        if len(text) < self.min_chars:
            return []

        try:
            suggestions = await self.source.suggest(text, max_suggestions, model_id)
        except Exception as e:
            logger.warning(
                "Suggestion source failed, returning no suggestions",
                source=self.source.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return []
        return suggestions[:max_suggestions]

    async def starter_suggestions(
        self, model_id: str, max_suggestions: int
    ) -> List[Suggestion]:
        try:
            suggestions = await self.starter_source.starter(max_suggestions, model_id)
        except Exception as e:
            logger.warning(
                "Starter suggestion source failed, using fallback suggestions",
                source=self.starter_source.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return FALLBACK_STARTER_SUGGESTIONS[:max_suggestions]
        return suggestions[:max_suggestions]


def resolve_model_name(settings: Settings, model_id: str) -> str:
    """Map a client model identifier to a provider model name."""
    if model_id in settings.model_aliases:
        return settings.model_aliases[model_id]
    logger.debug(f"Unknown model id {model_id}, using default model")
    return settings.llm_model


def build_source(name: str, settings: Settings) -> SuggestionSource:
    """
    Raises:
        ValueError: If ``name`` is not a known source
    """
    if name == "mock":
        return MockSuggestionSource()
    elif name == "llm":

        def llm_for_model(model_id: str) -> Any:
            return get_llm_manager().get_llm(
                model=resolve_model_name(settings, model_id),
                provider=settings.llm_provider,
                api_key=settings.openai_api_key,
            )

        return LLMSuggestionSource(llm_for_model, settings.llm_timeout_seconds)
    raise ValueError(f"Unknown suggestion source: {name}")


def get_autosuggest_service() -> AutosuggestService:
    """FastAPI dependency building the service from current settings."""
    settings = get_settings()
    return AutosuggestService(
        source=build_source(settings.autosuggest_source, settings),
        starter_source=build_source(settings.starter_suggestion_source, settings),
        min_chars=settings.autosuggest_min_chars,
    )
