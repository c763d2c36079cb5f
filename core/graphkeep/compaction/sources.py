"""Summary sources: where the text of a round summary comes from.

Exactly one source is chosen when the compactor is built:

- :class:`ExternalFunction` wraps a caller-supplied ``fn(messages) -> str``
- :class:`ExternalHandle` wraps an object exposing ``chat(messages)``
- :class:`DefaultModelLookup` asks the model registry for its first enabled model

Function and handle may be sync or async.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from graphkeep.errors import SummaryModelUnavailableError
from graphkeep.llm.registry import ChatRequest, ModelRegistry

logger = logging.getLogger(__name__)

SUMMARY_TEMPERATURE = 0.2
SUMMARY_MAX_TOKENS = 512


async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


def _content_of(result: Any) -> str:
    """Accept plain text, ``{"content": ...}`` or an object with ``.content``."""
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    if isinstance(result, dict):
        return str(result.get("content") or "")
    content = getattr(result, "content", None)
    return str(content) if content is not None else str(result)


class SummarySource(ABC):
    """Produces summary text for a prepared list of OpenAI-format messages."""

    name: str = "source"

    @abstractmethod
    async def summarize(self, messages: list[dict[str, Any]], session_id: str) -> str:
        pass


class ExternalFunction(SummarySource):
    name = "function"

    def __init__(self, fn: Callable[[list[dict[str, Any]]], Any]):
        self.fn = fn

    async def summarize(self, messages: list[dict[str, Any]], session_id: str) -> str:
        return _content_of(await _resolve(self.fn(messages)))


class ExternalHandle(SummarySource):
    name = "handle"

    def __init__(self, handle: Any):
        self.handle = handle

    async def summarize(self, messages: list[dict[str, Any]], session_id: str) -> str:
        return _content_of(await _resolve(self.handle.chat(messages)))


class DefaultModelLookup(SummarySource):
    """Low-temperature, bounded-length call to the registry's first enabled model."""

    name = "default_model"

    def __init__(self, registry: ModelRegistry | None):
        self.registry = registry

    async def summarize(self, messages: list[dict[str, Any]], session_id: str) -> str:
        if self.registry is None:
            raise SummaryModelUnavailableError(
                "No summary model configured and no model registry available"
            )

        models = await self.registry.get_enabled_models()
        if not models:
            raise SummaryModelUnavailableError("No enabled model available for summarization")

        model = models[0]
        logger.debug(f"Summarizing session {session_id} with model {model.id}")
        response = await self.registry.chat(
            ChatRequest(
                model_id=model.id,
                messages=messages,
                session_id=session_id,
                params={"temperature": SUMMARY_TEMPERATURE, "max_tokens": SUMMARY_MAX_TOKENS},
            )
        )
        return _content_of(response)


def select_source(summary_model: Any = None, registry: ModelRegistry | None = None) -> SummarySource:
    """
    Pick the summary source for a configuration.

    Args:
        summary_model: Override: a callable, or an object with a ``chat`` method
        registry: Model registry for the default path

    Raises:
        TypeError: If the override is a class, or neither callable nor chat-capable
    """
    if summary_model is None:
        return DefaultModelLookup(registry)
    if isinstance(summary_model, SummarySource):
        return summary_model
    if inspect.isclass(summary_model):
        raise TypeError(
            f"summary_model must be an instance, got the class {summary_model.__name__}"
        )
    if callable(summary_model) and not hasattr(summary_model, "chat"):
        return ExternalFunction(summary_model)
    if callable(getattr(summary_model, "chat", None)):
        return ExternalHandle(summary_model)
    raise TypeError(
        f"summary_model must be a callable or expose chat(), got {type(summary_model).__name__}"
    )
