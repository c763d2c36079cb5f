"""Model registry abstraction for the default summarization path."""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass
class ModelConfig:
    """A model the registry can route chat requests to."""

    id: str
    model: str  # LiteLLM model string, e.g. "anthropic/claude-haiku-4-5-20251001"
    enabled: bool = True
    api_key: str | None = None
    api_base: str | None = None
    default_params: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatRequest:
    """A single chat completion request."""

    model_id: str
    messages: list[dict[str, Any]]
    session_id: str | None = None
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatResponse:
    """Response from a chat call."""

    content: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    raw_response: Any = None


@runtime_checkable
class ModelRegistry(Protocol):
    """Protocol for the external model registry/client."""

    async def get_enabled_models(self) -> list[ModelConfig]: ...

    async def chat(self, request: ChatRequest) -> ChatResponse: ...


class LiteLLMModelRegistry:
    """
    Registry over a fixed list of models, calling them through LiteLLM.

    Order is significant: the first enabled model is the default.
    """

    def __init__(self, models: list[ModelConfig] | None = None):
        self._models: dict[str, ModelConfig] = {m.id: m for m in models or []}

    def register(self, model: ModelConfig) -> None:
        self._models[model.id] = model

    async def get_enabled_models(self) -> list[ModelConfig]:
        return [m for m in self._models.values() if m.enabled]

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """
        Run a chat completion.

        Raises:
            KeyError: If the model ID is not registered
        """
        import litellm

        config = self._models[request.model_id]
        kwargs: dict[str, Any] = {**config.default_params, **request.params}
        if config.api_key:
            kwargs["api_key"] = config.api_key
        if config.api_base:
            kwargs["api_base"] = config.api_base
        if request.session_id:
            kwargs.setdefault("metadata", {})["session_id"] = request.session_id

        response = await litellm.acompletion(
            model=config.model,
            messages=request.messages,
            **kwargs,
        )

        usage = getattr(response, "usage", None)
        content = response.choices[0].message.content or ""
        logger.debug(f"Chat via {config.model} returned {len(content)} chars")
        return ChatResponse(
            content=content,
            model=getattr(response, "model", None) or config.model,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            raw_response=response,
        )
