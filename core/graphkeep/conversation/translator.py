"""Channel-write translation: decide whether a write is a visible conversational turn.

Graph channels carry opaque values. The rules below recognise the shapes that
represent conversation and classify everything else as not visible:

1. Tool channels (``tool``/``tools``, ``tool_*``, or anything containing
   ``function``) only surface their terminal result (``tool_end`` /
   ``tool_result``) as an assistant message.
2. Structured values (mappings, pydantic models, dataclasses or objects with
   matching attributes) carrying a role (``role`` or a LangChain-style
   ``type``) and a content field become a message with that role.
3. Plain strings get a role guessed from the channel name.

Matching is name-based: a channel that merely contains ``function`` is
treated as tool traffic.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, is_dataclass
from typing import Any

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError, to_jsonable_python

from graphkeep.schemas.conversation import ChatMessage, MessageRole

TOOL_TERMINAL_MARKERS = ("tool_end", "tool_result")

# Attributes read from message objects that are neither mappings, models nor dataclasses
_STRUCTURED_FIELDS = ("role", "type", "content", "text", "message", "output", "result")

_TYPE_ROLES = {
    "human": MessageRole.USER,
    "ai": MessageRole.ASSISTANT,
    "system": MessageRole.SYSTEM,
}


# ---------------------------------------------------------------------------
# Classification variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one write. ``message`` is None when nothing is visible."""

    channel: str
    message: ChatMessage | None = None


@dataclass(frozen=True)
class ToolStart(Classification):
    """Tool traffic that is not a terminal result (start, chunks, empty results)."""


@dataclass(frozen=True)
class ToolEnd(Classification):
    """Terminal tool result surfaced as an assistant message."""


@dataclass(frozen=True)
class StructuredTurn(Classification):
    """Structured value carrying its own role and content."""


@dataclass(frozen=True)
class PlainString(Classification):
    """String value with a role guessed from the channel name."""


@dataclass(frozen=True)
class Unclassified(Classification):
    """Anything else; not part of the conversation."""


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def is_tool_channel(channel: str) -> bool:
    lower = channel.lower()
    return (
        lower == "tool"
        or lower == "tools"
        or lower.startswith("tool_")
        or "function" in lower
    )


def is_tool_terminal(channel: str) -> bool:
    lower = channel.lower()
    return any(marker in lower for marker in TOOL_TERMINAL_MARKERS)


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


def _fields(value: Any) -> Mapping[str, Any] | None:
    """View a structured value as a mapping; None for scalars, strings and bytes."""
    if isinstance(value, Mapping):
        return value
    if value is None or isinstance(value, (str, bytes, bytearray, int, float, list, tuple)):
        return None
    if isinstance(value, BaseModel) or (is_dataclass(value) and not isinstance(value, type)):
        try:
            data = to_jsonable_python(value)
        except PydanticSerializationError:
            data = None
        if isinstance(data, Mapping):
            return data
    found = {name: getattr(value, name, None) for name in _STRUCTURED_FIELDS}
    found = {name: attr for name, attr in found.items() if attr is not None}
    return found or None


def _tool_output(value: Any) -> str | None:
    value = _fields(value)
    if value is None:
        return None
    output = value.get("output") or value.get("result")
    if output is None:
        return None
    text = _as_text(output)
    return text if text.strip() else None


def _structured_role(value: Mapping[str, Any]) -> str | None:
    role = value.get("role")
    if role:
        return str(role)
    kind = value.get("type")
    if isinstance(kind, str):
        mapped = _TYPE_ROLES.get(kind.lower())
        return mapped.value if mapped else None
    return None


def _structured_content(value: Mapping[str, Any]) -> str | None:
    content = value.get("content") or value.get("text") or value.get("message")
    if not content:
        return None
    return _as_text(content)


def guess_role(channel: str) -> str:
    lower = channel.lower()
    if "user" in lower or "input" in lower:
        return MessageRole.USER.value
    if "system" in lower:
        return MessageRole.SYSTEM.value
    return MessageRole.ASSISTANT.value


def _message(role: str, content: str, channel: str) -> ChatMessage:
    return ChatMessage(role=role, content=content, metadata={"channel": channel})


def classify(channel: str, value: Any) -> Classification:
    """Classify a channel write. Rules are applied in order; the first match wins."""
    if is_tool_channel(channel):
        if is_tool_terminal(channel):
            output = _tool_output(value)
            if output is not None:
                return ToolEnd(channel, _message(MessageRole.ASSISTANT.value, output, channel))
        return ToolStart(channel)

    fields = _fields(value)
    if fields is not None:
        role = _structured_role(fields)
        content = _structured_content(fields)
        if role and content:
            return StructuredTurn(channel, _message(role, content, channel))

    if isinstance(value, str):
        return PlainString(channel, _message(guess_role(channel), value, channel))

    return Unclassified(channel)


def translate(channel: str, value: Any) -> ChatMessage | None:
    """Shortcut for ``classify(channel, value).message``."""
    return classify(channel, value).message
