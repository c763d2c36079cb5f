"""Conversation store contract and an in-memory implementation."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from graphkeep.errors import GraphkeepError
from graphkeep.schemas.conversation import ChatContext, ChatMessage, MessageRole, MessageStats

logger = logging.getLogger(__name__)


class ContextNotFoundError(GraphkeepError, KeyError):
    """The session has no conversation context."""


# ---------------------------------------------------------------------------
# ConversationStore protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ConversationStore(Protocol):
    """Protocol for the conversation log the translated messages land in."""

    async def get_context(self, session_id: str) -> ChatContext | None: ...

    async def create_context(
        self, session_id: str, system_prompt: str | None = None
    ) -> ChatContext: ...

    async def add_message(self, session_id: str, message: ChatMessage) -> None: ...

    async def get_context_stats(self, session_id: str) -> MessageStats: ...

    async def get_round_window_messages(
        self, session_id: str, count: int, exclude_system: bool = True
    ) -> list[ChatMessage]: ...


async def ensure_context(store: ConversationStore, session_id: str) -> None:
    """Create the session's context if it does not exist yet."""
    if await store.get_context(session_id) is None:
        await store.create_context(session_id)
        logger.debug(f"Created conversation context for {session_id}")


# ---------------------------------------------------------------------------
# InMemoryConversationStore
# ---------------------------------------------------------------------------


class InMemoryConversationStore:
    """Dict-backed conversation store.

    With *max_messages* set, keeps at most that many non-system messages per
    session; system messages (prompts and round summaries) are never trimmed.
    Trimming lowers the assistant count the compactor keys on, so it is off
    by default.
    """

    def __init__(self, max_messages: int | None = None) -> None:
        self._contexts: dict[str, ChatContext] = {}
        self._max_messages = max_messages

    async def get_context(self, session_id: str) -> ChatContext | None:
        return self._contexts.get(session_id)

    async def create_context(
        self, session_id: str, system_prompt: str | None = None
    ) -> ChatContext:
        context = ChatContext(session_id=session_id, system_prompt=system_prompt)
        if system_prompt:
            context.messages.append(ChatMessage(role=MessageRole.SYSTEM.value, content=system_prompt))
        self._contexts[session_id] = context
        return context

    def _require(self, session_id: str) -> ChatContext:
        context = self._contexts.get(session_id)
        if context is None:
            raise ContextNotFoundError(f"Context not found for session: {session_id}")
        return context

    async def add_message(self, session_id: str, message: ChatMessage) -> None:
        context = self._require(session_id)
        context.messages.append(message)
        context.updated_at = datetime.now(UTC)
        if self._max_messages is not None and len(context.messages) > self._max_messages:
            self._trim(context)

    def _trim(self, context: ChatContext) -> None:
        system = [m for m in context.messages if m.role == MessageRole.SYSTEM]
        other = [m for m in context.messages if m.role != MessageRole.SYSTEM]
        if len(other) <= self._max_messages:
            return
        kept = set(map(id, system + other[-self._max_messages :]))
        # keep relative order
        context.messages = [m for m in context.messages if id(m) in kept]

    async def get_messages(self, session_id: str, include_system: bool = True) -> list[ChatMessage]:
        context = self._require(session_id)
        if include_system:
            return list(context.messages)
        return [m for m in context.messages if m.role != MessageRole.SYSTEM]

    async def get_context_stats(self, session_id: str) -> MessageStats:
        return MessageStats.from_messages(self._require(session_id).messages)

    async def get_round_window_messages(
        self, session_id: str, count: int, exclude_system: bool = True
    ) -> list[ChatMessage]:
        if count <= 0:
            return []
        messages = await self.get_messages(session_id, include_system=not exclude_system)
        return messages[-count:]

    async def delete_context(self, session_id: str) -> bool:
        return self._contexts.pop(session_id, None) is not None
