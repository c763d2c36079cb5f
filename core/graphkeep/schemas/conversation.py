"""
Conversation Schema - Messages, session contexts and round summaries.

These records belong to the conversation log derived from channel writes,
not to the checkpoint state itself.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class MessageRole(StrEnum):
    """Roles produced by channel-write translation."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


def _now() -> datetime:
    return datetime.now(UTC)


class ChatMessage(BaseModel):
    """
    A single conversational turn.

    ``role`` is usually one of :class:`MessageRole`, but structured channel
    values may carry other roles, which are kept verbatim.
    """

    role: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_now)

    @property
    def channel(self) -> str | None:
        """Channel the message was translated from, if any."""
        return self.metadata.get("channel")

    def to_llm_dict(self) -> dict[str, Any]:
        """Convert to OpenAI-format message dict."""
        return {"role": self.role, "content": self.content}


class ChatContext(BaseModel):
    """All messages of one conversation session."""

    session_id: str
    messages: list[ChatMessage] = Field(default_factory=list)
    system_prompt: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class MessageStats(BaseModel):
    """Per-role message counts for a session."""

    total_messages: int = 0
    user_messages: int = 0
    assistant_messages: int = 0
    system_messages: int = 0
    total_characters: int = 0

    @classmethod
    def from_messages(cls, messages: list[ChatMessage]) -> "MessageStats":
        return cls(
            total_messages=len(messages),
            user_messages=sum(1 for m in messages if m.role == MessageRole.USER),
            assistant_messages=sum(1 for m in messages if m.role == MessageRole.ASSISTANT),
            system_messages=sum(1 for m in messages if m.role == MessageRole.SYSTEM),
            total_characters=sum(len(m.content) for m in messages),
        )


class RoundSummary(BaseModel):
    """Model-generated condensation of one compaction round."""

    session_id: str
    round_number: int
    summary_content: str
    created_at: str | None = None
    updated_at: str | None = None
