"""
Summary Compactor - Periodic round summaries of the conversation log.

After every assistant message the compactor reads the session's assistant
count. On each exact multiple of the configured interval it summarizes the
most recent window (with the previous round's summary as context), stores
the result as a :class:`RoundSummary`, and optionally appends it as a system
message so later windows start from the summary instead of the raw turns.
"""

import logging
from typing import Any

from graphkeep.compaction.sources import SummarySource, select_source
from graphkeep.config import SaverConfig
from graphkeep.conversation.store import ConversationStore, ensure_context
from graphkeep.errors import CompactionError
from graphkeep.llm.registry import ModelRegistry
from graphkeep.schemas.conversation import ChatMessage, MessageRole, RoundSummary
from graphkeep.storage.summary_store import SummaryStore

logger = logging.getLogger(__name__)

SUMMARY_INSTRUCTION = (
    "You are maintaining a running summary of a conversation. Summarize the "
    "previous round of the conversation. Preserve key facts, the user's intent "
    "and any conclusions or decisions reached. Be concise."
)


class SummaryCompactor:
    """Fires one summary round per ``summary_interval`` assistant turns."""

    def __init__(
        self,
        conversation_store: ConversationStore,
        summary_store: SummaryStore,
        config: SaverConfig | None = None,
        registry: ModelRegistry | None = None,
    ):
        """
        Initialize the compactor.

        Args:
            conversation_store: Source of stats and window messages; receives the summary
            summary_store: Persists RoundSummary records
            config: Interval, enable flag, re-injection flag and summary override
            registry: Model registry for the default summarization path
        """
        self.conversation_store = conversation_store
        self.summary_store = summary_store
        self.config = config or SaverConfig()
        self.source: SummarySource = select_source(self.config.summary_model, registry)

    @property
    def interval(self) -> int:
        return self.config.summary_interval

    async def maybe_compact(self, session_id: str) -> RoundSummary | None:
        """
        Run a summary round if the session sits on a compaction boundary.

        Returns:
            The stored RoundSummary, or None when no round was due
        """
        if not self.config.summary_enabled:
            return None

        stats = await self.conversation_store.get_context_stats(session_id)
        rounds = stats.assistant_messages
        if not self.config.should_compact(rounds):
            return None

        return await self.compact(session_id, rounds)

    async def compact(self, session_id: str, rounds: int) -> RoundSummary:
        """
        Summarize the current window and persist it as round *rounds*.

        Raises:
            CompactionError: If the source returns no text
            SummaryModelUnavailableError: If the default path has no enabled model
        """
        messages = await self.build_prompt(session_id, rounds)
        text = (await self.source.summarize(messages, session_id)).strip()
        if not text:
            raise CompactionError(f"Summary source {self.source.name!r} returned no text")

        summary = await self.summary_store.save(
            RoundSummary(session_id=session_id, round_number=rounds, summary_content=text)
        )

        if self.config.insert_summary_as_system_message:
            await ensure_context(self.conversation_store, session_id)
            await self.conversation_store.add_message(
                session_id,
                ChatMessage(
                    role=MessageRole.SYSTEM.value,
                    content=text,
                    metadata={"kind": "round_summary", "round": rounds},
                ),
            )

        logger.info(
            f"Compacted session {session_id} at round {rounds} via {self.source.name}",
            extra={"event": "round_summary"},
        )
        return summary

    async def build_prompt(self, session_id: str, rounds: int) -> list[dict[str, Any]]:
        """Instruction, previous summary, the last ``interval - 1`` non-system messages."""
        previous = await self.summary_store.latest(session_id)
        window = await self.conversation_store.get_round_window_messages(
            session_id, self.interval - 1, exclude_system=True
        )

        messages: list[dict[str, Any]] = [
            {"role": MessageRole.SYSTEM.value, "content": SUMMARY_INSTRUCTION}
        ]
        if previous is not None:
            messages.append(
                {
                    "role": MessageRole.SYSTEM.value,
                    "content": (
                        f"Summary of the conversation up to round {previous.round_number}:\n"
                        f"{previous.summary_content}"
                    ),
                }
            )
        messages.extend(m.to_llm_dict() for m in window)
        messages.append(
            {
                "role": MessageRole.USER.value,
                "content": f"Summarize the conversation so far (round {rounds}).",
            }
        )
        return messages
