"""
Checkpoint Saver - The store contract the graph engine calls into.

Wires the checkpoint store, the write log, message translation and summary
compaction together behind five operations:

    get_tuple(thread_id, checkpoint_ns, checkpoint_id)  -> CheckpointTuple | None
    list(thread_id, checkpoint_ns, limit, before)       -> AsyncIterator[CheckpointTuple]
    put(thread_id, checkpoint_ns, checkpoint, metadata) -> checkpoint_id
    put_writes(thread_id, checkpoint_ns, checkpoint_id, task_id, writes)
    delete_thread(thread_id)

Example:
    saver = await CheckpointSaver.open(
        conversation_store=InMemoryConversationStore(),
        registry=LiteLLMModelRegistry([ModelConfig(id="haiku", model="anthropic/claude-haiku-4-5-20251001")]),
    )
    cp_id = await saver.put("thread-1", "default", {"channel_values": {"x": 1}}, {})
    await saver.put_writes("thread-1", "default", cp_id, "task-1", [("tool_end", {"output": "42"})])
"""

import logging
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from typing import Any

from graphkeep.compaction.compactor import SummaryCompactor
from graphkeep.config import SaverConfig, load_config
from graphkeep.conversation.store import ConversationStore
from graphkeep.llm.registry import ModelRegistry
from graphkeep.observability import set_trace_context
from graphkeep.schemas.checkpoint import (
    DEFAULT_NAMESPACE,
    Checkpoint,
    CheckpointTuple,
    normalize_namespace,
)
from graphkeep.storage.checkpoint_store import CheckpointStore
from graphkeep.storage.database import Database, SQLiteDatabase
from graphkeep.storage.summary_store import SummaryStore
from graphkeep.storage.write_log import WriteLog

logger = logging.getLogger(__name__)


class CheckpointSaver:
    """
    Persistence and compaction layer for a resumable graph.

    Without a conversation store the saver only persists checkpoints and
    writes; translation and compaction are skipped.
    """

    def __init__(
        self,
        db: Database,
        conversation_store: ConversationStore | None = None,
        registry: ModelRegistry | None = None,
        config: SaverConfig | None = None,
        session_resolver: Callable[[str], str] | None = None,
    ):
        """
        Initialize the saver. Call :meth:`setup` before first use.

        Args:
            db: Relational store
            conversation_store: Receives translated messages and summaries
            registry: Model registry for the default summarization path
            config: Saver settings (defaults to SaverConfig())
            session_resolver: Maps thread IDs to conversation session IDs
        """
        self.db = db
        self.config = config or SaverConfig()
        self.conversation_store = conversation_store
        self.summary_store = SummaryStore(db)

        self.compactor: SummaryCompactor | None = None
        if conversation_store is not None and self.config.summary_enabled:
            self.compactor = SummaryCompactor(
                conversation_store, self.summary_store, self.config, registry
            )

        self.write_log = WriteLog(db, conversation_store, self.compactor, session_resolver)
        self.checkpoints = CheckpointStore(db, self.write_log)

    @classmethod
    async def open(
        cls,
        config: SaverConfig | None = None,
        conversation_store: ConversationStore | None = None,
        registry: ModelRegistry | None = None,
        session_resolver: Callable[[str], str] | None = None,
    ) -> "CheckpointSaver":
        """Create a saver over the configured SQLite database and set up its schema."""
        config = config or load_config()
        saver = cls(
            SQLiteDatabase(config.database_path),
            conversation_store=conversation_store,
            registry=registry,
            config=config,
            session_resolver=session_resolver,
        )
        await saver.setup()
        logger.info(f"Opened checkpoint saver on {config.database_path}")
        return saver

    async def setup(self) -> None:
        await self.db.initialize()

    async def close(self) -> None:
        await self.db.close()

    # --- Store contract ------------------------------------------------------

    async def get_tuple(
        self,
        thread_id: str,
        checkpoint_ns: str = DEFAULT_NAMESPACE,
        checkpoint_id: str | None = None,
    ) -> CheckpointTuple | None:
        set_trace_context(thread_id=thread_id, checkpoint_ns=normalize_namespace(checkpoint_ns))
        return await self.checkpoints.get_tuple(thread_id, checkpoint_ns, checkpoint_id)

    async def list(
        self,
        thread_id: str,
        checkpoint_ns: str = DEFAULT_NAMESPACE,
        limit: int = 50,
        before: str | None = None,
    ) -> AsyncIterator[CheckpointTuple]:
        set_trace_context(thread_id=thread_id, checkpoint_ns=normalize_namespace(checkpoint_ns))
        async for item in self.checkpoints.list(thread_id, checkpoint_ns, limit=limit, before=before):
            yield item

    async def put(
        self,
        thread_id: str,
        checkpoint_ns: str,
        checkpoint: Checkpoint | dict[str, Any],
        metadata: dict[str, Any] | None = None,
        checkpoint_id: str | None = None,
    ) -> str:
        set_trace_context(thread_id=thread_id, checkpoint_ns=normalize_namespace(checkpoint_ns))
        return await self.checkpoints.put(
            thread_id, checkpoint_ns, checkpoint, metadata, checkpoint_id=checkpoint_id
        )

    async def put_writes(
        self,
        thread_id: str,
        checkpoint_ns: str,
        checkpoint_id: str,
        task_id: str,
        writes: Iterable[Sequence[Any]],
    ) -> None:
        set_trace_context(thread_id=thread_id, checkpoint_ns=normalize_namespace(checkpoint_ns))
        await self.write_log.put_writes(thread_id, checkpoint_ns, checkpoint_id, task_id, writes)

    async def delete_thread(self, thread_id: str) -> dict[str, int]:
        set_trace_context(thread_id=thread_id)
        return await self.checkpoints.delete_thread(thread_id)
