"""
Write Log - Ordered pending writes and the conversation pipeline they feed.

Each ``put_writes`` call appends one row per (channel, value) write, numbered
``idx = 0, 1, 2, ...`` in caller order. After a row is committed the write is
translated into a chat message, appended to the conversation store, and, for
assistant messages, offered to the summary compactor.

The per-write pipeline is not transactional. A write advances through
:class:`WriteStage` values; a failure leaves every earlier stage (and every
earlier write) committed and the rest absent.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from graphkeep.conversation.store import ConversationStore, ensure_context
from graphkeep.conversation.translator import translate
from graphkeep.errors import PreconditionError
from graphkeep.schemas.checkpoint import PendingWrite, normalize_namespace
from graphkeep.schemas.conversation import ChatMessage, MessageRole
from graphkeep.storage import codec
from graphkeep.storage.database import Database, SoftDeleteTable

if TYPE_CHECKING:
    from graphkeep.compaction.compactor import SummaryCompactor
    from graphkeep.storage.checkpoint_store import CheckpointStore

logger = logging.getLogger(__name__)


class WriteStage(StrEnum):
    """How far a single write got through the pipeline."""

    PENDING = "pending"  # Nothing committed yet
    PERSISTED = "persisted"  # Row inserted
    TRANSLATED = "translated"  # Classified (message or not)
    APPENDED = "appended"  # Message added to the conversation store
    COMPACTED = "compacted"  # Compaction check finished


class WriteLog:
    """
    Append-only store of pending writes.

    Table layout (``checkpoint_writes``):
        thread_id, checkpoint_ns, checkpoint_id, task_id
        idx                       # 0-based order within one put_writes call
        channel, value_type, value_b64
        is_delete, created_at, updated_at
    """

    def __init__(
        self,
        db: Database,
        conversation_store: ConversationStore | None = None,
        compactor: "SummaryCompactor | None" = None,
        session_resolver: Callable[[str], str] | None = None,
    ):
        """
        Initialize the write log.

        Args:
            db: Relational store holding the ``checkpoint_writes`` table
            conversation_store: Receives translated messages; None disables translation
            compactor: Checked after each assistant message; None disables compaction
            session_resolver: Maps a thread ID to a conversation session ID
                (default: the thread ID itself)
        """
        self.table = SoftDeleteTable(db, "checkpoint_writes")
        # Set by the CheckpointStore that owns the checkpoints table
        self.checkpoints: "CheckpointStore | None" = None
        self.conversation_store = conversation_store
        self.compactor = compactor
        self._session_resolver = session_resolver or (lambda thread_id: thread_id)

    async def put_writes(
        self,
        thread_id: str,
        checkpoint_ns: str,
        checkpoint_id: str,
        task_id: str,
        writes: Iterable[Sequence[Any]],
    ) -> None:
        """
        Persist writes pending against an existing checkpoint.

        Args:
            thread_id: Thread identifier (required)
            checkpoint_ns: Namespace within the thread
            checkpoint_id: Checkpoint the writes are pending against (must exist)
            task_id: Producing task
            writes: Ordered (channel, value) pairs

        Raises:
            PreconditionError: If an ID is missing or the checkpoint does not exist
            RuntimeError: If no CheckpointStore has been attached
        """
        if not thread_id:
            raise PreconditionError("thread_id is required")
        if not checkpoint_id:
            raise PreconditionError("checkpoint_id is required for put_writes")
        ns = normalize_namespace(checkpoint_ns)

        if self.checkpoints is None:
            raise RuntimeError("WriteLog is not attached to a CheckpointStore")
        if not await self.checkpoints.exists(thread_id, ns, checkpoint_id):
            raise PreconditionError(
                f"Checkpoint {checkpoint_id} not found for {thread_id}/{ns}; "
                "writes cannot be pending against nothing"
            )

        for idx, (channel, value) in enumerate(writes):
            write = PendingWrite(
                thread_id=thread_id,
                checkpoint_ns=ns,
                checkpoint_id=checkpoint_id,
                task_id=task_id,
                idx=idx,
                channel=str(channel),
                value=value,
            )
            await self._process(write)

    async def _process(self, write: PendingWrite) -> WriteStage:
        """Run one write through persist -> translate -> append -> compact."""
        stage = WriteStage.PENDING
        try:
            await self._persist(write)
            stage = WriteStage.PERSISTED

            if self.conversation_store is None:
                return stage

            message = translate(write.channel, write.value)
            stage = WriteStage.TRANSLATED
            if message is None:
                return stage

            session_id = self._session_resolver(write.thread_id)
            await self._append(session_id, message)
            stage = WriteStage.APPENDED

            if self.compactor is not None and message.role == MessageRole.ASSISTANT:
                await self.compactor.maybe_compact(session_id)
                stage = WriteStage.COMPACTED
            return stage
        except Exception:
            logger.warning(
                f"Write {write.task_id}[{write.idx}] on channel {write.channel!r} "
                f"failed after stage {stage.value}"
            )
            raise

    async def _persist(self, write: PendingWrite) -> None:
        encoded = codec.encode(write.value)
        await self.table.insert(
            {
                "thread_id": write.thread_id,
                "checkpoint_ns": write.checkpoint_ns,
                "checkpoint_id": write.checkpoint_id,
                "task_id": write.task_id,
                "idx": write.idx,
                "channel": write.channel,
                "value_type": encoded.type_tag,
                "value_b64": encoded.payload,
            }
        )
        logger.debug(f"Persisted write {write.task_id}[{write.idx}] -> {write.channel}")

    async def _append(self, session_id: str, message: ChatMessage) -> None:
        await ensure_context(self.conversation_store, session_id)
        await self.conversation_store.add_message(session_id, message)

    async def get_writes(
        self,
        thread_id: str,
        checkpoint_ns: str,
        checkpoint_id: str,
    ) -> list[PendingWrite]:
        """Load the live writes of a checkpoint, ordered by idx."""
        ns = normalize_namespace(checkpoint_ns)
        rows = await self.table.find(
            {"thread_id": thread_id, "checkpoint_ns": ns, "checkpoint_id": checkpoint_id},
            order_by=(("idx", "ASC"), ("id", "ASC")),
        )
        return [
            PendingWrite(
                thread_id=row["thread_id"],
                checkpoint_ns=row["checkpoint_ns"],
                checkpoint_id=row["checkpoint_id"],
                task_id=row["task_id"],
                idx=row["idx"],
                channel=row["channel"],
                value=codec.decode(row["value_type"], row["value_b64"]),
            )
            for row in rows
        ]

    async def delete_thread(self, thread_id: str) -> int:
        """Soft-delete every write of a thread. Returns the number of rows retired."""
        return await self.table.soft_delete({"thread_id": thread_id})
