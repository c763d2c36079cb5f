"""
Checkpoint Store - Durable registry of graph state snapshots.

Checkpoints are keyed by (thread_id, checkpoint_ns, checkpoint_id). Every
``put`` inserts a new row; rows are never updated except to be soft-deleted
by ``delete_thread``. The most recently created row per (thread, namespace)
is the resumption point.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from graphkeep.errors import PreconditionError
from graphkeep.schemas.checkpoint import (
    DEFAULT_NAMESPACE,
    Checkpoint,
    CheckpointTuple,
    normalize_namespace,
)
from graphkeep.storage import codec
from graphkeep.storage.database import Database, SoftDeleteTable
from graphkeep.storage.write_log import WriteLog

logger = logging.getLogger(__name__)

NEWEST_FIRST = (("created_at", "DESC"), ("id", "DESC"))


class CheckpointStore:
    """
    Manages checkpoint rows and the lookups that resume a thread.

    Table layout (``checkpoints``):
        thread_id, checkpoint_ns, checkpoint_id   # unique among live rows
        checkpoint_json                           # snapshot with encoded channel values
        metadata_json, parents_json               # caller metadata and lineage
        is_delete, created_at, updated_at
    """

    def __init__(self, db: Database, write_log: WriteLog | None = None):
        """
        Initialize checkpoint store.

        Args:
            db: Relational store holding the ``checkpoints`` table
            write_log: Write log used to attach pending writes on ``get_tuple``;
                its put_writes precondition is checked against this store
        """
        self.table = SoftDeleteTable(db, "checkpoints")
        self.write_log = write_log or WriteLog(db)
        self.write_log.checkpoints = self

    async def get_tuple(
        self,
        thread_id: str,
        checkpoint_ns: str = DEFAULT_NAMESPACE,
        checkpoint_id: str | None = None,
    ) -> CheckpointTuple | None:
        """
        Load a checkpoint by ID, or the latest one for the thread/namespace.

        Args:
            thread_id: Thread identifier
            checkpoint_ns: Namespace within the thread
            checkpoint_id: Checkpoint to load, or None for latest

        Returns:
            CheckpointTuple with pending writes attached, or None on cold start
        """
        if not thread_id:
            return None
        ns = normalize_namespace(checkpoint_ns)

        where: dict[str, Any] = {"thread_id": thread_id, "checkpoint_ns": ns}
        if checkpoint_id:
            where["checkpoint_id"] = checkpoint_id

        row = await self.table.find_one(where, order_by=NEWEST_FIRST)
        if row is None:
            return None

        writes = await self.write_log.get_writes(thread_id, ns, row["checkpoint_id"])
        result = self._row_to_tuple(row)
        result.pending_writes = [w.as_triple() for w in writes]
        return result

    async def list(
        self,
        thread_id: str,
        checkpoint_ns: str = DEFAULT_NAMESPACE,
        limit: int = 50,
        before: str | None = None,
    ) -> AsyncIterator[CheckpointTuple]:
        """
        Iterate checkpoints newest-first.

        At most *limit* rows are fetched. When *before* is given that one
        checkpoint is skipped, so fewer than *limit* tuples may be yielded.
        Each call re-queries the store.

        Args:
            thread_id: Thread identifier
            checkpoint_ns: Namespace within the thread
            limit: Maximum rows to fetch
            before: Checkpoint ID to exclude from the results

        Yields:
            CheckpointTuple objects without pending writes
        """
        if not thread_id:
            return
        ns = normalize_namespace(checkpoint_ns)

        rows = await self.table.find(
            {"thread_id": thread_id, "checkpoint_ns": ns},
            order_by=NEWEST_FIRST,
            limit=limit,
        )
        for row in rows:
            if before and row["checkpoint_id"] == before:
                continue
            yield self._row_to_tuple(row)

    async def put(
        self,
        thread_id: str,
        checkpoint_ns: str,
        checkpoint: Checkpoint | dict[str, Any],
        metadata: dict[str, Any] | None = None,
        checkpoint_id: str | None = None,
    ) -> str:
        """
        Insert a new checkpoint row.

        Args:
            thread_id: Thread identifier (required)
            checkpoint_ns: Namespace within the thread
            checkpoint: Snapshot from the graph engine
            metadata: Caller metadata, stored verbatim; ``parents`` is kept as lineage
            checkpoint_id: Fallback ID when the snapshot carries none

        Returns:
            The committed checkpoint ID

        Raises:
            PreconditionError: If thread_id is empty
            TypeError: If metadata cannot be represented as JSON
        """
        if not thread_id:
            raise PreconditionError("thread_id is required")
        ns = normalize_namespace(checkpoint_ns)
        snapshot = Checkpoint.coerce(checkpoint, fallback_id=checkpoint_id)
        metadata = dict(metadata or {})
        parents = metadata.get("parents") or {}

        await self.table.insert(
            {
                "thread_id": thread_id,
                "checkpoint_ns": ns,
                "checkpoint_id": snapshot.id,
                "checkpoint_json": json.dumps(self._serialize(snapshot)),
                "metadata_json": json.dumps(metadata, default=codec.jsonable),
                "parents_json": json.dumps(parents, default=codec.jsonable),
            }
        )
        logger.info(f"Committed checkpoint {snapshot.id} for {thread_id}/{ns}")
        return snapshot.id

    async def exists(
        self,
        thread_id: str,
        checkpoint_ns: str,
        checkpoint_id: str,
    ) -> bool:
        """Check whether a live checkpoint exists."""
        return await self.table.exists(
            {
                "thread_id": thread_id,
                "checkpoint_ns": normalize_namespace(checkpoint_ns),
                "checkpoint_id": checkpoint_id,
            }
        )

    async def delete_thread(self, thread_id: str) -> dict[str, int]:
        """
        Soft-delete every checkpoint and pending write of a thread, in all namespaces.

        Returns:
            Rows retired per table
        """
        checkpoints = await self.table.soft_delete({"thread_id": thread_id})
        writes = await self.write_log.delete_thread(thread_id)
        logger.info(f"Retired thread {thread_id}: {checkpoints} checkpoints, {writes} writes")
        return {"checkpoints": checkpoints, "writes": writes}

    # --- Serialization internals -------------------------------------------

    @staticmethod
    def _serialize(snapshot: Checkpoint) -> dict[str, Any]:
        data = snapshot.model_dump(mode="json", exclude={"channel_values"})
        data["channel_values"] = {
            channel: codec.encode(value).to_dict()
            for channel, value in snapshot.channel_values.items()
        }
        return data

    @staticmethod
    def _deserialize(raw: str) -> Checkpoint:
        data = json.loads(raw)
        encoded = data.pop("channel_values", None) or {}
        values = {}
        for channel, enc in encoded.items():
            value = codec.EncodedValue.from_dict(enc)
            values[channel] = codec.decode(value.type_tag, value.payload)
        data["channel_values"] = values
        return Checkpoint.model_validate(data)

    def _row_to_tuple(self, row: dict[str, Any]) -> CheckpointTuple:
        return CheckpointTuple(
            thread_id=row["thread_id"],
            checkpoint_ns=row["checkpoint_ns"],
            checkpoint_id=row["checkpoint_id"],
            checkpoint=self._deserialize(row["checkpoint_json"]),
            metadata=json.loads(row["metadata_json"]) if row.get("metadata_json") else {},
            parents=json.loads(row["parents_json"]) if row.get("parents_json") else {},
            created_at=row.get("created_at"),
        )
