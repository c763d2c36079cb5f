"""
Checkpoint Schema - Graph state snapshots and the writes pending against them.

A checkpoint captures every channel value at one step boundary. Pending writes
are the per-task channel writes emitted after that boundary and before the
next checkpoint folds them in.
"""

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_NAMESPACE = "default"


def normalize_namespace(checkpoint_ns: str | None) -> str:
    """Blank or missing namespaces collapse to ``"default"``."""
    if isinstance(checkpoint_ns, str) and checkpoint_ns.strip():
        return checkpoint_ns
    return DEFAULT_NAMESPACE


def generate_checkpoint_id() -> str:
    """
    Generate a time-ordered checkpoint ID.

    Returns:
        ID string (e.g., "cp_20260206143022123456_abc12345")
    """
    timestamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S%f")
    return f"cp_{timestamp}_{uuid.uuid4().hex[:8]}"


class Checkpoint(BaseModel):
    """
    Snapshot of graph state handed over by the graph engine.

    ``channel_values`` holds decoded values; encoding happens in the store.
    """

    v: int = 1
    id: str = Field(default_factory=generate_checkpoint_id)
    ts: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    channel_values: dict[str, Any] = Field(default_factory=dict)
    channel_versions: dict[str, Any] = Field(default_factory=dict)
    versions_seen: dict[str, dict[str, Any]] = Field(default_factory=dict)

    model_config = {"extra": "allow"}

    @classmethod
    def coerce(
        cls,
        checkpoint: "Checkpoint | dict[str, Any]",
        fallback_id: str | None = None,
    ) -> "Checkpoint":
        """
        Build a Checkpoint from a model or mapping.

        The ID comes from the checkpoint itself, else from *fallback_id*,
        else a generated one.
        """
        if isinstance(checkpoint, Checkpoint):
            if fallback_id and "id" not in checkpoint.model_fields_set:
                return checkpoint.model_copy(update={"id": fallback_id})
            return checkpoint

        data = dict(checkpoint)
        if not data.get("id"):
            data.pop("id", None)
            if fallback_id:
                data["id"] = fallback_id
        return cls.model_validate(data)


class PendingWrite(BaseModel):
    """One channel write by one task, pending against a checkpoint."""

    thread_id: str
    checkpoint_ns: str = DEFAULT_NAMESPACE
    checkpoint_id: str
    task_id: str
    idx: int
    channel: str
    value: Any = None

    def as_triple(self) -> tuple[str, str, Any]:
        """Shape used by the graph engine: (task_id, channel, value)."""
        return (self.task_id, self.channel, self.value)


class CheckpointTuple(BaseModel):
    """A stored checkpoint with its metadata, lineage and (optionally) pending writes."""

    thread_id: str
    checkpoint_ns: str = DEFAULT_NAMESPACE
    checkpoint_id: str
    checkpoint: Checkpoint
    metadata: dict[str, Any] = Field(default_factory=dict)
    parents: dict[str, Any] = Field(default_factory=dict)
    pending_writes: list[tuple[str, str, Any]] | None = None
    created_at: str | None = None

    @property
    def config(self) -> dict[str, Any]:
        """Addressing config understood by the graph engine."""
        return {
            "configurable": {
                "thread_id": self.thread_id,
                "checkpoint_ns": self.checkpoint_ns,
                "checkpoint_id": self.checkpoint_id,
            }
        }
