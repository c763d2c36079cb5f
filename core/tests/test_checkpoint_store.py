"""Tests for CheckpointStore: put, latest lookup, listing and soft deletion."""

import json
from dataclasses import dataclass
from pathlib import Path

import pytest
from pydantic import BaseModel

from graphkeep.errors import PreconditionError
from graphkeep.schemas.checkpoint import Checkpoint
from graphkeep.storage.checkpoint_store import CheckpointStore
from graphkeep.storage.database import SQLiteDatabase

# === HELPER FUNCTIONS ===


async def _make_store(path: Path | str = ":memory:") -> tuple[SQLiteDatabase, CheckpointStore]:
    db = SQLiteDatabase(path)
    await db.initialize()
    return db, CheckpointStore(db)


def _checkpoint(cp_id: str, **channels) -> dict:
    return {"id": cp_id, "channel_values": channels}


class Source(BaseModel):
    kind: str
    step: int = 1


@dataclass
class Writer:
    task: str


class TestPutAndGet:
    @pytest.mark.asyncio
    async def test_cold_start_returns_none(self):
        _, store = await _make_store()
        assert await store.get_tuple("t1") is None

    @pytest.mark.asyncio
    async def test_empty_thread_id_returns_none(self):
        _, store = await _make_store()
        assert await store.get_tuple("") is None

    @pytest.mark.asyncio
    async def test_put_requires_thread_id(self):
        _, store = await _make_store()
        with pytest.raises(PreconditionError):
            await store.put("", "default", _checkpoint("cp-1", x=1))

    @pytest.mark.asyncio
    async def test_put_then_get_decodes_channels(self):
        """put a checkpoint for t1 with {"x": 1}; getTuple returns it decoded."""
        _, store = await _make_store()
        cp_id = await store.put("t1", "default", {"channel_values": {"x": 1}}, {})

        result = await store.get_tuple("t1", "default")
        assert result is not None
        assert result.checkpoint_id == cp_id
        assert result.checkpoint.channel_values == {"x": 1}
        assert result.pending_writes == []

    @pytest.mark.asyncio
    async def test_latest_checkpoint_wins(self):
        _, store = await _make_store()
        await store.put("t1", "default", _checkpoint("cp-1", step=1))
        await store.put("t1", "default", _checkpoint("cp-2", step=2))
        await store.put("t1", "default", _checkpoint("cp-3", step=3))

        result = await store.get_tuple("t1")
        assert result.checkpoint_id == "cp-3"
        assert result.checkpoint.channel_values == {"step": 3}

    @pytest.mark.asyncio
    async def test_get_by_id(self):
        _, store = await _make_store()
        await store.put("t1", "default", _checkpoint("cp-1", step=1))
        await store.put("t1", "default", _checkpoint("cp-2", step=2))

        result = await store.get_tuple("t1", "default", "cp-1")
        assert result.checkpoint.channel_values == {"step": 1}
        assert await store.get_tuple("t1", "default", "cp-missing") is None

    @pytest.mark.asyncio
    async def test_fallback_id_used_when_checkpoint_has_none(self):
        _, store = await _make_store()
        cp_id = await store.put("t1", "default", {"channel_values": {}}, checkpoint_id="cp-given")
        assert cp_id == "cp-given"

    @pytest.mark.asyncio
    async def test_generated_id_when_none_given(self):
        _, store = await _make_store()
        cp_id = await store.put("t1", "default", {"id": "", "channel_values": {}})
        assert cp_id.startswith("cp_")

    @pytest.mark.asyncio
    async def test_checkpoint_model_accepted(self):
        _, store = await _make_store()
        snapshot = Checkpoint(id="cp-model", channel_values={"blob": b"\x01\x02"})
        await store.put("t1", "default", snapshot)

        result = await store.get_tuple("t1")
        assert result.checkpoint.channel_values == {"blob": b"\x01\x02"}

    @pytest.mark.asyncio
    async def test_metadata_and_parents_stored(self):
        _, store = await _make_store()
        metadata = {"source": "loop", "step": 4, "parents": {"": "cp-0"}}
        await store.put("t1", "default", _checkpoint("cp-1"), metadata)

        result = await store.get_tuple("t1")
        assert result.metadata == metadata
        assert result.parents == {"": "cp-0"}
        assert result.config == {
            "configurable": {
                "thread_id": "t1",
                "checkpoint_ns": "default",
                "checkpoint_id": "cp-1",
            }
        }

    @pytest.mark.asyncio
    async def test_structured_metadata_stored_as_json(self):
        _, store = await _make_store()
        metadata = {"source": Source(kind="loop"), "writer": Writer(task="t-1")}
        await store.put("t1", "default", _checkpoint("cp-1"), metadata)

        result = await store.get_tuple("t1")
        assert result.metadata == {
            "source": {"kind": "loop", "step": 1},
            "writer": {"task": "t-1"},
        }

    @pytest.mark.asyncio
    async def test_unserializable_metadata_rejected(self):
        _, store = await _make_store()
        with pytest.raises(TypeError):
            await store.put("t1", "default", _checkpoint("cp-1"), {"lock": object()})

    @pytest.mark.asyncio
    async def test_corrupted_channel_value_falls_back_to_text(self):
        db, store = await _make_store()
        await store.put("t1", "default", _checkpoint("cp-1", x=1))

        row = await db.fetch_one("SELECT id, checkpoint_json FROM checkpoints")
        data = json.loads(row["checkpoint_json"])
        data["channel_values"]["x"] = {"t": "json", "b64": "%%%corrupt%%%"}
        await db.execute(
            "UPDATE checkpoints SET checkpoint_json = ? WHERE id = ?",
            [json.dumps(data), row["id"]],
        )

        result = await store.get_tuple("t1")
        assert result.checkpoint.channel_values == {"x": "%%%corrupt%%%"}


class TestNamespaces:
    @pytest.mark.asyncio
    async def test_namespaces_are_isolated(self):
        _, store = await _make_store()
        await store.put("t1", "default", _checkpoint("cp-root", where="root"))
        await store.put("t1", "subgraph", _checkpoint("cp-sub", where="sub"))

        assert (await store.get_tuple("t1", "default")).checkpoint_id == "cp-root"
        assert (await store.get_tuple("t1", "subgraph")).checkpoint_id == "cp-sub"

    @pytest.mark.asyncio
    async def test_blank_namespace_is_default(self):
        _, store = await _make_store()
        await store.put("t1", "", _checkpoint("cp-1"))

        result = await store.get_tuple("t1", "default")
        assert result.checkpoint_ns == "default"
        assert (await store.get_tuple("t1", "")).checkpoint_id == "cp-1"


class TestList:
    @pytest.mark.asyncio
    async def test_newest_first(self):
        _, store = await _make_store()
        for i in range(1, 4):
            await store.put("t1", "default", _checkpoint(f"cp-{i}"))

        ids = [item.checkpoint_id async for item in store.list("t1")]
        assert ids == ["cp-3", "cp-2", "cp-1"]

    @pytest.mark.asyncio
    async def test_limit(self):
        _, store = await _make_store()
        for i in range(1, 6):
            await store.put("t1", "default", _checkpoint(f"cp-{i}"))

        ids = [item.checkpoint_id async for item in store.list("t1", limit=2)]
        assert ids == ["cp-5", "cp-4"]

    @pytest.mark.asyncio
    async def test_before_skips_one_checkpoint(self):
        _, store = await _make_store()
        for i in range(1, 4):
            await store.put("t1", "default", _checkpoint(f"cp-{i}"))

        ids = [item.checkpoint_id async for item in store.list("t1", before="cp-2")]
        assert ids == ["cp-3", "cp-1"]

    @pytest.mark.asyncio
    async def test_before_counts_against_limit(self):
        _, store = await _make_store()
        for i in range(1, 4):
            await store.put("t1", "default", _checkpoint(f"cp-{i}"))

        ids = [item.checkpoint_id async for item in store.list("t1", limit=2, before="cp-3")]
        assert ids == ["cp-2"]

    @pytest.mark.asyncio
    async def test_list_does_not_attach_writes(self):
        _, store = await _make_store()
        await store.put("t1", "default", _checkpoint("cp-1"))
        await store.write_log.put_writes("t1", "default", "cp-1", "task", [("state", 1)])

        items = [item async for item in store.list("t1")]
        assert items[0].pending_writes is None

    @pytest.mark.asyncio
    async def test_empty_thread_lists_nothing(self):
        _, store = await _make_store()
        assert [item async for item in store.list("")] == []


class TestDeleteThread:
    @pytest.mark.asyncio
    async def test_delete_hides_everything(self, tmp_path: Path):
        db, store = await _make_store(tmp_path / "graphkeep.db")
        await store.put("t1", "default", _checkpoint("cp-1"))
        await store.put("t1", "sub", _checkpoint("cp-2"))
        await store.write_log.put_writes("t1", "default", "cp-1", "task", [("a", 1), ("b", 2)])

        counts = await store.delete_thread("t1")

        assert counts == {"checkpoints": 2, "writes": 2}
        assert await store.get_tuple("t1") is None
        assert await store.get_tuple("t1", "sub") is None
        assert [item async for item in store.list("t1")] == []

        # rows are flagged, not removed
        row = await db.fetch_one("SELECT COUNT(*) AS n FROM checkpoints WHERE is_delete = 1")
        assert row["n"] == 2

    @pytest.mark.asyncio
    async def test_exists_sees_live_rows_only(self):
        _, store = await _make_store()
        await store.put("t1", "sub", _checkpoint("cp-1"))

        assert await store.exists("t1", "sub", "cp-1")
        assert not await store.exists("t1", "default", "cp-1")
        assert not await store.exists("t1", "sub", "cp-2")

        await store.delete_thread("t1")
        assert not await store.exists("t1", "sub", "cp-1")

    @pytest.mark.asyncio
    async def test_other_threads_untouched(self):
        _, store = await _make_store()
        await store.put("t1", "default", _checkpoint("cp-1"))
        await store.put("t2", "default", _checkpoint("cp-2"))

        await store.delete_thread("t1")
        assert (await store.get_tuple("t2")).checkpoint_id == "cp-2"

    @pytest.mark.asyncio
    async def test_id_can_be_reused_after_delete(self):
        _, store = await _make_store()
        await store.put("t1", "default", _checkpoint("cp-1", gen=1))
        await store.delete_thread("t1")
        await store.put("t1", "default", _checkpoint("cp-1", gen=2))

        result = await store.get_tuple("t1")
        assert result.checkpoint.channel_values == {"gen": 2}

    @pytest.mark.asyncio
    async def test_database_persists_across_connections(self, tmp_path: Path):
        path = tmp_path / "nested" / "graphkeep.db"
        db, store = await _make_store(path)
        await store.put("t1", "default", _checkpoint("cp-1", x=1))
        await db.close()

        db2, store2 = await _make_store(path)
        result = await store2.get_tuple("t1")
        assert result.checkpoint.channel_values == {"x": 1}
        await db2.close()
