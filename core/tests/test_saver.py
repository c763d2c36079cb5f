"""End-to-end tests for CheckpointSaver: persistence, translation and compaction together."""

from pathlib import Path

import pytest

from graphkeep import (
    CheckpointSaver,
    InMemoryConversationStore,
    PreconditionError,
    SaverConfig,
    SQLiteDatabase,
    SummaryModelUnavailableError,
)
from graphkeep.observability import clear_trace_context, get_trace_context


class CountingSummarizer:
    def __init__(self):
        self.calls = 0

    def __call__(self, messages):
        self.calls += 1
        return f"summary {self.calls}"


async def _make_saver(
    conversation_store=None,
    interval: int = 2,
    summary_model=None,
    enabled: bool = True,
) -> CheckpointSaver:
    config = SaverConfig(
        summary_enabled=enabled,
        summary_interval=interval,
        summary_model=summary_model,
        database_path=":memory:",
    )
    saver = CheckpointSaver(SQLiteDatabase(), conversation_store=conversation_store, config=config)
    await saver.setup()
    return saver


class TestSaverContract:
    @pytest.mark.asyncio
    async def test_put_then_get_tuple(self):
        saver = await _make_saver()
        cp_id = await saver.put("t1", "default", {"channel_values": {"x": 1}}, {"step": 1})

        result = await saver.get_tuple("t1", "default")
        assert result.checkpoint_id == cp_id
        assert result.checkpoint.channel_values == {"x": 1}
        assert result.metadata == {"step": 1}

    @pytest.mark.asyncio
    async def test_cold_start(self):
        saver = await _make_saver()
        assert await saver.get_tuple("never-seen") is None
        assert [item async for item in saver.list("never-seen")] == []

    @pytest.mark.asyncio
    async def test_put_writes_requires_checkpoint(self):
        saver = await _make_saver(InMemoryConversationStore())
        with pytest.raises(PreconditionError):
            await saver.put_writes("t1", "default", "cp-x", "task", [("assistant", "hi")])

    @pytest.mark.asyncio
    async def test_list_and_delete(self):
        saver = await _make_saver()
        for i in range(3):
            await saver.put("t1", "default", {"id": f"cp-{i}"})

        assert [item.checkpoint_id async for item in saver.list("t1", limit=2)] == ["cp-2", "cp-1"]

        counts = await saver.delete_thread("t1")
        assert counts["checkpoints"] == 3
        assert await saver.get_tuple("t1") is None
        assert [item async for item in saver.list("t1")] == []

    @pytest.mark.asyncio
    async def test_trace_context_stamped(self):
        clear_trace_context()
        saver = await _make_saver()
        await saver.put("t1", "sub", {"id": "cp-1"})

        context = get_trace_context()
        assert context["thread_id"] == "t1"
        assert context["checkpoint_ns"] == "sub"
        clear_trace_context()

    @pytest.mark.asyncio
    async def test_open_uses_configured_database(self, tmp_path: Path):
        path = tmp_path / "state" / "graphkeep.db"
        config = SaverConfig(database_path=str(path))

        saver = await CheckpointSaver.open(config=config)
        await saver.put("t1", "default", {"id": "cp-1", "channel_values": {"k": "v"}})
        await saver.close()

        reopened = await CheckpointSaver.open(config=config)
        result = await reopened.get_tuple("t1")
        assert result.checkpoint.channel_values == {"k": "v"}
        await reopened.close()
        assert path.exists()


class TestConversationFlow:
    @pytest.mark.asyncio
    async def test_graph_run_builds_conversation_and_summaries(self):
        conversation = InMemoryConversationStore()
        summarizer = CountingSummarizer()
        saver = await _make_saver(conversation, interval=2, summary_model=summarizer)

        cp1 = await saver.put("t1", "default", {"channel_values": {}})
        await saver.put_writes(
            "t1",
            "default",
            cp1,
            "task-1",
            [
                ("user_input", "What is 6 x 7?"),
                ("tool_start", {"name": "calculator"}),
                ("tool_end", {"output": "42"}),
            ],
        )
        assert summarizer.calls == 0

        cp2 = await saver.put("t1", "default", {"channel_values": {"answer": 42}})
        await saver.put_writes("t1", "default", cp2, "task-2", [("assistant", "The answer is 42.")])

        # second assistant message hits the interval
        assert summarizer.calls == 1
        messages = await conversation.get_messages("t1")
        assert [(m.role, m.content) for m in messages] == [
            ("user", "What is 6 x 7?"),
            ("assistant", "42"),
            ("assistant", "The answer is 42."),
            ("system", "summary 1"),
        ]

        summary = await saver.summary_store.latest("t1")
        assert summary.round_number == 2
        assert summary.summary_content == "summary 1"

        latest = await saver.get_tuple("t1")
        assert latest.checkpoint_id == cp2
        assert latest.pending_writes == [("task-2", "assistant", "The answer is 42.")]

    @pytest.mark.asyncio
    async def test_summary_disabled_skips_compactor(self):
        conversation = InMemoryConversationStore()
        summarizer = CountingSummarizer()
        saver = await _make_saver(conversation, interval=1, summary_model=summarizer, enabled=False)
        assert saver.compactor is None

        cp = await saver.put("t1", "default", {})
        await saver.put_writes("t1", "default", cp, "task", [("assistant", "hi")])

        assert summarizer.calls == 0
        assert len(await conversation.get_messages("t1")) == 1

    @pytest.mark.asyncio
    async def test_compaction_failure_surfaces_after_commit(self):
        conversation = InMemoryConversationStore()
        # no override and no registry: the default model lookup cannot run
        saver = await _make_saver(conversation, interval=1)

        cp = await saver.put("t1", "default", {})
        with pytest.raises(SummaryModelUnavailableError):
            await saver.put_writes("t1", "default", cp, "task", [("assistant", "hi")])

        result = await saver.get_tuple("t1")
        assert result.pending_writes == [("task", "assistant", "hi")]
        assert [m.content for m in await conversation.get_messages("t1")] == ["hi"]
