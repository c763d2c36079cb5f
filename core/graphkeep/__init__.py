"""
graphkeep - Durable checkpoints and conversation compaction for resumable graphs.

Quick Start:
    from graphkeep import CheckpointSaver, InMemoryConversationStore, load_config

    saver = await CheckpointSaver.open(
        config=load_config(summary_interval=10),
        conversation_store=InMemoryConversationStore(),
        registry=LiteLLMModelRegistry([ModelConfig(id="haiku", model="anthropic/claude-haiku-4-5-20251001")]),
    )
    cp_id = await saver.put("thread-1", "default", {"channel_values": {"messages": []}}, {})
    await saver.put_writes("thread-1", "default", cp_id, "task-1", [("assistant", "Hello!")])
    latest = await saver.get_tuple("thread-1")
"""

from graphkeep.config import SaverConfig, load_config
from graphkeep.conversation.store import (
    ContextNotFoundError,
    ConversationStore,
    InMemoryConversationStore,
)
from graphkeep.conversation.translator import classify, translate
from graphkeep.errors import (
    CompactionError,
    GraphkeepError,
    PreconditionError,
    SummaryModelUnavailableError,
)
from graphkeep.llm.registry import (
    ChatRequest,
    ChatResponse,
    LiteLLMModelRegistry,
    ModelConfig,
    ModelRegistry,
)
from graphkeep.saver import CheckpointSaver
from graphkeep.schemas.checkpoint import Checkpoint, CheckpointTuple, PendingWrite
from graphkeep.schemas.conversation import ChatMessage, MessageRole, RoundSummary
from graphkeep.storage.database import Database, SQLiteDatabase

__all__ = [
    # Saver
    "CheckpointSaver",
    "SaverConfig",
    "load_config",
    # Schemas
    "Checkpoint",
    "CheckpointTuple",
    "PendingWrite",
    "ChatMessage",
    "MessageRole",
    "RoundSummary",
    # Storage
    "Database",
    "SQLiteDatabase",
    # Conversation
    "ConversationStore",
    "InMemoryConversationStore",
    "ContextNotFoundError",
    "classify",
    "translate",
    # Models
    "ModelRegistry",
    "LiteLLMModelRegistry",
    "ModelConfig",
    "ChatRequest",
    "ChatResponse",
    # Errors
    "GraphkeepError",
    "PreconditionError",
    "CompactionError",
    "SummaryModelUnavailableError",
]
