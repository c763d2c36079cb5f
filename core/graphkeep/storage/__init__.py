"""Relational persistence: checkpoints, pending writes, round summaries."""

from graphkeep.storage.checkpoint_store import CheckpointStore
from graphkeep.storage.database import Database, SoftDeleteTable, SQLiteDatabase
from graphkeep.storage.summary_store import SummaryStore
from graphkeep.storage.write_log import WriteLog, WriteStage

__all__ = [
    "CheckpointStore",
    "Database",
    "SoftDeleteTable",
    "SQLiteDatabase",
    "SummaryStore",
    "WriteLog",
    "WriteStage",
]
