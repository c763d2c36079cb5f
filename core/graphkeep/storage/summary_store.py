"""
Summary Store - Round summaries produced by compaction.

Rows are append-only. The latest summary of a session is the one with the
highest round number.
"""

import logging

from graphkeep.schemas.conversation import RoundSummary
from graphkeep.storage.database import Database, SoftDeleteTable

logger = logging.getLogger(__name__)


class SummaryStore:
    """Persists :class:`RoundSummary` records in the ``round_summaries`` table."""

    def __init__(self, db: Database):
        self.table = SoftDeleteTable(db, "round_summaries")

    async def save(self, summary: RoundSummary) -> RoundSummary:
        """
        Insert a summary for a round.

        Raises:
            sqlite3.IntegrityError: If the session already has a summary for this round
        """
        await self.table.insert(
            {
                "session_id": summary.session_id,
                "round_number": summary.round_number,
                "summary_content": summary.summary_content,
            }
        )
        logger.debug(f"Saved round {summary.round_number} summary for {summary.session_id}")
        stored = await self.get(summary.session_id, summary.round_number)
        return stored or summary

    async def get(self, session_id: str, round_number: int) -> RoundSummary | None:
        row = await self.table.find_one({"session_id": session_id, "round_number": round_number})
        return self._to_summary(row) if row else None

    async def latest(self, session_id: str) -> RoundSummary | None:
        """Most recent summary of a session, by round number."""
        row = await self.table.find_one(
            {"session_id": session_id},
            order_by=(("round_number", "DESC"),),
        )
        return self._to_summary(row) if row else None

    async def list(self, session_id: str, limit: int = 50) -> list[RoundSummary]:
        """Summaries of a session, newest round first."""
        rows = await self.table.find(
            {"session_id": session_id},
            order_by=(("round_number", "DESC"),),
            limit=limit,
        )
        return [self._to_summary(row) for row in rows]

    @staticmethod
    def _to_summary(row: dict) -> RoundSummary:
        return RoundSummary(
            session_id=row["session_id"],
            round_number=row["round_number"],
            summary_content=row["summary_content"],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )
