"""Retrieval usage tracking: recent queries in-process plus an optional knowledge_usage sink."""

import asyncio
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from docgen.core.clock import Clock, SystemClock
from docgen.core.logging import get_logger
from docgen.core.schemas_agent import RetrievalResult

logger = get_logger(__name__)

RetrievalUsageSink = Callable[..., None]

RECENT_QUERIES = 10


@dataclass(frozen=True)
class RetrievalUsageRecord:
    query: str
    retrieved_ids: tuple[str, ...]
    relevance_score: float
    response_time_ms: int
    created_at: datetime
    user_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "retrieved_ids": list(self.retrieved_ids),
            "relevance_score": round(self.relevance_score, 4),
            "response_time_ms": self.response_time_ms,
            "created_at": self.created_at.isoformat(),
            "user_id": self.user_id,
        }


def relevance_score(results: list[RetrievalResult]) -> float:
    """Mean similarity over every returned source (0.0 when nothing matched)."""
    if not results:
        return 0.0
    return sum(r.similarity for r in results) / len(results)


class RetrievalUsageTracker:
    """Keeps the most recent retrievals for analytics and forwards each one to a sink."""

    def __init__(
        self,
        sink: RetrievalUsageSink | None = None,
        clock: Clock | None = None,
        max_records: int = 1000,
    ):
        self.sink = sink
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._records: deque[RetrievalUsageRecord] = deque(maxlen=max_records)

    async def record(
        self,
        query: str,
        results: list[RetrievalResult],
        response_time_ms: int,
        user_id: str | None = None,
    ) -> RetrievalUsageRecord:
        record = RetrievalUsageRecord(
            query=query,
            retrieved_ids=tuple(r.source_id for r in results),
            relevance_score=relevance_score(results),
            response_time_ms=response_time_ms,
            created_at=self._clock.now(),
            user_id=user_id,
        )
        with self._lock:
            self._records.append(record)

        if self.sink is not None:
            try:
                await asyncio.to_thread(
                    self.sink,
                    query=query,
                    retrieved_ids=list(record.retrieved_ids),
                    relevance_score=record.relevance_score,
                    response_time_ms=response_time_ms,
                    user_id=user_id,
                    sources=[r.as_source() for r in results],
                )
            except Exception as e:
                logger.error(f"Retrieval usage sink failed: {e}")
        return record

    def analytics(self, days: int = 30, limit: int = 100, user_id: str | None = None) -> dict[str, Any]:
        """
        Summarize recent retrievals.

        Args:
            days: Only retrievals from the last ``days`` days
            limit: At most this many of the newest retrievals are summarized
            user_id: Only retrievals made on behalf of this owner

        Returns:
            Dict with total_queries, avg_response_time_ms, avg_relevance_score,
            recent_queries (newest first) and daily_usage (date descending)
        """
        cutoff = self._clock.now() - timedelta(days=days)
        with self._lock:
            records = [
                r
                for r in reversed(self._records)
                if r.created_at >= cutoff and (user_id is None or r.user_id == user_id)
            ][:limit]

        total = len(records)
        daily: dict[str, int] = {}
        for r in records:
            day = r.created_at.date().isoformat()
            daily[day] = daily.get(day, 0) + 1

        return {
            "total_queries": total,
            "avg_response_time_ms": round(sum(r.response_time_ms for r in records) / total, 1) if total else 0.0,
            "avg_relevance_score": round(sum(r.relevance_score for r in records) / total, 4) if total else 0.0,
            "recent_queries": [r.to_dict() for r in records[:RECENT_QUERIES]],
            "daily_usage": [{"date": d, "count": c} for d, c in sorted(daily.items(), reverse=True)],
        }
