"""Long-lived research cache over a persisted store.

Records are keyed by a normalized subject key and considered fresh for a
fixed staleness window. The tier is unbounded by count; the store is the
source of truth and every read goes to it. Store failures are logged and
degrade to a miss (reads) or a dropped write (upserts).
"""

from __future__ import annotations

import asyncio
import re
import threading
from datetime import datetime, timedelta
from typing import Any, Protocol

from docgen.core.clock import Clock, SystemClock
from docgen.core.errors import CacheError
from docgen.core.logging import get_logger
from docgen.core.schemas_agent import ResearchRecord

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


class ResearchStore(Protocol):
    """Persisted research records (Supabase table or in-memory)."""

    def get(self, subject_key: str) -> ResearchRecord | None: ...

    def upsert(self, record: ResearchRecord) -> None: ...

    def search(
        self,
        query_embedding: list[float],
        match_count: int,
        similarity_threshold: float,
    ) -> list[dict[str, Any]]: ...


def normalize_subject_key(subject: str) -> str:
    """Lowercase, trim and collapse inner whitespace: ``"  Acme   Corp "`` -> ``"acme corp"``."""
    return _WHITESPACE.sub(" ", subject.strip().lower())


class ResearchCache:
    """Staleness-windowed view over a ResearchStore."""

    def __init__(
        self,
        store: ResearchStore,
        clock: Clock | None = None,
        staleness_days: int = 30,
    ):
        self.store = store
        self.staleness = timedelta(days=staleness_days)
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._stale = 0
        self._upserts = 0
        self._errors = 0

    def is_record_stale(self, record: ResearchRecord) -> bool:
        return self._clock.now() - record.updated_at > self.staleness

    async def get(self, subject_key: str) -> ResearchRecord | None:
        """Read a record regardless of age. Store errors read as a miss."""
        key = normalize_subject_key(subject_key)
        try:
            return await asyncio.to_thread(self.store.get, key)
        except Exception as e:
            self._count("_errors")
            logger.warning(str(CacheError("research", f"read failed for '{key}': {e}")))
            return None

    async def get_fresh(self, subject_key: str) -> ResearchRecord | None:
        """Return the record only if it is inside the staleness window."""
        record = await self.get(subject_key)
        if record is None:
            self._count("_misses")
            return None
        if self.is_record_stale(record):
            self._count("_stale")
            self._count("_misses")
            logger.info(
                f"Research record for '{record.subject_key}' is stale "
                f"(updated {record.updated_at.isoformat()})"
            )
            return None
        self._count("_hits")
        return record

    async def is_stale(self, subject_key: str) -> bool:
        """True when no record exists or the stored one is outside the window."""
        record = await self.get(subject_key)
        return record is None or self.is_record_stale(record)

    async def upsert(
        self,
        subject_key: str,
        research_data: dict[str, Any],
        embedding: list[float] | None = None,
        updated_at: datetime | None = None,
    ) -> ResearchRecord | None:
        """Overwrite the record for a subject key. Returns None if the write failed."""
        record = ResearchRecord(
            subject_key=normalize_subject_key(subject_key),
            research_data=research_data,
            updated_at=updated_at or self._clock.now(),
            embedding=embedding,
        )
        try:
            await asyncio.to_thread(self.store.upsert, record)
        except Exception as e:
            self._count("_errors")
            logger.error(str(CacheError("research", f"upsert failed for '{record.subject_key}': {e}")))
            return None
        self._count("_upserts")
        logger.info(f"Upserted research record for '{record.subject_key}'")
        return record

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "name": "research",
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total, 4) if total else 0.0,
                "stale": self._stale,
                "upserts": self._upserts,
                "errors": self._errors,
                "staleness_days": self.staleness.days,
            }

    def _count(self, attr: str) -> None:
        with self._lock:
            setattr(self, attr, getattr(self, attr) + 1)
