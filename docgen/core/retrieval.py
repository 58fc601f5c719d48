"""Retrieval engine: query embedding -> knowledge + research similarity search.

Usage:
    from docgen.core.retrieval import RetrievalEngine, RetrievalOptions

    engine = RetrievalEngine(knowledge_index, research_store, embedding_cache)
    results = await engine.retrieve(
        "Acme Corp logistics software",
        RetrievalOptions(match_count=5, similarity_threshold=0.7),
    )

Both sources degrade independently: an index failure is logged as a
CacheError and that source contributes nothing. If the query cannot be
embedded at all the result is empty.

Completed retrievals are reported to the engine's usage tracker, if set.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

from dateutil.parser import isoparse

from docgen.core.cache import EmbeddingCache
from docgen.core.embeddings import embed_text_cached, embed_texts_async
from docgen.core.errors import CacheError
from docgen.core.logging import get_logger
from docgen.core.retrieval_usage import RetrievalUsageTracker
from docgen.core.schemas_agent import RetrievalResult, SourceType

logger = get_logger(__name__)

EmbedFn = Callable[[list[str]], Awaitable[list[list[float]]]]

_EPOCH = datetime.min.replace(tzinfo=UTC)


class VectorIndex(Protocol):
    """Nearest-neighbour search over knowledge chunks.

    Must return ``[]`` when nothing clears the threshold.
    """

    def search(
        self,
        query_embedding: list[float],
        match_count: int,
        similarity_threshold: float,
        tag_filter: list[str] | None = None,
        owner_filter: str | None = None,
    ) -> list[dict[str, Any]]: ...


class ResearchIndex(Protocol):
    def search(
        self,
        query_embedding: list[float],
        match_count: int,
        similarity_threshold: float,
    ) -> list[dict[str, Any]]: ...


@dataclass(frozen=True)
class RetrievalOptions:
    match_count: int = 5
    similarity_threshold: float = 0.7
    tag_filter: list[str] | None = None
    owner_filter: str | None = None
    include_research: bool = True
    research_match_count: int = 3
    research_similarity_threshold: float = 0.6


def _as_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = isoparse(str(value))
        except (ValueError, OverflowError):
            return None
    return dt if dt.tzinfo else dt.replace(tzinfo=UTC)


def _to_results(
    rows: list[dict[str, Any]],
    source_type: SourceType,
    threshold: float,
    limit: int,
) -> list[RetrievalResult]:
    results = []
    for row in rows:
        similarity = float(row.get("similarity") or 0.0)
        if similarity <= threshold:
            continue
        results.append(
            RetrievalResult(
                source_type=source_type,
                source_id=str(row.get("id", "")),
                snippet=str(row.get("text") or ""),
                similarity=min(max(similarity, 0.0), 1.0),
                metadata=dict(row.get("metadata") or {}),
                updated_at=_as_datetime(row.get("updated_at")),
            )
        )
    results.sort(key=lambda r: r.similarity, reverse=True)
    return results[:limit]


def order_results(results: list[RetrievalResult]) -> list[RetrievalResult]:
    """Similarity descending; ties go to the most recently updated source."""
    return sorted(
        results,
        key=lambda r: (r.similarity, r.updated_at or _EPOCH),
        reverse=True,
    )


class RetrievalEngine:
    """Read-only similarity search over the knowledge index and research store."""

    def __init__(
        self,
        knowledge_index: VectorIndex,
        research_index: ResearchIndex | None = None,
        embedding_cache: EmbeddingCache | None = None,
        embed_fn: EmbedFn | None = None,
        default_options: RetrievalOptions | None = None,
        usage: RetrievalUsageTracker | None = None,
    ):
        self.knowledge_index = knowledge_index
        self.research_index = research_index
        self.embedding_cache = embedding_cache
        self.embed_fn = embed_fn or embed_texts_async
        self.default_options = default_options or RetrievalOptions()
        self.usage = usage

    async def retrieve(self, query: str, options: RetrievalOptions | None = None) -> list[RetrievalResult]:
        """
        Find knowledge chunks (and optionally research records) similar to a query.

        Args:
            query: Free-text query
            options: Limits, thresholds and filters (engine defaults when None)

        Returns:
            Merged results ordered by similarity descending
        """
        options = options or self.default_options
        if not query or not query.strip():
            return []

        t0 = time.monotonic()
        try:
            embedding = await embed_text_cached(query, self.embedding_cache, self.embed_fn)
        except Exception as e:
            logger.warning(f"Query embedding failed, skipping retrieval: {e}")
            return []

        searches = [
            self._search(
                "knowledge",
                self.knowledge_index.search,
                embedding,
                options.match_count,
                options.similarity_threshold,
                options.tag_filter,
                options.owner_filter,
            )
        ]
        if options.include_research and self.research_index is not None:
            searches.append(
                self._search(
                    "research",
                    self.research_index.search,
                    embedding,
                    options.research_match_count,
                    options.research_similarity_threshold,
                )
            )

        batches = await asyncio.gather(*searches)
        merged = order_results([r for batch in batches for r in batch])

        logger.info(
            f"Retrieved {len(merged)} sources "
            f"({sum(1 for r in merged if r.source_type == 'knowledge')} knowledge, "
            f"{sum(1 for r in merged if r.source_type == 'research')} research)"
        )
        if self.usage is not None:
            await self.usage.record(
                query,
                merged,
                int((time.monotonic() - t0) * 1000),
                user_id=options.owner_filter,
            )
        return merged

    async def _search(
        self,
        source_type: SourceType,
        search_fn: Callable[..., list[dict[str, Any]]],
        embedding: list[float],
        match_count: int,
        threshold: float,
        *filters: Any,
    ) -> list[RetrievalResult]:
        try:
            rows = await asyncio.to_thread(search_fn, embedding, match_count, threshold, *filters)
        except Exception as e:
            logger.warning(str(CacheError(source_type, f"index search failed: {e}")))
            return []
        return _to_results(rows or [], source_type, threshold, match_count)
