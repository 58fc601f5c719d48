"""Retrieval usage rows in the knowledge_usage table."""

from typing import Any

from docgen.core.logging import get_logger
from docgen.db.supabase_client import get_supabase

logger = get_logger(__name__)

ANONYMOUS_USER = "anonymous"


def log_knowledge_usage(
    query: str,
    retrieved_ids: list[str],
    relevance_score: float,
    response_time_ms: int,
    user_id: str | None = None,
    sources: list[dict[str, Any]] | None = None,
) -> None:
    """Log one retrieval to the knowledge_usage table. Fire-and-forget."""
    try:
        row = {
            "user_id": user_id or ANONYMOUS_USER,
            "query": query,
            "retrieved_chunks": retrieved_ids,
            "sources": sources or [],
            # relevance_score is DECIMAL(3,2)
            "relevance_score": round(relevance_score, 2),
            "response_time_ms": response_time_ms,
        }

        supabase = get_supabase()
        supabase.table("knowledge_usage").insert(row).execute()

        logger.debug(f"Knowledge usage logged: {len(retrieved_ids)} sources in {response_time_ms}ms")
    except Exception as e:
        # Never fail retrieval due to logging
        logger.error(f"Failed to log knowledge usage: {e}")
