"""Vector search over knowledge chunks via the match_knowledge_chunks RPC."""

from typing import Any

from docgen.core.logging import get_logger
from docgen.db.supabase_client import get_supabase

logger = get_logger(__name__)


def search_knowledge_chunks(
    query_embedding: list[float],
    match_count: int,
    similarity_threshold: float,
    filter_tags: list[str] | None = None,
    filter_created_by: str | None = None,
) -> list[dict[str, Any]]:
    """
    Search for knowledge chunks similar to a query embedding.

    Args:
        query_embedding: Query embedding vector
        match_count: Number of results to return
        similarity_threshold: Minimum cosine similarity (exclusive)
        filter_tags: Only chunks whose document carries one of these tags
        filter_created_by: Only chunks from documents created by this owner

    Returns:
        List of rows ``{id, text, similarity, metadata, updated_at}``

    Raises:
        Exception: If database operation fails
    """
    supabase = get_supabase()

    try:
        response = supabase.rpc(
            "match_knowledge_chunks",
            {
                "query_embedding": query_embedding,
                "match_count": match_count,
                "similarity_threshold": similarity_threshold,
                "filter_tags": filter_tags or None,
                "filter_created_by": filter_created_by or None,
            },
        ).execute()

        if not response.data:
            logger.debug("No matching knowledge chunks found")
            return []

        rows = []
        for row in response.data:
            metadata = dict(row.get("metadata") or {})
            metadata["document_id"] = row.get("document_id")
            if row.get("document_title"):
                metadata["document_title"] = row["document_title"]
            if row.get("document_tags"):
                metadata["tags"] = row["document_tags"]
            rows.append(
                {
                    "id": str(row["id"]),
                    "text": row.get("chunk_text") or "",
                    "similarity": float(row.get("similarity") or 0.0),
                    "metadata": metadata,
                    "updated_at": row.get("created_at"),
                }
            )

        logger.info(f"Found {len(rows)} matching knowledge chunks")
        return rows

    except Exception as e:
        logger.error(f"Failed to search knowledge chunks: {e}")
        raise


class SupabaseKnowledgeIndex:
    """Knowledge vector index backed by the match_knowledge_chunks RPC."""

    name = "supabase"

    def search(
        self,
        query_embedding: list[float],
        match_count: int,
        similarity_threshold: float,
        tag_filter: list[str] | None = None,
        owner_filter: str | None = None,
    ) -> list[dict[str, Any]]:
        return search_knowledge_chunks(
            query_embedding,
            match_count,
            similarity_threshold,
            filter_tags=tag_filter,
            filter_created_by=owner_filter,
        )
