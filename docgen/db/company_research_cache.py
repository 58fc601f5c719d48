"""Persistence for the company_research_cache table."""

from datetime import UTC
from typing import Any

from dateutil.parser import isoparse

from docgen.core.logging import get_logger
from docgen.core.schemas_agent import ResearchRecord
from docgen.db.supabase_client import get_supabase

logger = get_logger(__name__)

TABLE = "company_research_cache"


def _row_to_record(row: dict[str, Any]) -> ResearchRecord:
    updated_at = isoparse(row["updated_at"]) if isinstance(row["updated_at"], str) else row["updated_at"]
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=UTC)
    embedding = row.get("company_embedding")
    if isinstance(embedding, str):
        # pgvector columns come back as "[0.1,0.2,...]"
        embedding = [float(x) for x in embedding.strip("[]").split(",") if x]
    return ResearchRecord(
        subject_key=row["company_name"],
        research_data=row.get("research_data") or {},
        updated_at=updated_at,
        embedding=embedding,
    )


def get_company_research(subject_key: str) -> ResearchRecord | None:
    """
    Get the cached research record for a normalized company key.

    Args:
        subject_key: Normalized company name

    Returns:
        ResearchRecord or None if not cached

    Raises:
        Exception: If database operation fails
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table(TABLE)
            .select("company_name, research_data, company_embedding, updated_at")
            .eq("company_name", subject_key)
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            return None
        return _row_to_record(response.data)

    except Exception as e:
        logger.error(f"Failed to get company research for '{subject_key}': {e}")
        raise


def upsert_company_research(record: ResearchRecord) -> dict[str, Any]:
    """
    Insert or overwrite the research record for a company.

    Args:
        record: Record to persist (subject_key is the unique company_name)

    Returns:
        Upserted row

    Raises:
        Exception: If database operation fails
    """
    supabase = get_supabase()
    data = record.research_data

    row = {
        "company_name": record.subject_key,
        "industry": data.get("industry"),
        "location": data.get("location"),
        "description": data.get("description"),
        "website": data.get("website"),
        "founded_year": data.get("founded_year"),
        "employee_count": data.get("employee_count"),
        "revenue": data.get("revenue"),
        "key_executives": data.get("key_executives"),
        "competitors": data.get("competitors"),
        "recent_news": data.get("recent_news"),
        "research_data": data,
        "company_embedding": record.embedding,
        "updated_at": record.updated_at.isoformat(),
    }

    try:
        response = supabase.table(TABLE).upsert(row, on_conflict="company_name").execute()
        logger.info(f"Upserted company research for '{record.subject_key}'")
        return response.data[0] if response.data else row

    except Exception as e:
        logger.error(f"Failed to upsert company research for '{record.subject_key}': {e}")
        raise


def search_company_research(
    query_embedding: list[float],
    match_count: int,
    similarity_threshold: float,
) -> list[dict[str, Any]]:
    """
    Search research records by embedding similarity.

    Returns:
        List of rows ``{id, text, similarity, metadata, updated_at}``

    Raises:
        Exception: If database operation fails
    """
    supabase = get_supabase()

    try:
        response = supabase.rpc(
            "match_company_research",
            {
                "query_embedding": query_embedding,
                "match_count": match_count,
                "similarity_threshold": similarity_threshold,
            },
        ).execute()

        rows = []
        for row in response.data or []:
            data = row.get("research_data") or {}
            rows.append(
                {
                    "id": row["company_name"],
                    "text": data.get("description") or row.get("description") or "",
                    "similarity": float(row.get("similarity") or 0.0),
                    "metadata": {"company_name": row["company_name"], "industry": row.get("industry")},
                    "updated_at": row.get("updated_at"),
                }
            )
        return rows

    except Exception as e:
        logger.error(f"Failed to search company research: {e}")
        raise


class SupabaseResearchStore:
    """ResearchStore over the company_research_cache table."""

    name = "supabase"

    def get(self, subject_key: str) -> ResearchRecord | None:
        return get_company_research(subject_key)

    def upsert(self, record: ResearchRecord) -> None:
        upsert_company_research(record)

    def search(
        self,
        query_embedding: list[float],
        match_count: int,
        similarity_threshold: float,
    ) -> list[dict[str, Any]]:
        return search_company_research(query_embedding, match_count, similarity_threshold)
