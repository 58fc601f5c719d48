"""API endpoints for raw knowledge-base retrieval and its usage analytics."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from docgen.core.retrieval import RetrievalOptions
from docgen.services.agent_service import get_orchestrator
from docgen.services.orchestrator import Orchestrator

router = APIRouter()


class KnowledgeSearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    match_count: int = Field(default=5, ge=1, le=50)
    similarity_threshold: float = Field(default=0.7, ge=0, le=1)
    tags: list[str] | None = None
    created_by: str | None = None
    include_research: bool = True


@router.post("/search")
async def search_knowledge(
    request: KnowledgeSearchRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """
    Similarity search over knowledge chunks and cached company research.

    Raises:
        HTTPException 503: Retrieval is not configured
    """
    if orchestrator.retrieval is None:
        raise HTTPException(status_code=503, detail="Retrieval is not configured")

    defaults = orchestrator.retrieval.default_options
    results = await orchestrator.retrieval.retrieve(
        request.query,
        RetrievalOptions(
            match_count=request.match_count,
            similarity_threshold=request.similarity_threshold,
            tag_filter=request.tags,
            owner_filter=request.created_by,
            include_research=request.include_research,
            research_match_count=defaults.research_match_count,
            research_similarity_threshold=defaults.research_similarity_threshold,
        ),
    )

    return {
        "query": request.query,
        "total": len(results),
        "results": [
            {
                "source_type": r.source_type,
                "source_id": r.source_id,
                "snippet": r.snippet,
                "similarity": round(r.similarity, 4),
                "metadata": r.metadata,
                "updated_at": r.updated_at.isoformat() if r.updated_at else None,
            }
            for r in results
        ],
    }


@router.get("/analytics")
async def knowledge_analytics(
    days: int = Query(30, description="Days of history to summarize", ge=1, le=365),
    limit: int = Query(100, description="Maximum retrievals to summarize", ge=1, le=1000),
    user_id: str | None = Query(None, description="Only retrievals for this owner"),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """
    Usage analytics for recent retrievals: volume, latency and mean relevance.

    Raises:
        HTTPException 503: Retrieval is not configured
    """
    if orchestrator.retrieval is None or orchestrator.retrieval.usage is None:
        raise HTTPException(status_code=503, detail="Retrieval is not configured")

    return orchestrator.retrieval.usage.analytics(days=days, limit=limit, user_id=user_id)
