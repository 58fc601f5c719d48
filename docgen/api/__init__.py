"""API router for v1 endpoints."""

from fastapi import APIRouter

from docgen.api import agents, knowledge

router = APIRouter()

# Task execution, catalogue and cache maintenance
router.include_router(agents.router, prefix="/agents", tags=["agents"])

# Raw retrieval over the knowledge base
router.include_router(knowledge.router, prefix="/knowledge", tags=["knowledge"])
