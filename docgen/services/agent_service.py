"""Builds the process-wide Orchestrator from settings."""

import asyncio
from functools import lru_cache

from docgen.core.cache import EmbeddingCache, ResponseCache
from docgen.core.clock import Clock, SystemClock
from docgen.core.config import Settings, get_settings
from docgen.core.embeddings import embed_texts_async
from docgen.core.llm_usage import UsageTracker, log_llm_usage
from docgen.core.logging import get_logger
from docgen.core.providers import resolve_providers
from docgen.core.research_cache import ResearchCache
from docgen.core.retrieval import RetrievalEngine, RetrievalOptions
from docgen.core.retrieval_usage import RetrievalUsageTracker
from docgen.db.company_research_cache import SupabaseResearchStore
from docgen.db.knowledge_chunks import SupabaseKnowledgeIndex
from docgen.db.knowledge_usage import log_knowledge_usage
from docgen.db.memory_store import InMemoryKnowledgeIndex, InMemoryResearchStore
from docgen.services.orchestrator import Orchestrator

logger = get_logger(__name__)


def retrieval_options_from(settings: Settings) -> RetrievalOptions:
    return RetrievalOptions(
        match_count=settings.RETRIEVAL_MATCH_COUNT,
        similarity_threshold=settings.RETRIEVAL_SIMILARITY_THRESHOLD,
        research_match_count=settings.RESEARCH_MATCH_COUNT,
        research_similarity_threshold=settings.RESEARCH_SIMILARITY_THRESHOLD,
    )


def build_orchestrator(settings: Settings | None = None, clock: Clock | None = None) -> Orchestrator:
    """
    Wire caches, stores, retrieval and providers into an Orchestrator.

    Supabase-backed stores are used when SUPABASE_URL and the service role
    key are set, in-memory stores otherwise. Retrieval and research
    embeddings need OPENAI_API_KEY; without it both are skipped.
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()

    response_cache = ResponseCache(
        capacity=settings.RESPONSE_CACHE_CAPACITY,
        ttl_seconds=settings.RESPONSE_CACHE_TTL_SECONDS,
        clock=clock,
        sweep_interval_seconds=settings.CACHE_SWEEP_INTERVAL_SECONDS,
    )
    embedding_cache = EmbeddingCache(
        capacity=settings.EMBEDDING_CACHE_CAPACITY,
        ttl_seconds=settings.EMBEDDING_CACHE_TTL_SECONDS,
        clock=clock,
        sweep_interval_seconds=settings.CACHE_SWEEP_INTERVAL_SECONDS,
    )

    if settings.supabase_configured:
        research_store = SupabaseResearchStore()
        knowledge_index = SupabaseKnowledgeIndex()
    else:
        logger.warning("Supabase not configured; using in-memory research store and knowledge index")
        research_store = InMemoryResearchStore()
        knowledge_index = InMemoryKnowledgeIndex()

    research_cache = ResearchCache(research_store, clock=clock, staleness_days=settings.RESEARCH_STALENESS_DAYS)

    embed_fn = embed_texts_async if settings.OPENAI_API_KEY else None
    retrieval = None
    if embed_fn is not None:
        retrieval = RetrievalEngine(
            knowledge_index,
            research_store,
            embedding_cache=embedding_cache,
            embed_fn=embed_fn,
            default_options=retrieval_options_from(settings),
            usage=RetrievalUsageTracker(
                sink=log_knowledge_usage if settings.supabase_configured and settings.LOG_KNOWLEDGE_USAGE else None,
                clock=clock,
            ),
        )
    else:
        logger.warning("OPENAI_API_KEY not set; retrieval and research embeddings are disabled")

    sink = log_llm_usage if settings.supabase_configured and settings.LOG_LLM_USAGE else None

    return Orchestrator(
        providers=resolve_providers(settings),
        response_cache=response_cache,
        research_cache=research_cache,
        retrieval=retrieval,
        embedding_cache=embedding_cache,
        usage=UsageTracker(sink=sink),
        clock=clock,
        retrieval_options=retrieval_options_from(settings),
        embed_fn=embed_fn,
    )


@lru_cache(maxsize=1)
def get_orchestrator() -> Orchestrator:
    """Process-wide orchestrator (cached singleton)."""
    return build_orchestrator()


async def sweep_caches_periodically(orchestrator: Orchestrator, interval_seconds: float) -> None:
    """Background loop that drops expired in-process cache entries."""
    while True:
        await asyncio.sleep(interval_seconds)
        removed = orchestrator.cleanup_caches()
        if any(removed.values()):
            logger.debug(f"Periodic cache sweep removed {removed}")
