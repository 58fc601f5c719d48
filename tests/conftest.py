"""Pytest configuration and fixtures."""

import os

import pytest

from docgen.core.cache import EmbeddingCache, ResponseCache
from docgen.core.config import get_settings
from docgen.core.llm_usage import UsageTracker
from docgen.core.research_cache import ResearchCache
from docgen.db.memory_store import InMemoryResearchStore
from docgen.services.agent_service import get_orchestrator
from docgen.services.orchestrator import Orchestrator
from tests.fakes.clock import ManualClock


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables.

    No provider or database keys: every test wires its own fakes, and anything
    built from settings falls back to synthetic output and in-memory stores.
    """
    os.environ["DOCGEN_ENV"] = "test"
    for key in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "ANTHROPIC_API_KEY", "OPENAI_API_KEY"):
        os.environ.pop(key, None)
    get_settings.cache_clear()
    get_orchestrator.cache_clear()
    yield
    get_settings.cache_clear()
    get_orchestrator.cache_clear()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def response_cache(clock) -> ResponseCache:
    return ResponseCache(capacity=100, ttl_seconds=300, clock=clock)


@pytest.fixture
def embedding_cache(clock) -> EmbeddingCache:
    return EmbeddingCache(capacity=100, ttl_seconds=24 * 60 * 60, clock=clock)


@pytest.fixture
def research_store() -> InMemoryResearchStore:
    return InMemoryResearchStore()


@pytest.fixture
def research_cache(research_store, clock) -> ResearchCache:
    return ResearchCache(research_store, clock=clock, staleness_days=30)


@pytest.fixture
def make_orchestrator(clock, response_cache, embedding_cache, research_cache):
    """Factory for an Orchestrator wired to in-memory tiers and the manual clock."""

    def _make(providers=(), retrieval=None, embed_fn=None, usage=None) -> Orchestrator:
        return Orchestrator(
            providers=list(providers),
            response_cache=response_cache,
            research_cache=research_cache,
            retrieval=retrieval,
            embedding_cache=embedding_cache,
            usage=usage or UsageTracker(),
            clock=clock,
            embed_fn=embed_fn,
        )

    return _make
