"""Tests for company research with the long-lived research cache."""

from datetime import UTC, datetime, timedelta

import pytest

from docgen.chains.company_research import (
    CACHED_CONFIDENCE,
    PRODUCED_BY_CACHE,
    is_persistable,
    render_research_text,
)
from docgen.core.errors import InputValidationError
from docgen.core.schemas_agent import AgentResponse
from docgen.core.schemas_tasks import CompanyResearchOutput
from docgen.core.synthetic import PLACEHOLDER_WARNING
from docgen.core.validation import validate_output
from docgen.graphs.dispatch_graph import PRODUCED_BY_FALLBACK
from tests.fakes.payloads import COMPANY_OUTPUT, as_text
from tests.fakes.providers import ScriptedProvider
from tests.fakes.retrieval import FakeEmbedder

ACME_INPUT = {"company_name": "Acme Corp"}


@pytest.mark.asyncio
async def test_research_without_providers_returns_placeholder(make_orchestrator, research_store):
    orchestrator = make_orchestrator()

    response = await orchestrator.research("Acme Corp", ACME_INPUT)

    assert response.success is True
    assert response.produced_by == PRODUCED_BY_FALLBACK
    assert response.needs_review is True
    assert PLACEHOLDER_WARNING in response.warnings
    assert validate_output("company-research", response.output.model_dump()).ok
    assert "Acme Corp" in response.output.description
    # Placeholders are never persisted
    assert len(research_store) == 0


@pytest.mark.asyncio
async def test_research_accepts_camel_case_input(make_orchestrator):
    orchestrator = make_orchestrator()

    response = await orchestrator.research("Acme Corp", {"companyName": "Acme Corp"})

    assert response.success is True
    assert response.produced_by == PRODUCED_BY_FALLBACK
    assert response.output.company_name == "Acme Corp"


@pytest.mark.asyncio
async def test_fresh_result_is_persisted_with_embedding(make_orchestrator, research_store, clock):
    provider = ScriptedProvider("anthropic", [as_text(COMPANY_OUTPUT)])
    embedder = FakeEmbedder(dim=4)
    orchestrator = make_orchestrator(providers=[provider], embed_fn=embedder)

    response = await orchestrator.execute("company-research", ACME_INPUT)

    assert response.produced_by == "primary:anthropic"
    record = research_store.get("acme corp")
    assert record is not None
    assert record.research_data["industry"] == "Logistics"
    assert record.updated_at == clock.now()
    assert record.embedding is not None and len(record.embedding) == 4
    assert embedder.calls == [[render_research_text(record.research_data)]]


@pytest.mark.asyncio
async def test_fresh_record_skips_generation(make_orchestrator, research_cache, clock):
    await research_cache.upsert("acme corp", COMPANY_OUTPUT)
    clock.advance(days=10)
    provider = ScriptedProvider("anthropic", [as_text(COMPANY_OUTPUT)])
    orchestrator = make_orchestrator(providers=[provider])

    response = await orchestrator.research("  ACME   Corp ", ACME_INPUT)

    assert provider.calls == []
    assert response.produced_by == PRODUCED_BY_CACHE
    assert response.confidence == CACHED_CONFIDENCE
    assert response.needs_review is False
    assert isinstance(response.output, CompanyResearchOutput)
    assert response.output.company_name == "Acme Corp"


@pytest.mark.asyncio
async def test_stale_record_is_regenerated(make_orchestrator, research_cache, research_store, clock):
    old = dict(COMPANY_OUTPUT, industry="Shipping")
    await research_cache.upsert("acme corp", old, updated_at=clock.now() - timedelta(days=31))
    provider = ScriptedProvider("anthropic", [as_text(COMPANY_OUTPUT)])
    orchestrator = make_orchestrator(providers=[provider])

    response = await orchestrator.execute("company-research", ACME_INPUT)

    assert len(provider.calls) == 1
    assert response.output.industry == "Logistics"
    record = research_store.get("acme corp")
    assert record.research_data["industry"] == "Logistics"
    assert record.updated_at == clock.now()


@pytest.mark.asyncio
async def test_cached_record_not_matching_shape_is_regenerated(make_orchestrator, research_cache):
    await research_cache.upsert("acme corp", {"company_name": "Acme Corp"})
    provider = ScriptedProvider("anthropic", [as_text(COMPANY_OUTPUT)])
    orchestrator = make_orchestrator(providers=[provider])

    response = await orchestrator.research("acme corp", ACME_INPUT)

    assert len(provider.calls) == 1
    assert response.produced_by == "primary:anthropic"


@pytest.mark.asyncio
async def test_embedding_failure_still_persists(make_orchestrator, research_store):
    provider = ScriptedProvider("anthropic", [as_text(COMPANY_OUTPUT)])
    orchestrator = make_orchestrator(providers=[provider], embed_fn=FakeEmbedder(error=RuntimeError("no key")))

    response = await orchestrator.execute("company-research", ACME_INPUT)

    assert response.produced_by == "primary:anthropic"
    record = research_store.get("acme corp")
    assert record is not None
    assert record.embedding is None


@pytest.mark.asyncio
async def test_repaired_result_is_not_persisted(make_orchestrator, research_store):
    partial = {k: v for k, v in COMPANY_OUTPUT.items() if k != "industry"}
    provider = ScriptedProvider("anthropic", [as_text(partial)])
    orchestrator = make_orchestrator(providers=[provider])

    response = await orchestrator.execute("company-research", ACME_INPUT)

    assert response.needs_review is True
    assert len(research_store) == 0


@pytest.mark.asyncio
async def test_second_request_served_from_research_cache(make_orchestrator, response_cache):
    provider = ScriptedProvider("anthropic", [as_text(COMPANY_OUTPUT)])
    orchestrator = make_orchestrator(providers=[provider])

    await orchestrator.execute("company-research", ACME_INPUT)
    response_cache.clear()
    response = await orchestrator.execute("company-research", {"company_name": "acme corp"})

    assert len(provider.calls) == 1
    assert response.produced_by == PRODUCED_BY_CACHE


@pytest.mark.asyncio
async def test_research_rejects_invalid_input(make_orchestrator):
    with pytest.raises(InputValidationError):
        await make_orchestrator().research("acme corp", {"industry": "Logistics"})


def test_render_research_text():
    text = render_research_text(
        dict(COMPANY_OUTPUT, key_executives=[{"name": "Jane Roe", "title": "CEO"}])
    )

    assert text.splitlines()[0] == "Acme Corp"
    assert "Competitors: Globex, Initech" in text
    assert "Executives: Jane Roe (CEO)" in text


def test_is_persistable_only_for_provider_output():
    output = CompanyResearchOutput.model_validate(COMPANY_OUTPUT)
    base = dict(
        task_kind="company-research",
        output=output,
        success=True,
        confidence=0.85,
        needs_review=False,
        timestamp=datetime(2025, 1, 15, tzinfo=UTC),
    )

    assert is_persistable(AgentResponse(produced_by="primary:anthropic", **base))
    assert is_persistable(AgentResponse(produced_by="secondary:openai", **base))
    assert not is_persistable(AgentResponse(produced_by=PRODUCED_BY_FALLBACK, **base))
    assert not is_persistable(AgentResponse(produced_by=PRODUCED_BY_CACHE, **base))
