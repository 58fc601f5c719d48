"""Tests for the staleness-windowed research cache."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from docgen.core.research_cache import ResearchCache, normalize_subject_key
from docgen.core.schemas_agent import ResearchRecord


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Acme Corp", "acme corp"),
        ("  ACME   corp ", "acme corp"),
        ("acme\tcorp\n", "acme corp"),
    ],
)
def test_normalize_subject_key(raw, expected):
    assert normalize_subject_key(raw) == expected


@pytest.mark.asyncio
async def test_upsert_then_get_fresh(research_cache, research_store):
    record = await research_cache.upsert("Acme Corp", {"company_name": "Acme Corp"}, embedding=[0.1, 0.2])

    assert record.subject_key == "acme corp"
    assert research_store.get("acme corp") is not None

    fresh = await research_cache.get_fresh("  ACME corp")
    assert fresh is not None
    assert fresh.embedding == [0.1, 0.2]
    assert research_cache.stats()["hits"] == 1


@pytest.mark.asyncio
async def test_record_is_fresh_inside_window(research_cache, clock):
    await research_cache.upsert("acme corp", {"company_name": "Acme Corp"})
    clock.advance(days=29)

    assert await research_cache.get_fresh("acme corp") is not None
    assert await research_cache.is_stale("acme corp") is False


@pytest.mark.asyncio
async def test_record_is_stale_after_window(research_cache, clock):
    await research_cache.upsert("acme corp", {"company_name": "Acme Corp"})
    clock.advance(days=31)

    assert await research_cache.get_fresh("acme corp") is None
    assert await research_cache.is_stale("acme corp") is True
    # Stale records are still readable
    assert await research_cache.get("acme corp") is not None

    stats = research_cache.stats()
    assert stats["stale"] == 1
    assert stats["misses"] == 1


@pytest.mark.asyncio
async def test_missing_record_is_stale(research_cache):
    assert await research_cache.get_fresh("globex") is None
    assert await research_cache.is_stale("globex") is True


@pytest.mark.asyncio
async def test_upsert_overwrites(research_cache, research_store, clock):
    await research_cache.upsert("acme corp", {"industry": "Logistics"})
    clock.advance(days=40)
    await research_cache.upsert("Acme Corp", {"industry": "Shipping"})

    record = await research_cache.get_fresh("acme corp")
    assert record.research_data == {"industry": "Shipping"}
    assert record.updated_at == clock.now()
    assert len(research_store) == 1


@pytest.mark.asyncio
async def test_explicit_updated_at(research_cache, clock):
    old = clock.now() - timedelta(days=45)
    await research_cache.upsert("acme corp", {}, updated_at=old)

    assert await research_cache.is_stale("acme corp") is True


@pytest.mark.asyncio
async def test_store_read_error_is_a_miss(clock):
    store = MagicMock()
    store.get.side_effect = ConnectionError("database unreachable")
    cache = ResearchCache(store, clock=clock)

    assert await cache.get_fresh("acme corp") is None
    stats = cache.stats()
    assert stats["errors"] == 1
    assert stats["misses"] == 1


@pytest.mark.asyncio
async def test_store_write_error_is_dropped(clock):
    store = MagicMock()
    store.upsert.side_effect = ConnectionError("database unreachable")
    cache = ResearchCache(store, clock=clock)

    assert await cache.upsert("acme corp", {"industry": "Logistics"}) is None
    assert cache.stats()["errors"] == 1
    assert cache.stats()["upserts"] == 0


def test_is_record_stale_boundary(research_cache, clock):
    exactly = ResearchRecord("acme corp", {}, updated_at=clock.now() - timedelta(days=30))
    older = ResearchRecord("acme corp", {}, updated_at=clock.now() - timedelta(days=30, seconds=1))

    assert research_cache.is_record_stale(exactly) is False
    assert research_cache.is_record_stale(older) is True
