"""Tests for Supabase-backed and in-memory stores with a mocked client."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from docgen.core.schemas_agent import KnowledgeChunk, ResearchRecord
from docgen.db.company_research_cache import (
    SupabaseResearchStore,
    _row_to_record,
    get_company_research,
    upsert_company_research,
)
from docgen.db.knowledge_chunks import SupabaseKnowledgeIndex, search_knowledge_chunks
from docgen.db.memory_store import InMemoryKnowledgeIndex, InMemoryResearchStore, cosine_similarities


def test_cosine_similarities():
    sims = cosine_similarities([1.0, 0.0], np.array([[1.0, 0.0], [0.0, 2.0], [0.0, 0.0]]))

    assert sims.tolist() == pytest.approx([1.0, 0.0, 0.0])


def test_in_memory_knowledge_threshold_is_exclusive():
    index = InMemoryKnowledgeIndex(
        [KnowledgeChunk(id="c1", document_id="d1", text="a", embedding=[1.0, 0.0])]
    )

    assert index.search([1.0, 0.0], 5, 1.0) == []
    assert [r["id"] for r in index.search([1.0, 0.0], 5, 0.99)] == ["c1"]


def test_in_memory_knowledge_owner_filter():
    index = InMemoryKnowledgeIndex(
        [
            KnowledgeChunk(id="c1", document_id="d1", text="a", embedding=[1.0, 0.0], metadata={"created_by": "u1"}),
            KnowledgeChunk(id="c2", document_id="d2", text="b", embedding=[1.0, 0.1], metadata={"created_by": "u2"}),
        ]
    )

    rows = index.search([1.0, 0.0], 5, 0.5, owner_filter="u2")

    assert [r["id"] for r in rows] == ["c2"]
    assert rows[0]["metadata"]["document_id"] == "d2"


def test_in_memory_knowledge_add_replaces_by_id():
    index = InMemoryKnowledgeIndex()
    index.add(KnowledgeChunk(id="c1", document_id="d1", text="old", embedding=[1.0, 0.0]))
    index.add(KnowledgeChunk(id="c1", document_id="d1", text="new", embedding=[1.0, 0.0]))

    assert len(index) == 1
    assert index.search([1.0, 0.0], 5, 0.5)[0]["text"] == "new"


def test_in_memory_research_search_skips_records_without_embedding():
    store = InMemoryResearchStore()
    now = datetime(2025, 1, 15, tzinfo=UTC)
    store.upsert(ResearchRecord("acme corp", {"description": "Freight"}, now, embedding=[1.0, 0.0]))
    store.upsert(ResearchRecord("globex", {"description": "Chemicals"}, now))

    rows = store.search([1.0, 0.0], 5, 0.5)

    assert [r["id"] for r in rows] == ["acme corp"]


def test_row_to_record_parses_pgvector_and_timestamp():
    record = _row_to_record(
        {
            "company_name": "acme corp",
            "research_data": {"industry": "Logistics"},
            "company_embedding": "[0.1,0.2,0.3]",
            "updated_at": "2025-01-10T08:30:00",
        }
    )

    assert record.subject_key == "acme corp"
    assert record.embedding == [0.1, 0.2, 0.3]
    assert record.updated_at == datetime(2025, 1, 10, 8, 30, tzinfo=UTC)


def test_get_company_research_not_found():
    with patch("docgen.db.company_research_cache.get_supabase") as mock_get_supabase:
        mock_client = MagicMock()
        mock_get_supabase.return_value = mock_client
        mock_client.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = None

        assert get_company_research("acme corp") is None
        mock_client.table.assert_called_once_with("company_research_cache")


def test_get_company_research_found():
    with patch("docgen.db.company_research_cache.get_supabase") as mock_get_supabase:
        mock_client = MagicMock()
        mock_get_supabase.return_value = mock_client
        response = MagicMock()
        response.data = {
            "company_name": "acme corp",
            "research_data": {"industry": "Logistics"},
            "company_embedding": None,
            "updated_at": "2025-01-10T08:30:00+00:00",
        }
        mock_client.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = response

        record = SupabaseResearchStore().get("acme corp")

        assert record.research_data == {"industry": "Logistics"}
        assert record.embedding is None


def test_upsert_company_research_conflicts_on_company_name():
    record = ResearchRecord(
        subject_key="acme corp",
        research_data={"company_name": "Acme Corp", "industry": "Logistics"},
        updated_at=datetime(2025, 1, 15, tzinfo=UTC),
        embedding=[0.1, 0.2],
    )
    with patch("docgen.db.company_research_cache.get_supabase") as mock_get_supabase:
        mock_client = MagicMock()
        mock_get_supabase.return_value = mock_client
        mock_client.table.return_value.upsert.return_value.execute.return_value.data = []

        upsert_company_research(record)

        args, kwargs = mock_client.table.return_value.upsert.call_args
        assert kwargs == {"on_conflict": "company_name"}
        assert args[0]["company_name"] == "acme corp"
        assert args[0]["industry"] == "Logistics"
        assert args[0]["company_embedding"] == [0.1, 0.2]
        assert args[0]["updated_at"] == "2025-01-15T00:00:00+00:00"


def test_upsert_company_research_propagates_errors():
    record = ResearchRecord("acme corp", {}, datetime(2025, 1, 15, tzinfo=UTC))
    with patch("docgen.db.company_research_cache.get_supabase") as mock_get_supabase:
        mock_get_supabase.return_value.table.side_effect = ConnectionError("down")

        with pytest.raises(ConnectionError):
            upsert_company_research(record)


def test_search_knowledge_chunks_maps_rows():
    with patch("docgen.db.knowledge_chunks.get_supabase") as mock_get_supabase:
        mock_client = MagicMock()
        mock_get_supabase.return_value = mock_client
        mock_client.rpc.return_value.execute.return_value.data = [
            {
                "id": 7,
                "document_id": "doc-1",
                "document_title": "Runbook",
                "document_tags": ["ops"],
                "chunk_text": "Restart the worker",
                "similarity": 0.82,
                "metadata": {"page": 3},
                "created_at": "2025-01-01T00:00:00+00:00",
            }
        ]

        rows = search_knowledge_chunks([0.1, 0.2], 5, 0.7, filter_tags=["ops"])

        name, params = mock_client.rpc.call_args.args
        assert name == "match_knowledge_chunks"
        assert params["filter_tags"] == ["ops"]
        assert params["filter_created_by"] is None
        assert rows == [
            {
                "id": "7",
                "text": "Restart the worker",
                "similarity": 0.82,
                "metadata": {"page": 3, "document_id": "doc-1", "document_title": "Runbook", "tags": ["ops"]},
                "updated_at": "2025-01-01T00:00:00+00:00",
            }
        ]


def test_supabase_knowledge_index_passes_filters():
    with patch("docgen.db.knowledge_chunks.get_supabase") as mock_get_supabase:
        mock_client = MagicMock()
        mock_get_supabase.return_value = mock_client
        mock_client.rpc.return_value.execute.return_value.data = []

        assert SupabaseKnowledgeIndex().search([0.1], 3, 0.7, owner_filter="u1") == []
        params = mock_client.rpc.call_args.args[1]
        assert params["filter_created_by"] == "u1"
        assert params["match_count"] == 3
