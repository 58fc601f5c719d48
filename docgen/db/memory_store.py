"""In-memory knowledge index and research store.

Used when Supabase is not configured, and by tests. Similarity is cosine
similarity computed with numpy; rows must clear the threshold strictly,
matching the RPC functions.
"""

import threading
from typing import Any

import numpy as np

from docgen.core.schemas_agent import KnowledgeChunk, ResearchRecord


def cosine_similarities(query: list[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of one query vector against each row of a matrix."""
    q = np.asarray(query, dtype=float)
    q_norm = np.linalg.norm(q)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * q_norm
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(denom > 0, matrix @ q / denom, 0.0)
    return sims


class InMemoryKnowledgeIndex:
    """Knowledge chunks held in memory, searched by brute-force cosine similarity."""

    name = "memory"

    def __init__(self, chunks: list[KnowledgeChunk] | None = None):
        self._lock = threading.Lock()
        self._chunks: list[KnowledgeChunk] = []
        for chunk in chunks or []:
            self.add(chunk)

    def add(self, chunk: KnowledgeChunk) -> None:
        with self._lock:
            self._chunks = [c for c in self._chunks if c.id != chunk.id] + [chunk]

    def __len__(self) -> int:
        return len(self._chunks)

    def search(
        self,
        query_embedding: list[float],
        match_count: int,
        similarity_threshold: float,
        tag_filter: list[str] | None = None,
        owner_filter: str | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            candidates = [
                c
                for c in self._chunks
                if (not tag_filter or set(tag_filter) & set(c.metadata.get("tags", [])))
                and (not owner_filter or c.metadata.get("created_by") == owner_filter)
            ]
        if not candidates:
            return []

        sims = cosine_similarities(query_embedding, np.array([c.embedding for c in candidates], dtype=float))
        rows = [
            {
                "id": chunk.id,
                "text": chunk.text,
                "similarity": float(sim),
                "metadata": {**chunk.metadata, "document_id": chunk.document_id, "ordinal_index": chunk.ordinal_index},
                "updated_at": chunk.created_at,
            }
            for chunk, sim in zip(candidates, sims)
            if sim > similarity_threshold
        ]
        rows.sort(key=lambda r: r["similarity"], reverse=True)
        return rows[:match_count]


class InMemoryResearchStore:
    """ResearchStore keyed by subject key."""

    name = "memory"

    def __init__(self):
        self._lock = threading.Lock()
        self._records: dict[str, ResearchRecord] = {}

    def get(self, subject_key: str) -> ResearchRecord | None:
        with self._lock:
            return self._records.get(subject_key)

    def upsert(self, record: ResearchRecord) -> None:
        with self._lock:
            self._records[record.subject_key] = record

    def __len__(self) -> int:
        return len(self._records)

    def search(
        self,
        query_embedding: list[float],
        match_count: int,
        similarity_threshold: float,
    ) -> list[dict[str, Any]]:
        with self._lock:
            records = [r for r in self._records.values() if r.embedding]
        if not records:
            return []

        sims = cosine_similarities(query_embedding, np.array([r.embedding for r in records], dtype=float))
        rows = [
            {
                "id": record.subject_key,
                "text": str(record.research_data.get("description", "")),
                "similarity": float(sim),
                "metadata": {
                    "company_name": record.research_data.get("company_name", record.subject_key),
                    "industry": record.research_data.get("industry"),
                },
                "updated_at": record.updated_at,
            }
            for record, sim in zip(records, sims)
            if sim > similarity_threshold
        ]
        rows.sort(key=lambda r: r["similarity"], reverse=True)
        return rows[:match_count]
