"""Request, response and retrieval records shared across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel

SourceType = Literal["knowledge", "research"]


@dataclass(frozen=True)
class AgentRequest:
    """One validated call into the orchestrator."""

    task_kind: str
    input: BaseModel
    timestamp: datetime
    request_id: str = field(default_factory=lambda: str(uuid4()))


@dataclass(frozen=True)
class AgentResponse:
    """Terminal result of a task run.

    ``output`` is the task's output model (tagged by ``task_kind``) or an
    UnstructuredOutput when only raw text could be recovered.
    """

    task_kind: str
    output: BaseModel
    success: bool
    confidence: float
    needs_review: bool
    timestamp: datetime
    produced_by: str
    warnings: tuple[str, ...] = ()
    sources: tuple[dict[str, Any], ...] = ()
    request_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_kind": self.task_kind,
            "output": self.output.model_dump(mode="json"),
            "success": self.success,
            "confidence": self.confidence,
            "needs_review": self.needs_review,
            "warnings": list(self.warnings),
            "sources": [dict(s) for s in self.sources],
            "timestamp": self.timestamp.isoformat(),
            "produced_by": self.produced_by,
            "request_id": self.request_id,
        }


@dataclass(frozen=True)
class KnowledgeChunk:
    id: str
    document_id: str
    text: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)
    ordinal_index: int = 0
    created_at: datetime | None = None


@dataclass(frozen=True)
class ResearchRecord:
    subject_key: str
    research_data: dict[str, Any]
    updated_at: datetime
    embedding: list[float] | None = None


@dataclass(frozen=True)
class RetrievalResult:
    source_type: SourceType
    source_id: str
    snippet: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime | None = None

    def as_source(self) -> dict[str, Any]:
        return {
            "source_type": self.source_type,
            "source_id": self.source_id,
            "similarity": round(self.similarity, 4),
        }


@dataclass(frozen=True)
class ComposedPrompt:
    system_text: str
    user_text: str
    max_tokens: int
    temperature: float
    top_p: float


@dataclass(frozen=True)
class GenerationResult:
    """Raw text plus usage returned by one provider call."""

    text: str
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    duration_ms: int = 0
