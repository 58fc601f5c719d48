"""Company research with a long-lived, embedding-indexed result cache.

A fresh record in the research cache short-circuits generation entirely.
Otherwise the standard pipeline runs and a clean result (not a placeholder,
not flagged for review) is written back together with an embedding of text
rendered from the same data, so it can be found again by similarity search.
"""

from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

from pydantic import BaseModel

from docgen.core.cache import EmbeddingCache
from docgen.core.clock import Clock, SystemClock
from docgen.core.embeddings import embed_text_cached
from docgen.core.errors import InputValidationError
from docgen.core.logging import get_logger
from docgen.core.research_cache import ResearchCache, normalize_subject_key
from docgen.core.schemas_agent import AgentRequest, AgentResponse
from docgen.core.schemas_tasks import CompanyResearchOutput
from docgen.core.task_registry import TaskKind
from docgen.core.validation import validate, validate_output

logger = get_logger(__name__)

TASK_KIND = TaskKind.COMPANY_RESEARCH.value
CACHED_CONFIDENCE = 0.85
PRODUCED_BY_CACHE = "cache:research"

RunPipeline = Callable[[AgentRequest], Awaitable[AgentResponse]]
EmbedFn = Callable[[list[str]], Awaitable[list[list[float]]]]


def render_research_text(data: dict[str, Any]) -> str:
    """Flatten research data into the text that gets embedded."""
    parts = [
        data.get("company_name"),
        data.get("industry"),
        data.get("location"),
        data.get("description"),
    ]
    if data.get("competitors"):
        parts.append("Competitors: " + ", ".join(data["competitors"]))
    if data.get("key_executives"):
        parts.append(
            "Executives: " + ", ".join(f"{e.get('name')} ({e.get('title')})" for e in data["key_executives"])
        )
    return "\n".join(str(p) for p in parts if p)


def is_persistable(response: AgentResponse) -> bool:
    """Only clean provider output is worth keeping for a month."""
    return (
        response.success
        and not response.needs_review
        and response.produced_by.split(":", 1)[0] in ("primary", "secondary")
        and isinstance(response.output, CompanyResearchOutput)
    )


class CompanyResearchFlow:
    def __init__(
        self,
        research_cache: ResearchCache,
        run_pipeline: RunPipeline,
        embed_fn: EmbedFn | None = None,
        embedding_cache: EmbeddingCache | None = None,
        clock: Clock | None = None,
    ):
        self.research_cache = research_cache
        self.run_pipeline = run_pipeline
        self.embed_fn = embed_fn
        self.embedding_cache = embedding_cache
        self._clock = clock or SystemClock()

    async def research(
        self,
        subject_key: str,
        task_input: BaseModel | dict[str, Any],
        request_id: str | None = None,
    ) -> AgentResponse:
        """
        Research a company, serving from the research cache while it is fresh.

        Args:
            subject_key: Company identifier (normalized before lookup)
            task_input: Raw or validated company-research input
            request_id: Correlation id for logs

        Returns:
            AgentResponse from the cache, the provider chain or the fallback

        Raises:
            InputValidationError: If the input does not match the company-research shape
        """
        if not isinstance(task_input, BaseModel):
            result = validate(TASK_KIND, task_input)
            if not result.ok:
                raise InputValidationError(TASK_KIND, result.errors)
            task_input = result.value

        key = normalize_subject_key(subject_key)
        request = AgentRequest(task_kind=TASK_KIND, input=task_input, timestamp=self._clock.now())
        if request_id:
            request = replace(request, request_id=request_id)

        cached = await self._from_cache(key, request)
        if cached is not None:
            return cached

        response = await self.run_pipeline(request)
        if is_persistable(response):
            await self._persist(key, response)
        return response

    async def _from_cache(self, key: str, request: AgentRequest) -> AgentResponse | None:
        record = await self.research_cache.get_fresh(key)
        if record is None:
            return None

        result = validate_output(TASK_KIND, record.research_data)
        if not result.ok:
            logger.warning(f"Cached research for '{key}' no longer matches the output shape, regenerating")
            return None

        logger.info(f"Research cache hit for '{key}'", extra={"request_id": request.request_id})
        return AgentResponse(
            task_kind=TASK_KIND,
            output=result.value,
            success=True,
            confidence=CACHED_CONFIDENCE,
            needs_review=False,
            timestamp=request.timestamp,
            produced_by=PRODUCED_BY_CACHE,
            warnings=(f"Served from research cache (updated {record.updated_at.date().isoformat()})",),
            request_id=request.request_id,
        )

    async def _persist(self, key: str, response: AgentResponse) -> None:
        data = response.output.model_dump(mode="json")

        embedding = None
        if self.embed_fn is not None:
            try:
                embedding = await embed_text_cached(render_research_text(data), self.embedding_cache, self.embed_fn)
            except Exception as e:
                logger.warning(f"Embedding research for '{key}' failed, storing without embedding: {e}")

        await self.research_cache.upsert(key, data, embedding=embedding)
