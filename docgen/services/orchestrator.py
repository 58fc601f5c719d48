"""Request orchestration: validate -> cache -> retrieve -> compose -> dispatch -> cache.

One Orchestrator instance is shared by the whole process. Concurrent identical
requests (same task kind and canonical input) are coalesced onto a single
pipeline run. That run lives in its own task and callers await it through
``asyncio.shield``, so a cancelled caller stops waiting while the run still
completes and populates the response cache.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any

from docgen.chains.company_research import CompanyResearchFlow, EmbedFn
from docgen.core.cache import EmbeddingCache, ResponseCache, make_cache_key
from docgen.core.clock import Clock, SystemClock
from docgen.core.errors import InputValidationError
from docgen.core.llm_usage import UsageTracker
from docgen.core.logging import get_logger, log_with_context
from docgen.core.prompt_composer import compose
from docgen.core.providers import GenerationProvider
from docgen.core.research_cache import ResearchCache, normalize_subject_key
from docgen.core.retrieval import RetrievalEngine, RetrievalOptions
from docgen.core.schemas_agent import AgentRequest, AgentResponse
from docgen.core.task_registry import TaskKind, get_task_descriptor
from docgen.core.validation import validate
from docgen.graphs.dispatch_graph import PRODUCED_BY_FALLBACK, DispatchState, run_dispatch

logger = get_logger(__name__)


class Orchestrator:
    def __init__(
        self,
        providers: list[GenerationProvider],
        response_cache: ResponseCache,
        research_cache: ResearchCache | None = None,
        retrieval: RetrievalEngine | None = None,
        embedding_cache: EmbeddingCache | None = None,
        usage: UsageTracker | None = None,
        clock: Clock | None = None,
        retrieval_options: RetrievalOptions | None = None,
        embed_fn: EmbedFn | None = None,
    ):
        self.providers = list(providers)
        self.response_cache = response_cache
        self.research_cache = research_cache
        self.retrieval = retrieval
        self.embedding_cache = embedding_cache
        self.usage = usage or UsageTracker()
        self.clock = clock or SystemClock()
        self.retrieval_options = retrieval_options
        self._inflight: dict[str, asyncio.Task] = {}

        self.company_research: CompanyResearchFlow | None = None
        if research_cache is not None:
            self.company_research = CompanyResearchFlow(
                research_cache,
                self.run,
                embed_fn=embed_fn,
                embedding_cache=embedding_cache,
                clock=self.clock,
            )

    # =========================================================================
    # Entry points
    # =========================================================================

    async def execute(self, task_kind: str, raw_input: Any) -> AgentResponse:
        """
        Validate raw input and run a task.

        Args:
            task_kind: Registered task kind (e.g. "excel-helper")
            raw_input: Untrusted request input

        Returns:
            AgentResponse (always success=True once input is valid)

        Raises:
            InputValidationError: Unknown task kind or input not matching the task's shape
        """
        get_task_descriptor(task_kind)
        result = validate(task_kind, raw_input)
        if not result.ok:
            log_with_context(
                logger,
                logging.INFO,
                "Rejected request with invalid input",
                task_kind=task_kind,
                errors=len(result.errors),
            )
            raise InputValidationError(task_kind, result.errors)

        request = AgentRequest(task_kind=task_kind, input=result.value, timestamp=self.clock.now())

        if task_kind == TaskKind.COMPANY_RESEARCH.value and self.company_research is not None:
            return await self.company_research.research(
                normalize_subject_key(result.value.company_name),
                result.value,
                request_id=request.request_id,
            )
        return await self.run(request)

    async def research(self, subject_key: str, raw_input: Any) -> AgentResponse:
        """Company research entry point keyed by subject."""
        if self.company_research is None:
            return await self.execute(TaskKind.COMPANY_RESEARCH.value, raw_input)
        return await self.company_research.research(subject_key, raw_input)

    async def run(self, request: AgentRequest) -> AgentResponse:
        """Run an already-validated request through the cached, coalesced pipeline."""
        key = make_cache_key(request.task_kind, request.input)

        cached = self.response_cache.get(key)
        if cached is not None:
            log_with_context(
                logger,
                logging.DEBUG,
                "Response cache hit",
                request_id=request.request_id,
                task_kind=request.task_kind,
            )
            return replace(cached, request_id=request.request_id)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._pipeline(key, request))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            log_with_context(
                logger,
                logging.DEBUG,
                "Joined in-flight request",
                request_id=request.request_id,
                task_kind=request.task_kind,
            )

        response = await asyncio.shield(task)
        # Joined callers keep their own request id
        return replace(response, request_id=request.request_id)

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def _pipeline(self, key: str, request: AgentRequest) -> AgentResponse:
        descriptor = get_task_descriptor(request.task_kind)
        log_with_context(
            logger,
            logging.INFO,
            "Running task",
            request_id=request.request_id,
            task_kind=request.task_kind,
        )

        sources = []
        if descriptor.needs_retrieval and self.retrieval is not None and descriptor.retrieval_query:
            sources = await self.retrieval.retrieve(
                descriptor.retrieval_query(request.input),
                self.retrieval_options,
            )

        prompt = compose(descriptor, request.input, sources)
        response = await run_dispatch(
            DispatchState(
                task_kind=request.task_kind,
                task_input=request.input,
                prompt=prompt,
                providers=self.providers,
                now=request.timestamp,
                request_id=request.request_id,
                grounded=bool(sources),
                sources=[s.as_source() for s in sources],
                usage=self.usage,
            )
        )

        # Synthetic placeholders are never cached
        if response.produced_by != PRODUCED_BY_FALLBACK:
            self.response_cache.set(key, response)

        log_with_context(
            logger,
            logging.INFO,
            "Task complete",
            request_id=request.request_id,
            task_kind=request.task_kind,
            produced_by=response.produced_by,
            confidence=response.confidence,
            needs_review=response.needs_review,
        )
        return response

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Pipeline for {key} failed: {task.exception()}")

    # =========================================================================
    # Maintenance
    # =========================================================================

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def cache_stats(self) -> dict[str, Any]:
        stats: dict[str, Any] = {"response": self.response_cache.stats().to_dict()}
        if self.embedding_cache is not None:
            stats["embedding"] = self.embedding_cache.stats().to_dict()
        if self.research_cache is not None:
            stats["research"] = self.research_cache.stats()
        stats["inflight"] = self.inflight_count
        return stats

    def cleanup_caches(self) -> dict[str, int]:
        """Sweep expired entries from the in-process tiers."""
        removed = {"response": self.response_cache.cleanup()}
        if self.embedding_cache is not None:
            removed["embedding"] = self.embedding_cache.cleanup()
        return removed

    def clear_caches(self) -> None:
        self.response_cache.clear()
        if self.embedding_cache is not None:
            self.embedding_cache.clear()
        logger.info("Cleared in-process caches")

    def health(self) -> dict[str, Any]:
        return {
            "providers": [{"name": p.name, "model": p.model} for p in self.providers],
            "fallback_only": not self.providers,
            "retrieval_enabled": self.retrieval is not None,
            "research_cache_enabled": self.research_cache is not None,
        }

    def usage_stats(self) -> dict[str, Any]:
        return self.usage.stats()

