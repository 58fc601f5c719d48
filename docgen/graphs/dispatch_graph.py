"""Provider dispatch LangGraph.

Walks the ordered provider chain once, normalizes the first successful
response and otherwise falls back to a synthetic placeholder:

    start -> try_provider (loops over the chain) -> normalize -> END
                          \\-> fallback -> END

Phases: NOT_STARTED -> TRYING_PRIMARY -> TRYING_SECONDARY -> FALLBACK -> DONE.
Every path ends in an AgentResponse; the graph never raises for provider or
parse failures.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from langgraph.graph import END, StateGraph
from pydantic import BaseModel

from docgen.core.errors import ProviderError, ProviderErrorKind
from docgen.core.llm_usage import UsageTracker
from docgen.core.logging import get_logger, log_with_context
from docgen.core.normalizer import normalize
from docgen.core.providers import GenerationProvider
from docgen.core.schemas_agent import AgentResponse, ComposedPrompt, GenerationResult
from docgen.core.synthetic import PLACEHOLDER_WARNING, synthesize

logger = get_logger(__name__)

SYNTHETIC_CONFIDENCE = 0.4
PRODUCED_BY_FALLBACK = "fallback:synthetic"


class DispatchPhase(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    TRYING_PRIMARY = "TRYING_PRIMARY"
    TRYING_SECONDARY = "TRYING_SECONDARY"
    FALLBACK = "FALLBACK"
    DONE = "DONE"


def _phase_for(index: int) -> DispatchPhase:
    return DispatchPhase.TRYING_PRIMARY if index == 0 else DispatchPhase.TRYING_SECONDARY


def produced_by_label(index: int, provider_name: str) -> str:
    return f"{'primary' if index == 0 else 'secondary'}:{provider_name}"


@dataclass
class DispatchState:
    """State for one pass through the provider chain."""

    task_kind: str
    task_input: BaseModel
    prompt: ComposedPrompt
    providers: list[GenerationProvider]
    now: datetime
    request_id: str | None = None
    grounded: bool = False
    sources: list[dict[str, Any]] = field(default_factory=list)
    usage: UsageTracker | None = None

    phase: str = DispatchPhase.NOT_STARTED.value
    index: int = 0
    generation: GenerationResult | None = None
    failures: list[dict[str, str]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    response: AgentResponse | None = None


async def start(state: DispatchState) -> dict[str, Any]:
    if not state.providers:
        return {"phase": DispatchPhase.FALLBACK.value}
    return {"phase": DispatchPhase.TRYING_PRIMARY.value}


def route_start(state: DispatchState) -> str:
    return "fallback" if state.phase == DispatchPhase.FALLBACK.value else "try_provider"


async def try_provider(state: DispatchState) -> dict[str, Any]:
    """Call the provider at the current index exactly once."""
    provider = state.providers[state.index]
    prompt = state.prompt

    try:
        result = await provider.generate(
            prompt.system_text,
            prompt.user_text,
            prompt.max_tokens,
            prompt.temperature,
            prompt.top_p,
        )
    except Exception as e:
        kind = e.kind if isinstance(e, ProviderError) else ProviderErrorKind.UNKNOWN
        log_with_context(
            logger,
            logging.WARNING,
            f"Provider {provider.name} failed: {kind.value}",
            request_id=state.request_id,
            task_kind=state.task_kind,
            provider=provider.name,
            error=str(e),
        )
        next_index = state.index + 1
        next_phase = (
            _phase_for(next_index) if next_index < len(state.providers) else DispatchPhase.FALLBACK
        )
        return {
            "index": next_index,
            "phase": next_phase.value,
            "failures": state.failures + [{"provider": provider.name, "kind": kind.value}],
            "warnings": state.warnings + [f"Provider {provider.name} failed ({kind.value})"],
        }

    return {"generation": result, "phase": _phase_for(state.index).value}


def route_after_try(state: DispatchState) -> str:
    if state.generation is not None:
        return "normalize"
    if state.index < len(state.providers):
        return "try_provider"
    return "fallback"


async def normalize_response(state: DispatchState) -> dict[str, Any]:
    """Record usage, then turn the provider text into the task's output."""
    generation = state.generation
    provider = state.providers[state.index]

    if state.usage is not None:
        await state.usage.record(state.task_kind, generation, request_id=state.request_id)

    normalized = normalize(
        state.task_kind,
        generation.text,
        state.task_input,
        state.now,
        grounded=state.grounded,
    )

    response = AgentResponse(
        task_kind=state.task_kind,
        output=normalized.output,
        success=True,
        confidence=normalized.confidence,
        needs_review=normalized.needs_review,
        timestamp=state.now,
        produced_by=produced_by_label(state.index, provider.name),
        warnings=(*state.warnings, f"Generated by {provider.name} ({generation.model})", *normalized.warnings),
        sources=tuple(state.sources),
        request_id=state.request_id,
    )
    return {"response": response, "phase": DispatchPhase.DONE.value}


async def fallback(state: DispatchState) -> dict[str, Any]:
    """Every provider failed or none is configured: synthesize a placeholder."""
    reason = (
        "All generation providers failed"
        if state.failures
        else "No generation providers are configured"
    )
    log_with_context(
        logger,
        logging.WARNING,
        f"{reason}; returning synthetic output",
        request_id=state.request_id,
        task_kind=state.task_kind,
        failures=len(state.failures),
    )

    response = AgentResponse(
        task_kind=state.task_kind,
        output=synthesize(state.task_kind, state.task_input, state.now),
        success=True,
        confidence=SYNTHETIC_CONFIDENCE,
        needs_review=True,
        timestamp=state.now,
        produced_by=PRODUCED_BY_FALLBACK,
        warnings=tuple(state.warnings) + (reason, PLACEHOLDER_WARNING),
        sources=(),
        request_id=state.request_id,
    )
    return {"response": response, "phase": DispatchPhase.DONE.value}


def _build_graph() -> StateGraph:
    """Build the provider dispatch graph."""
    graph = StateGraph(DispatchState)

    graph.add_node("start", start)
    graph.add_node("try_provider", try_provider)
    graph.add_node("normalize", normalize_response)
    graph.add_node("fallback", fallback)

    graph.set_entry_point("start")
    graph.add_conditional_edges("start", route_start)
    graph.add_conditional_edges("try_provider", route_after_try)
    graph.add_edge("normalize", END)
    graph.add_edge("fallback", END)

    return graph


# Graph instance
dispatch_graph = _build_graph().compile()


async def run_dispatch(state: DispatchState) -> AgentResponse:
    """
    Run one request through the provider chain.

    Args:
        state: Initial dispatch state (prompt, providers, validated input)

    Returns:
        Terminal AgentResponse (provider output, repaired, textual or synthetic)
    """
    final = await dispatch_graph.ainvoke(state)
    return final["response"]
