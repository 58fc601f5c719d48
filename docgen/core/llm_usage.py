"""LLM token usage tracking, in-process totals plus an optional llm_usage_log sink."""

import asyncio
import logging
import math
import threading
from collections.abc import Callable
from typing import Any

from docgen.core.schemas_agent import GenerationResult
from docgen.db.supabase_client import get_supabase

logger = logging.getLogger(__name__)

WORKFLOW = "docgen"

# Pricing per 1M tokens: (input, output)
MODEL_PRICING: dict[str, tuple[float, float]] = {
    # Anthropic
    "claude-opus-4-5-20251101": (15.0, 75.0),
    "claude-sonnet-4-5-20250929": (3.0, 15.0),
    "claude-sonnet-4-20250514": (3.0, 15.0),
    "claude-haiku-4-5-20251001": (0.80, 4.0),
    "claude-3-5-haiku-20241022": (0.80, 4.0),
    # OpenAI
    "gpt-4o": (2.50, 10.0),
    "gpt-4.1-mini": (0.40, 1.60),
    "gpt-4o-mini": (0.15, 0.60),
}


def estimate_tokens(text: str) -> int:
    """Rough token count (~4 characters per token) for providers that report none."""
    return math.ceil(len(text) / 4) if text else 0


def _estimate_cost(model: str, tokens_input: int, tokens_output: int) -> float:
    """Estimate cost in USD based on model pricing."""
    pricing = MODEL_PRICING.get(model)
    if not pricing:
        # Try prefix match for model variants
        for key, val in MODEL_PRICING.items():
            if model.startswith(key.rsplit("-", 1)[0]):
                pricing = val
                break
    if not pricing:
        logger.warning(f"No pricing found for model '{model}', using $0")
        return 0.0

    input_rate, output_rate = pricing
    cost = (tokens_input * input_rate / 1_000_000) + (tokens_output * output_rate / 1_000_000)
    return round(cost, 6)


def log_llm_usage(
    task_kind: str,
    model: str,
    provider: str,
    tokens_input: int,
    tokens_output: int,
    duration_ms: int = 0,
    request_id: str | None = None,
) -> None:
    """Log an LLM call to the usage tracking table. Fire-and-forget."""
    try:
        estimated_cost = _estimate_cost(model, tokens_input, tokens_output)

        row = {
            "workflow": WORKFLOW,
            "chain": task_kind,
            "model": model,
            "provider": provider,
            "tokens_input": tokens_input,
            "tokens_output": tokens_output,
            "estimated_cost_usd": estimated_cost,
            "duration_ms": duration_ms,
        }
        if request_id:
            row["job_id"] = request_id

        client = get_supabase()
        client.table("llm_usage_log").insert(row).execute()

        logger.debug(
            f"LLM usage logged: {WORKFLOW}/{task_kind} "
            f"model={model} tokens={tokens_input}+{tokens_output} "
            f"cost=${estimated_cost:.4f}"
        )
    except Exception as e:
        # Never fail the main operation due to logging
        logger.error(f"Failed to log LLM usage: {e}")


UsageSink = Callable[..., None]


class UsageTracker:
    """Per-task token counters for every provider call."""

    def __init__(self, sink: UsageSink | None = None):
        self.sink = sink
        self._lock = threading.Lock()
        self._by_task: dict[str, dict[str, Any]] = {}

    async def record(self, task_kind: str, result: GenerationResult, request_id: str | None = None) -> None:
        tokens_input = result.input_tokens
        tokens_output = result.output_tokens or estimate_tokens(result.text)
        cost = _estimate_cost(result.model, tokens_input, tokens_output)

        with self._lock:
            entry = self._by_task.setdefault(
                task_kind,
                {"calls": 0, "input_tokens": 0, "output_tokens": 0, "estimated_cost_usd": 0.0},
            )
            entry["calls"] += 1
            entry["input_tokens"] += tokens_input
            entry["output_tokens"] += tokens_output
            entry["estimated_cost_usd"] = round(entry["estimated_cost_usd"] + cost, 6)

        if self.sink is None:
            return
        try:
            await asyncio.to_thread(
                self.sink,
                task_kind=task_kind,
                model=result.model,
                provider=result.provider,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
                duration_ms=result.duration_ms,
                request_id=request_id,
            )
        except Exception as e:
            logger.error(f"Usage sink failed for {task_kind}: {e}")

    def stats(self) -> dict[str, Any]:
        with self._lock:
            by_task = {task: dict(entry) for task, entry in self._by_task.items()}
        total = {
            "calls": sum(e["calls"] for e in by_task.values()),
            "input_tokens": sum(e["input_tokens"] for e in by_task.values()),
            "output_tokens": sum(e["output_tokens"] for e in by_task.values()),
            "estimated_cost_usd": round(sum(e["estimated_cost_usd"] for e in by_task.values()), 6),
        }
        total["tokens"] = total["input_tokens"] + total["output_tokens"]
        return {"total": total, "by_task": by_task}
