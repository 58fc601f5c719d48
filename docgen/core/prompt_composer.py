"""Prompt composition: task descriptor + validated input (+ context) -> prompt.

Pure functions only. Sampling parameters come from a fixed table keyed by
the task's determinism class.
"""

import json
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from docgen.core.schemas_agent import ComposedPrompt, RetrievalResult
from docgen.core.task_registry import DeterminismClass, TaskDescriptor

# determinism class -> (temperature, top_p)
SAMPLING_POLICY: MappingProxyType[DeterminismClass, tuple[float, float]] = MappingProxyType(
    {
        DeterminismClass.FACTUAL: (0.0, 1.0),
        DeterminismClass.STRUCTURED: (0.0, 1.0),
        DeterminismClass.BALANCED: (0.3, 0.9),
        DeterminismClass.CREATIVE: (0.6, 0.95),
    }
)

CHARS_PER_TOKEN = 4
_MIN_TRUNCATED_SNIPPET = 40

CONTEXT_OPEN = "=== CONTEXT ==="
CONTEXT_CLOSE = "=== END CONTEXT ==="


def _resolve(node: dict[str, Any], defs: dict[str, Any]) -> dict[str, Any]:
    ref = node.get("$ref")
    if ref:
        return defs.get(ref.rsplit("/", 1)[-1], {})
    return node


def _skeleton(node: dict[str, Any], defs: dict[str, Any]) -> Any:
    node = _resolve(node, defs)

    if "anyOf" in node:
        options = [o for o in node["anyOf"] if o.get("type") != "null"]
        return _skeleton(options[0], defs) if options else None

    if "enum" in node:
        return " | ".join(str(v) for v in node["enum"])
    if "const" in node:
        return node["const"]

    kind = node.get("type")
    if kind == "object" or "properties" in node:
        return {name: _skeleton(prop, defs) for name, prop in node.get("properties", {}).items()}
    if kind == "array":
        return [_skeleton(node.get("items", {}), defs)]
    if kind == "integer":
        return 0
    if kind == "number":
        return 0.0
    if kind == "boolean":
        return False
    return "string"


def output_skeleton(model: type[BaseModel]) -> dict[str, Any]:
    """JSON skeleton of an output model, suitable for showing to a model."""
    schema = model.model_json_schema()
    return _skeleton(schema, schema.get("$defs", {}))


def _system_text(descriptor: TaskDescriptor) -> str:
    schema = descriptor.output_model.model_json_schema()
    required = schema.get("required", [])
    skeleton = json.dumps(output_skeleton(descriptor.output_model), indent=2)
    return "\n".join(
        [
            descriptor.system_prompt,
            "",
            "Respond with a single JSON object matching this shape:",
            skeleton,
            "",
            f"Required fields: {', '.join(required)}.",
            "Use snake_case keys exactly as shown. Respond with JSON only, no prose or code fences.",
        ]
    )


def render_context(results: list[RetrievalResult], token_budget: int) -> str:
    """
    Render retrieved sources as a delimited CONTEXT block.

    Highest-similarity sources go first; the block body never exceeds
    ``token_budget * CHARS_PER_TOKEN`` characters.
    """
    budget = token_budget * CHARS_PER_TOKEN
    ordered = sorted(results, key=lambda r: r.similarity, reverse=True)

    entries: list[str] = []
    used = 0
    for i, result in enumerate(ordered, start=1):
        header = f"[{i}] ({result.source_type} {result.source_id}, similarity {result.similarity:.2f})\n"
        entry = header + result.snippet.strip()
        separator = 1 if entries else 0
        remaining = budget - used - separator
        if len(entry) <= remaining:
            entries.append(entry)
            used += len(entry) + separator
            continue
        if remaining - len(header) >= _MIN_TRUNCATED_SNIPPET:
            entries.append(entry[: remaining - 3] + "...")
        break

    if not entries:
        return ""
    return "\n".join([CONTEXT_OPEN, "\n".join(entries), CONTEXT_CLOSE])


def compose(
    descriptor: TaskDescriptor,
    task_input: BaseModel,
    retrieved_context: list[RetrievalResult] | None = None,
) -> ComposedPrompt:
    """
    Build the provider-neutral prompt for one task run.

    Args:
        descriptor: Task descriptor from the registry
        task_input: Validated input model
        retrieved_context: Optional retrieval results to ground the answer

    Returns:
        ComposedPrompt with sampling parameters from SAMPLING_POLICY
    """
    temperature, top_p = SAMPLING_POLICY[descriptor.determinism]
    user_text = descriptor.render_user_prompt(task_input)

    if retrieved_context:
        block = render_context(retrieved_context, descriptor.context_token_budget)
        if block:
            user_text = "\n\n".join(
                [user_text, block, "Use the context above where it is relevant; do not invent facts beyond it."]
            )

    return ComposedPrompt(
        system_text=_system_text(descriptor),
        user_text=user_text,
        max_tokens=descriptor.max_tokens,
        temperature=temperature,
        top_p=top_p,
    )
