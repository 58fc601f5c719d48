"""Response normalization: raw provider text -> task output model.

Three outcomes, in order of preference:
1. clean: the largest JSON object in the text validates as-is
2. repaired: keys are aliased to the output shape and fields that are still
   missing or invalid are filled from the synthetic builder for the same
   input; flagged for review
3. textual: nothing usable was recovered; the raw text is kept as an
   UnstructuredOutput and flagged for review

Parse failures never escape this module.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from docgen.core.errors import ParseError
from docgen.core.llm import find_json_payload
from docgen.core.logging import get_logger
from docgen.core.schemas_tasks import UnstructuredOutput
from docgen.core.synthetic import synthesize
from docgen.core.task_registry import TaskKind, get_task_descriptor
from docgen.core.validation import validate_output

logger = get_logger(__name__)

CLEAN_CONFIDENCE = 0.85
GROUNDED_BONUS = 0.05
REPAIRED_CONFIDENCE = 0.6
TEXTUAL_CONFIDENCE = 0.3

_SUMMARY_CHARS = 200

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")

# Per-task top-level key synonyms (applied after snake_case conversion)
KEY_SYNONYMS: MappingProxyType[str, dict[str, str]] = MappingProxyType(
    {
        TaskKind.COMPANY_RESEARCH.value: {
            "name": "company_name",
            "company": "company_name",
            "summary": "description",
            "overview": "description",
            "url": "website",
            "executives": "key_executives",
            "news": "recent_news",
        },
        TaskKind.GENERATE_SOP.value: {
            "steps": "procedure",
            "procedures": "procedure",
            "roles": "responsibilities",
        },
        TaskKind.COMPOSE_EMAIL.value: {
            "content": "body",
            "message": "body",
            "email_body": "body",
            "text": "body",
            "improvements": "suggested_improvements",
        },
        TaskKind.EXCEL_HELPER.value: {
            "solution": "answer",
            "explanation": "answer",
            "response": "answer",
            "alternatives": "alternative_solutions",
            "instructions": "steps",
        },
        TaskKind.FEASIBILITY_CHECK.value: {
            "feasibility_score": "score",
            "overall_score": "score",
            "overall": "overall_feasibility",
            "technical": "technical_feasibility",
            "financial": "financial_feasibility",
            "resource": "resource_feasibility",
        },
        TaskKind.DEPLOYMENT_PLAN.value: {
            "strategy": "deployment_strategy",
            "communication": "communication_plan",
        },
        TaskKind.USPS_BATTLECARD.value: {
            "differentiators": "key_differentiators",
            "advantages": "competitive_advantages",
            "actions": "recommended_actions",
        },
        TaskKind.DISBANDMENT_PLAN.value: {
            "checklist": "final_checklist",
            "legal": "legal_considerations",
            "communication": "communication_plan",
        },
        TaskKind.SLIDE_TEMPLATE.value: {
            "presentation_title": "title",
            "tips": "presentation_tips",
            "duration": "estimated_duration",
        },
    }
)


@dataclass(frozen=True)
class NormalizedOutput:
    output: BaseModel
    confidence: float
    needs_review: bool
    warnings: tuple[str, ...] = ()
    structured: bool = True


def camel_to_snake(key: str) -> str:
    key = _ACRONYM_BOUNDARY.sub(r"\1_\2", key)
    return _CAMEL_BOUNDARY.sub(r"\1_\2", key).replace("-", "_").lower()


def _snake_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {camel_to_snake(str(k)): _snake_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_snake_keys(v) for v in value]
    return value


def alias_keys(task_kind: str, payload: dict[str, Any]) -> dict[str, Any]:
    """snake_case every key, then map per-task synonyms onto canonical field names."""
    aliased = _snake_keys(payload)
    for synonym, canonical in KEY_SYNONYMS.get(task_kind, {}).items():
        if synonym in aliased and canonical not in aliased:
            aliased[canonical] = aliased.pop(synonym)
    return aliased


def _derive_fields(task_kind: str, payload: dict[str, Any]) -> None:
    """Fill fields that are computable from the rest of the payload."""
    if task_kind == TaskKind.COMPOSE_EMAIL.value:
        body = payload.get("body")
        if isinstance(body, str) and body.strip() and not isinstance(payload.get("word_count"), int):
            payload["word_count"] = len(body.split())


def _textual(raw_text: str, title: str, reason: str) -> NormalizedOutput:
    content = raw_text.strip()
    summary = content[:_SUMMARY_CHARS] + ("..." if len(content) > _SUMMARY_CHARS else "")
    return NormalizedOutput(
        output=UnstructuredOutput(title=title, content=content, summary=summary),
        confidence=TEXTUAL_CONFIDENCE,
        needs_review=True,
        warnings=(f"Unstructured response: {reason}",),
        structured=False,
    )


def normalize(
    task_kind: str,
    raw_text: str,
    task_input: BaseModel,
    now: datetime,
    grounded: bool = False,
) -> NormalizedOutput:
    """
    Turn provider text into the task's output model.

    Args:
        task_kind: Registered task kind
        raw_text: Text returned by the provider
        task_input: Validated request input (source for synthesized fields)
        now: Timestamp used for synthesized date fields
        grounded: Whether retrieved sources were included in the prompt

    Returns:
        NormalizedOutput; never raises for malformed text
    """
    descriptor = get_task_descriptor(task_kind)
    title = f"{descriptor.name} (unstructured)"

    payload = find_json_payload(raw_text)
    if payload is None:
        logger.warning(str(ParseError(f"{task_kind}: no JSON object in provider response")))
        return _textual(raw_text, title, "no JSON object found")

    result = validate_output(task_kind, payload)
    if result.ok:
        confidence = CLEAN_CONFIDENCE + (GROUNDED_BONUS if grounded else 0.0)
        return NormalizedOutput(output=result.value, confidence=round(confidence, 2), needs_review=False)

    original_errors = [e.path for e in result.errors]
    aliased = alias_keys(task_kind, payload)
    _derive_fields(task_kind, aliased)
    result = validate_output(task_kind, aliased)

    synthesized: list[str] = []
    if not result.ok:
        placeholder = synthesize(task_kind, task_input, now).model_dump()
        for field_name in sorted({e.path.split(".")[0] for e in result.errors if e.path}):
            synthesized.append(field_name)
            if placeholder.get(field_name) is None:
                aliased.pop(field_name, None)
            else:
                aliased[field_name] = placeholder[field_name]
        result = validate_output(task_kind, aliased)

    if not result.ok:
        logger.warning(
            str(ParseError(f"{task_kind}: repair failed ({', '.join(e.path for e in result.errors)})"))
        )
        return _textual(raw_text, title, "output did not match the expected shape")

    warnings = [f"Output repaired: provider response did not match the expected shape ({', '.join(original_errors)})"]
    if synthesized:
        warnings.append(f"Fields filled from request input: {', '.join(synthesized)}")
    logger.info(f"Repaired {task_kind} output", extra={"task_kind": task_kind})

    return NormalizedOutput(
        output=result.value,
        confidence=REPAIRED_CONFIDENCE,
        needs_review=True,
        warnings=tuple(warnings),
    )
