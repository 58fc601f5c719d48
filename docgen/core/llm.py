"""Helpers for turning raw model text into JSON."""

import json
import re
from typing import Any

_decoder = json.JSONDecoder()


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    # Extract JSON from markdown code fences
    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    # Fallback: strip leading/trailing fences without regex
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def find_json_payload(raw_output: str) -> dict[str, Any] | None:
    """
    Locate the largest well-formed JSON object in model output.

    Tries the fence-stripped text as a whole first, then scans the raw text
    for embedded objects (models like to wrap JSON in prose).

    Args:
        raw_output: Raw string from the model

    Returns:
        The parsed object, or None when no JSON object is present
    """
    if not raw_output:
        return None

    cleaned = _strip_llm_fences(raw_output)
    try:
        parsed = json.loads(cleaned)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    best: dict[str, Any] | None = None
    best_len = 0
    i = raw_output.find("{")
    while i != -1:
        try:
            obj, end = _decoder.raw_decode(raw_output, i)
        except json.JSONDecodeError:
            i = raw_output.find("{", i + 1)
            continue
        if isinstance(obj, dict) and end - i > best_len:
            best, best_len = obj, end - i
        # Anything starting inside this object is nested and therefore smaller
        i = raw_output.find("{", end)
    return best

