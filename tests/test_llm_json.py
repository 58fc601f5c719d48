"""Tests for JSON extraction from model output."""

import pytest

from docgen.core.llm import _strip_llm_fences, find_json_payload
from tests.fakes.payloads import EXCEL_OUTPUT, as_text


def test_strip_fences():
    assert _strip_llm_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert _strip_llm_fences('```\n{"a": 1}\n```') == '{"a": 1}'
    assert _strip_llm_fences('  {"a": 1}  ') == '{"a": 1}'


@pytest.mark.parametrize("wrap", ["", "fence", "prose"])
def test_find_payload_in_common_wrappings(wrap):
    assert find_json_payload(as_text(EXCEL_OUTPUT, wrap)) == EXCEL_OUTPUT


def test_largest_object_wins():
    raw = 'Note {"a": 1} and the answer {"answer": "x", "steps": ["a", "b"], "tips": []} done'

    assert find_json_payload(raw) == {"answer": "x", "steps": ["a", "b"], "tips": []}


def test_object_inside_array():
    assert find_json_payload('[{"answer": "x"}]') == {"answer": "x"}


def test_malformed_object_is_skipped():
    raw = 'Broken {"answer": "x", } then {"answer": "y"}'

    assert find_json_payload(raw) == {"answer": "y"}


@pytest.mark.parametrize("raw", ["", "No JSON here at all.", "{not json}", "[1, 2, 3]"])
def test_no_object_found(raw):
    assert find_json_payload(raw) is None
