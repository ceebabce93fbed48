"""Person-name reconciliation between two source systems.

Two greedy passes: exact match on normalized names, then a fuzzy pass that
accepts a first/last token swap or a Levenshtein distance of at most two.
Each name from ``list_b`` is consumed once, even when it is listed twice. The result depends on list
order and is not a globally optimal assignment.
"""

from __future__ import annotations

import re
from typing import Sequence

from rapidfuzz.distance import Levenshtein

MAX_EDIT_DISTANCE = 2

_WHITESPACE = re.compile(r"\s+")
_TOKEN_SPLIT = re.compile(r"[\s,]+")


def normalize_name(name: str) -> str:
    return _WHITESPACE.sub(" ", name.strip().lower())


def levenshtein(a: str, b: str) -> int:
    """Unit-cost insert/delete/substitute edit distance."""

    return Levenshtein.distance(a, b)


def _tokens(normalized: str) -> list[str]:
    return [token for token in _TOKEN_SPLIT.split(normalized) if token]


def _swapped_or_equal(a_tokens: list[str], b_tokens: list[str]) -> bool:
    if len(a_tokens) < 2 or len(b_tokens) < 2:
        return False
    a_first, a_last = a_tokens[0], a_tokens[-1]
    b_first, b_last = b_tokens[0], b_tokens[-1]
    return (a_first, a_last) == (b_first, b_last) or (a_first, a_last) == (b_last, b_first)


def reconcile_names(list_a: Sequence[str], list_b: Sequence[str]) -> dict[str, str]:
    """Map names in ``list_a`` to names in ``list_b``; unmatched names are absent."""

    candidates = [(name, normalize_name(name)) for name in list_b]
    used: set[str] = set()
    result: dict[str, str] = {}

    for a_name in list_a:
        if a_name in result:
            continue
        normalized = normalize_name(a_name)
        for b_name, b_normalized in candidates:
            if b_name not in used and b_normalized == normalized:
                result[a_name] = b_name
                used.add(b_name)
                break

    for a_name in list_a:
        if a_name in result:
            continue
        normalized = normalize_name(a_name)
        a_tokens = _tokens(normalized)
        for b_name, b_normalized in candidates:
            if b_name in used:
                continue
            if _swapped_or_equal(a_tokens, _tokens(b_normalized)) or levenshtein(normalized, b_normalized) <= MAX_EDIT_DISTANCE:
                result[a_name] = b_name
                used.add(b_name)
                break

    return result
