"""
Tolerant parser for structured (JSON) output of text models.

Models are asked for bare JSON but regularly wrap it in markdown fences or
chatter. Strategy, in order:
    1. strict parse of the whole text
    2. strict parse of the first fenced block
    3. the largest balanced ``{...}`` / ``[...]`` substring that parses
Anything else raises ParseError.
"""
import json
import re
from typing import Any, Iterator, Optional, Tuple, Type, Union

from visulearn.core.errors import ParseError

FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

_CLOSERS = {"{": "}", "[": "]"}

# Characters the bracket scan may visit in total. Bounds the work on
# unbalanced input such as a long run of opening brackets.
SCAN_BUDGET = 2_000_000

Expected = Optional[Union[Type, Tuple[Type, ...]]]


def _matches(value: Any, expect: Expected) -> bool:
    return expect is None or isinstance(value, expect)


def _try_loads(text: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (ValueError, RecursionError):
        # RecursionError: pathologically nested brackets
        return False, None


def _balanced_end(text: str, start: int, limit: int) -> Tuple[Optional[int], int]:
    """
    Index of the bracket closing the one at ``start`` (None if there is no
    such bracket within ``limit`` characters), and the last index scanned.
    """
    stack = [_CLOSERS[text[start]]]
    in_string = False
    escaped = False
    stop = min(len(text), start + 1 + limit)
    for i in range(start + 1, stop):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in "}]":
            if ch != stack.pop():
                return None, i
            if not stack:
                return i, i
    return None, stop - 1


def _balanced_candidates(text: str, budget: int = SCAN_BUDGET) -> Iterator[Tuple[int, int]]:
    """Balanced spans by start position, until ``budget`` characters have been scanned."""
    for start, ch in enumerate(text):
        if budget <= 0:
            return
        if ch in _CLOSERS:
            end, reached = _balanced_end(text, start, budget)
            budget -= reached - start + 1
            if end is not None:
                yield start, end


def extract_largest_json(text: str, expect: Expected = None) -> Tuple[bool, Any]:
    best_len = -1
    best = None
    skip_until = -1
    for start, end in _balanced_candidates(text):
        if start <= skip_until:
            # nested inside a span that already parsed, cannot be larger
            continue
        ok, value = _try_loads(text[start:end + 1])
        if ok and _matches(value, expect):
            skip_until = end
            if end - start > best_len:
                best_len = end - start
                best = value
    return best_len >= 0, best


def parse_structured_output(text: Optional[str], expect: Expected = None) -> Any:
    """Parse JSON out of free-form model text. ``expect`` restricts the type."""
    if text is None or not text.strip():
        raise ParseError("Model returned empty content", text or "")

    stripped = text.strip()
    ok, value = _try_loads(stripped)
    if ok and _matches(value, expect):
        return value

    fenced = FENCE_RE.search(stripped)
    if fenced:
        ok, value = _try_loads(fenced.group(1).strip())
        if ok and _matches(value, expect):
            return value

    ok, value = extract_largest_json(stripped, expect)
    if ok:
        return value

    raise ParseError("No valid JSON found in model output", text)
