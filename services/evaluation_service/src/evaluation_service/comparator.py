"""Tolerant comparison of program output against expected output.

Strategies are tried in order and the first one that accepts wins, so a
looser strategy only gets a say once every stricter one has declined.
"""
from __future__ import annotations

import re

NUMERIC_TOLERANCE = 1e-4
CONTAINMENT_RATIO = 0.9

PUNCTUATION_RE = re.compile(r"[.,!?;:'\"]")
HORIZONTAL_WS_RE = re.compile(r"[^\S\n]+")
ANY_WS_RE = re.compile(r"\s+")
ITEM_SPLIT_RE = re.compile(r"[\n,]")
NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def normalize_output(text: str | None) -> str:
    if not text:
        return ""
    text = str(text).replace("\r\n", "\n").strip().lower()
    text = PUNCTUATION_RE.sub("", text)
    lines = (HORIZONTAL_WS_RE.sub(" ", line).strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def compact(text: str) -> str:
    return ANY_WS_RE.sub("", text)


def parse_number(text: str | None) -> float | None:
    if text is None:
        return None
    text = text.strip()
    if not NUMBER_RE.fullmatch(text):
        return None
    return float(text)


def sorted_items(text: str | None) -> list[str]:
    if not text:
        return []
    items = (normalize_output(part) for part in ITEM_SPLIT_RE.split(str(text).lower()))
    return sorted(item for item in items if item)


def match_strategy(
    actual: str | None,
    expected: str | None,
    tolerance: float = NUMERIC_TOLERANCE,
    containment_ratio: float = CONTAINMENT_RATIO,
) -> str | None:
    """Name of the first strategy that accepts the pair, or None."""
    if not actual and not expected:
        return "empty"
    if not actual or not expected:
        return None

    norm_actual = normalize_output(actual)
    norm_expected = normalize_output(expected)
    if norm_actual == norm_expected:
        return "normalized"

    compact_actual = compact(norm_actual)
    compact_expected = compact(norm_expected)
    if compact_actual == compact_expected:
        return "whitespace"

    a, b = parse_number(actual), parse_number(expected)
    if a is not None and b is not None and abs(a - b) < tolerance:
        return "numeric"

    items_actual = sorted_items(actual)
    if items_actual and items_actual == sorted_items(expected):
        return "sorted_items"

    shorter, longer = sorted((compact_actual, compact_expected), key=len)
    if longer and shorter in longer and len(shorter) / len(longer) >= containment_ratio:
        return "containment"

    return None


def equivalent(
    actual: str | None,
    expected: str | None,
    tolerance: float = NUMERIC_TOLERANCE,
    containment_ratio: float = CONTAINMENT_RATIO,
) -> bool:
    return match_strategy(actual, expected, tolerance, containment_ratio) is not None
