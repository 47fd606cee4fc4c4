"""Winnowing fingerprints over token streams (MOSS-style).

Every ``window_size`` consecutive k-gram hashes contribute their minimum, so
any shared run of ``window_size + k - 1`` tokens yields at least one shared
fingerprint regardless of where it sits in either document.
"""
from __future__ import annotations

from dataclasses import dataclass

DJB2_SEED = 5381


@dataclass(frozen=True)
class Fingerprint:
    hash: int
    position: int


def djb2(text: str) -> int:
    """djb2 without reduction; the value grows with the input length."""
    h = DJB2_SEED
    for ch in text:
        h = h * 33 + ord(ch)
    return abs(h)


def kgram_hashes(tokens: list[str], k: int = 3) -> list[Fingerprint]:
    return [Fingerprint(djb2("".join(tokens[i:i + k])), i) for i in range(len(tokens) - k + 1)]


def fingerprints(tokens: list[str], window_size: int = 5, k: int = 3) -> list[Fingerprint]:
    hashes = kgram_hashes(tokens, k)
    if not hashes:
        return []
    # short documents: one window over everything
    width = min(window_size, len(hashes))

    selected: list[Fingerprint] = []
    for start in range(len(hashes) - width + 1):
        # min() keeps the earliest entry on ties
        lowest = min(hashes[start:start + width], key=lambda fp: fp.hash)
        if not selected or selected[-1].position != lowest.position:
            selected.append(lowest)
    return selected


def fingerprint_set(tokens: list[str], window_size: int = 5, k: int = 3) -> set[int]:
    return {fp.hash for fp in fingerprints(tokens, window_size, k)}
