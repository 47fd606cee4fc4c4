"""Peer-pair similarity: six independent signals blended into one score.

Each signal targets a different way of disguising a copy:

==============  ==========================================  =======
signal          basis                                       weight
==============  ==========================================  =======
surface         edit ratio of surface-normalized text       0.20
deep            edit ratio of deep-normalized text          0.20
token_jaccard   Jaccard of surface-normalized token sets    0.20
fingerprint     Jaccard of winnowing fingerprint sets       0.20
levenshtein     1 - distance / max length, deep text        0.10
trigram         Jaccard of character trigram sets           0.10
==============  ==========================================  =======

The blend is linear so every score can be explained from its parts.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, asdict
from difflib import SequenceMatcher
from typing import Iterable

from .fingerprint import fingerprint_set
from .normalizer import deep_normalize, normalize, tokenize

DEFAULT_WEIGHTS: dict[str, float] = {
    "surface": 0.20,
    "deep": 0.20,
    "token_jaccard": 0.20,
    "fingerprint": 0.20,
    "levenshtein": 0.10,
    "trigram": 0.10,
}

DETECTION_METHODS = list(DEFAULT_WEIGHTS)


@dataclass
class SimilarityBreakdown:
    surface: float = 0.0
    deep: float = 0.0
    token_jaccard: float = 0.0
    fingerprint: float = 0.0
    levenshtein: float = 0.0
    trigram: float = 0.0

    def score(self, weights: dict[str, float] | None = None) -> float:
        weights = weights or DEFAULT_WEIGHTS
        parts = asdict(self)
        total = sum(weights.get(name, 0.0) * value for name, value in parts.items())
        return max(0.0, min(total * 100, 100.0))


@dataclass(frozen=True)
class Peer:
    submission_id: str
    author_id: str
    author_name: str | None
    code: str
    language: str
    submit_time: dt.datetime | None = None


@dataclass
class Match:
    peer_id: str
    peer_name: str | None
    score: float
    language: str
    peer_submit_time: dt.datetime | None

    def to_dict(self) -> dict:
        return {
            "peer_id": self.peer_id,
            "peer_name": self.peer_name,
            "score": self.score,
            "language": self.language,
            "peer_submit_time": self.peer_submit_time.isoformat() if self.peer_submit_time else None,
        }


@dataclass
class CohortResult:
    overall_score: float
    matches: list[Match]
    comparisons: int


def jaccard(a: set, b: set) -> float:
    if not a and not b:
        return 1.0
    return len(a & b) / len(a | b)


def edit_ratio(a: str, b: str) -> float:
    return SequenceMatcher(None, a, b, autojunk=False).ratio()


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j - 1], previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def levenshtein_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - levenshtein(a, b) / longest


def char_ngrams(text: str, n: int = 3) -> set[str]:
    return {text[i:i + n] for i in range(len(text) - n + 1)}


def similarity_breakdown(code_a: str, code_b: str, lang_a: str, lang_b: str) -> SimilarityBreakdown:
    if lang_a != lang_b:
        return SimilarityBreakdown()

    norm_a, norm_b = normalize(code_a, lang_a), normalize(code_b, lang_b)
    deep_a, deep_b = deep_normalize(code_a, lang_a), deep_normalize(code_b, lang_b)
    tokens_a, tokens_b = tokenize(norm_a), tokenize(norm_b)

    return SimilarityBreakdown(
        surface=edit_ratio(norm_a, norm_b),
        deep=edit_ratio(deep_a, deep_b),
        token_jaccard=jaccard(set(tokens_a), set(tokens_b)),
        fingerprint=jaccard(fingerprint_set(tokens_a), fingerprint_set(tokens_b)),
        levenshtein=levenshtein_similarity(deep_a, deep_b),
        trigram=jaccard(char_ngrams(norm_a), char_ngrams(norm_b)),
    )


def similarity(
    code_a: str,
    code_b: str,
    lang_a: str,
    lang_b: str,
    weights: dict[str, float] | None = None,
) -> float:
    """Similarity of two submissions on a 0-100 scale; 0 across languages."""
    if lang_a != lang_b:
        return 0.0
    return similarity_breakdown(code_a, code_b, lang_a, lang_b).score(weights)


def compare_with_cohort(
    code: str,
    language: str,
    peers: Iterable[Peer],
    threshold: float = 15.0,
    weights: dict[str, float] | None = None,
) -> CohortResult:
    """Score a submission against every peer.

    Peers scoring above ``threshold`` become matches (highest first); the
    overall score is the mean of the matched scores.
    """
    matches: list[Match] = []
    comparisons = 0
    total = 0.0
    for peer in peers:
        comparisons += 1
        score = similarity(code, peer.code, language, peer.language, weights)
        if score > threshold:
            total += score
            matches.append(
                Match(
                    peer_id=peer.author_id,
                    peer_name=peer.author_name,
                    score=round(score, 2),
                    language=peer.language,
                    peer_submit_time=peer.submit_time,
                )
            )

    matches.sort(key=lambda m: m.score, reverse=True)
    overall = round(total / len(matches), 2) if matches else 0.0
    return CohortResult(overall_score=overall, matches=matches, comparisons=comparisons)
