"""Likelihood that a submission was produced by a code generator.

The heuristic score is a sum of independent rules, each worth a fixed number
of points, capped at 100. Rules see a shared :class:`CodeProfile` so the
statistics are computed once per submission. An external classifier verdict,
when available, is blended in by :func:`fuse`.
"""
from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable

from .normalizer import normalize, tokenize
from .schemas import ClassifierVerdict

MAX_SCORE = 100.0

ENTROPY_POINTS = 12
PERPLEXITY_POINTS = 15
BURSTINESS_POINTS = 13
INDENTATION_POINTS = 10
COMMENT_POINTS = 12
GENERIC_NAME_POINTS = 11
VOCABULARY_POINTS = 10
LONG_NAME_POINTS = 9
TYPE_HINT_POINTS = 8
MODERN_SYNTAX_POINTS = 7
BOILERPLATE_POINTS = 20

ENTROPY_THRESHOLD = 3.5
PERPLEXITY_THRESHOLD = 5.0
BURSTINESS_THRESHOLD = 0.3
INDENTATION_MIN_LINES = 10
COMMENT_RATIO_THRESHOLD = 0.25
GENERIC_NAME_THRESHOLD = 5
VOCABULARY_THRESHOLD = 0.65
VOCABULARY_MIN_TOKENS = 30
LONG_NAME_THRESHOLD = 2
TYPE_HINT_THRESHOLD = 3
BOILERPLATE_THRESHOLD = 1

GENERIC_NAME_PATTERNS = [
    re.compile(r"result\d*", re.IGNORECASE),
    re.compile(r"temp\d*", re.IGNORECASE),
    re.compile(r"value\d*", re.IGNORECASE),
    re.compile(r"data\d*", re.IGNORECASE),
    re.compile(r"item\d*", re.IGNORECASE),
    re.compile(r"element\d*", re.IGNORECASE),
    re.compile(r"current[A-Z]\w*"),
    re.compile(r"new[A-Z]\w*"),
]

BOILERPLATE_PATTERNS = [
    re.compile(r"This\s+(function|method|code)\s+", re.IGNORECASE),
    re.compile(r"The\s+following\s+", re.IGNORECASE),
    re.compile(r"Here'?s\s+(how|what|the)", re.IGNORECASE),
    re.compile(r"As\s+you\s+can\s+see", re.IGNORECASE),
    re.compile(r"Note\s+that", re.IGNORECASE),
    re.compile(r"It'?s\s+important\s+to", re.IGNORECASE),
]

LONG_DECLARATION_RE = re.compile(r"(?:function|def)\s+\w{15,}")
LONG_CALL_RE = re.compile(r"\w{15,}\s*\(")
LEADING_WS_RE = re.compile(r"^\s*")
PY_ANNOTATION_RE = re.compile(r":\s*\w+\s*=")
PY_RETURN_HINT_RE = re.compile(r"->\s*\w+:")

HEURISTIC_METHODS = [
    "entropy", "perplexity", "burstiness", "pattern_analysis",
    "stylometry", "vocabulary_analysis",
]


# --- statistics -------------------------------------------------------------

def shannon_entropy(tokens: list[str]) -> float | None:
    if not tokens:
        return None
    total = len(tokens)
    return -sum((n / total) * math.log2(n / total) for n in Counter(tokens).values())


def bigram_perplexity(tokens: list[str]) -> float | None:
    if len(tokens) < 2:
        return None
    bigrams = Counter(zip(tokens, tokens[1:]))
    total = len(tokens) - 1
    log_prob = sum(math.log(n / total) for n in bigrams.values())
    return math.exp(-log_prob / total)


def burstiness(code: str) -> float | None:
    lengths = [len(line.strip()) for line in code.split("\n") if line.strip()]
    if len(lengths) < 2:
        return None
    mean = sum(lengths) / len(lengths)
    variance = sum((n - mean) ** 2 for n in lengths) / len(lengths)
    return math.sqrt(variance) / mean if mean > 0 else 0.0


def comment_ratio(code: str) -> float:
    lines = code.split("\n")
    comments = sum(
        1 for line in lines
        if line.strip().startswith(("//", "#")) or "/*" in line
    )
    return comments / len(lines)


def vocabulary_richness(tokens: list[str]) -> float:
    return len(set(tokens)) / len(tokens) if tokens else 0.0


def has_perfect_indentation(code: str) -> bool:
    for line in code.split("\n"):
        if not line.strip():
            continue
        width = len(LEADING_WS_RE.match(line).group(0))
        if width % 2 != 0 and width % 4 != 0:
            return False
    return True


def generic_name_count(code: str) -> int:
    return sum(len(p.findall(code)) for p in GENERIC_NAME_PATTERNS)


def long_name_count(code: str) -> int:
    declarations = LONG_DECLARATION_RE.findall(code)
    if declarations:
        return len(declarations)
    return len(LONG_CALL_RE.findall(code))


def boilerplate_count(code: str) -> int:
    return sum(1 for p in BOILERPLATE_PATTERNS if p.search(code))


# --- rules ------------------------------------------------------------------

@dataclass
class CodeProfile:
    code: str
    language: str
    lines: list[str]
    raw_tokens: list[str]
    tokens: list[str]

    @classmethod
    def build(cls, code: str, language: str) -> "CodeProfile":
        return cls(
            code=code,
            language=language,
            lines=code.split("\n"),
            raw_tokens=tokenize(code),
            tokens=tokenize(normalize(code, language)),
        )


@dataclass
class RuleHit:
    points: int
    reason: str


Rule = Callable[[CodeProfile, dict], "RuleHit | None"]


def entropy_rule(profile: CodeProfile, metrics: dict) -> RuleHit | None:
    entropy = shannon_entropy(profile.raw_tokens)
    metrics["entropy"] = None if entropy is None else round(entropy, 2)
    if entropy is not None and entropy < ENTROPY_THRESHOLD:
        return RuleHit(ENTROPY_POINTS, f"Low entropy ({entropy:.2f})")
    return None


def perplexity_rule(profile: CodeProfile, metrics: dict) -> RuleHit | None:
    perplexity = bigram_perplexity(profile.raw_tokens)
    metrics["perplexity"] = None if perplexity is None else round(perplexity, 2)
    if perplexity is not None and perplexity < PERPLEXITY_THRESHOLD:
        return RuleHit(PERPLEXITY_POINTS, f"Low perplexity ({perplexity:.2f})")
    return None


def burstiness_rule(profile: CodeProfile, metrics: dict) -> RuleHit | None:
    value = burstiness(profile.code)
    metrics["burstiness"] = None if value is None else round(value, 2)
    if value is not None and value < BURSTINESS_THRESHOLD:
        return RuleHit(BURSTINESS_POINTS, f"Low burstiness ({value:.2f})")
    return None


def indentation_rule(profile: CodeProfile, metrics: dict) -> RuleHit | None:
    if len(profile.lines) > INDENTATION_MIN_LINES and has_perfect_indentation(profile.code):
        return RuleHit(INDENTATION_POINTS, "Perfect indentation")
    return None


def comment_rule(profile: CodeProfile, metrics: dict) -> RuleHit | None:
    ratio = comment_ratio(profile.code)
    metrics["comment_ratio"] = round(ratio * 100, 1)
    if ratio > COMMENT_RATIO_THRESHOLD:
        return RuleHit(COMMENT_POINTS, f"High comment density ({ratio * 100:.1f}%)")
    return None


def generic_name_rule(profile: CodeProfile, metrics: dict) -> RuleHit | None:
    count = generic_name_count(profile.code)
    metrics["generic_names"] = count
    if count > GENERIC_NAME_THRESHOLD:
        return RuleHit(GENERIC_NAME_POINTS, f"Generic variable names ({count})")
    return None


def vocabulary_rule(profile: CodeProfile, metrics: dict) -> RuleHit | None:
    richness = vocabulary_richness(profile.tokens)
    metrics["vocabulary_richness"] = round(richness * 100, 1)
    if richness > VOCABULARY_THRESHOLD and len(profile.tokens) > VOCABULARY_MIN_TOKENS:
        return RuleHit(VOCABULARY_POINTS, f"High vocabulary diversity ({richness * 100:.1f}%)")
    return None


def long_name_rule(profile: CodeProfile, metrics: dict) -> RuleHit | None:
    count = long_name_count(profile.code)
    if count > LONG_NAME_THRESHOLD:
        return RuleHit(LONG_NAME_POINTS, f"Overly descriptive names ({count})")
    return None


def language_rule(profile: CodeProfile, metrics: dict) -> RuleHit | None:
    code = profile.code
    if profile.language == "python":
        hints = len(PY_ANNOTATION_RE.findall(code)) + len(PY_RETURN_HINT_RE.findall(code))
        if hints > TYPE_HINT_THRESHOLD:
            return RuleHit(TYPE_HINT_POINTS, f"Consistent type hints ({hints})")
    elif profile.language in ("javascript", "typescript"):
        if "var " not in code and ("const " in code or "let " in code):
            return RuleHit(MODERN_SYNTAX_POINTS, "Modern declaration syntax only")
    return None


def boilerplate_rule(profile: CodeProfile, metrics: dict) -> RuleHit | None:
    count = boilerplate_count(profile.code)
    if count > BOILERPLATE_THRESHOLD:
        return RuleHit(BOILERPLATE_POINTS, f"Explanatory boilerplate text ({count})")
    return None


RULES: list[Rule] = [
    entropy_rule,
    perplexity_rule,
    burstiness_rule,
    indentation_rule,
    comment_rule,
    generic_name_rule,
    vocabulary_rule,
    long_name_rule,
    language_rule,
    boilerplate_rule,
]


# --- scoring ----------------------------------------------------------------

@dataclass
class AuthorshipResult:
    score: float
    reasons: list[str] = field(default_factory=list)
    metrics: dict = field(default_factory=dict)
    verdict: ClassifierVerdict | None = None


def score(code: str, language: str) -> AuthorshipResult:
    profile = CodeProfile.build(code, language)
    result = AuthorshipResult(score=0.0)
    points = 0
    for rule in RULES:
        hit = rule(profile, result.metrics)
        if hit is not None:
            points += hit.points
            result.reasons.append(hit.reason)
    result.score = float(min(points, MAX_SCORE))
    return result


def fuse(
    heuristic: AuthorshipResult,
    verdict: ClassifierVerdict | None,
    heuristic_weight: float = 0.6,
    classifier_weight: float = 0.4,
) -> AuthorshipResult:
    """Blend the heuristic score with a classifier verdict, if there is one."""
    if verdict is None:
        return heuristic

    likelihood = verdict.likelihood
    fused = heuristic.score * heuristic_weight + likelihood * classifier_weight
    label = "generated" if verdict.is_generated else "human"
    reasons = heuristic.reasons + [
        f"Classifier: {verdict.reasoning} ({label}, {verdict.confidence:g}% confident, "
        f"generation likelihood {likelihood:.1f}%)"
    ]
    return AuthorshipResult(
        score=min(fused, MAX_SCORE),
        reasons=reasons,
        metrics=heuristic.metrics,
        verdict=verdict,
    )
