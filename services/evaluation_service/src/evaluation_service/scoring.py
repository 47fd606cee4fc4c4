"""Final grade from test results, judge scores and integrity signals.

Marks are split into a performance part (tests, logic, quality) and three
integrity allocations (plagiarism, authorship, focus loss). An integrity
allocation is *earned* as a bonus in proportion to how clean its signal is,
so a clean submission gains marks rather than a flagged one losing them.
The final score never exceeds ``max_marks``.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

from .harness import HarnessResult
from .schemas import JudgeVerdict

DEFAULT_WEIGHTS: dict[str, float] = {
    "tests": 0.50,
    "logic": 0.10,
    "quality": 0.10,
    "plagiarism": 0.15,
    "authorship": 0.10,
    "focus_loss": 0.05,
}

FOCUS_LOSS_SATURATION = 5

NEUTRAL_JUDGEMENT = JudgeVerdict(
    logic_score=50,
    quality_score=50,
    reasoning="Judge unavailable - using default scores",
)


def _percent(value: float) -> float:
    return min(max(float(value), 0.0), 100.0)


def focus_loss_penalty(count: int, saturation: int = FOCUS_LOSS_SATURATION) -> float:
    """Penalty percent rising linearly to 100 at ``saturation`` events."""
    return min(max(count, 0) / saturation * 100, 100.0)


@dataclass
class ScoreBreakdown:
    max_marks: float

    test_score: float
    test_max: float
    tests_passed: int
    tests_total: int
    test_pass_percentage: float

    logic_score: float
    logic_max: float
    logic_percentage: float

    quality_score: float
    quality_max: float
    quality_percentage: float

    plagiarism_percentage: float
    plagiarism_max: float
    plagiarism_deduction: float
    plagiarism_bonus: float

    authorship_percentage: float
    authorship_max: float
    authorship_deduction: float
    authorship_bonus: float

    focus_loss_count: int
    focus_loss_penalty_percent: float
    focus_loss_max: float
    focus_loss_deduction: float
    focus_loss_bonus: float

    performance_score: float
    total_bonus: float
    final_score: float

    judge_reasoning: str = ""

    def to_dict(self) -> dict:
        data = {
            name: round(value, 2) if isinstance(value, float) else value
            for name, value in self.__dict__.items()
        }
        data["evaluated_at"] = dt.datetime.utcnow().isoformat()
        return data


def _slot(max_marks: float, weight: float, signal: float) -> tuple[float, float, float]:
    allocation = max_marks * weight
    deduction = signal / 100 * allocation
    return allocation, deduction, allocation - deduction


def aggregate(
    max_marks: float,
    test_results: HarnessResult,
    authorship_score: float,
    plagiarism_score: float,
    focus_loss_count: int,
    judgement: JudgeVerdict = NEUTRAL_JUDGEMENT,
    weights: dict[str, float] | None = None,
    focus_loss_saturation: int = FOCUS_LOSS_SATURATION,
) -> ScoreBreakdown:
    w = {**DEFAULT_WEIGHTS, **(weights or {})}
    max_marks = max(float(max_marks), 0.0)

    pass_pct = _percent(test_results.pass_percentage)
    logic_pct = _percent(judgement.logic_score)
    quality_pct = _percent(judgement.quality_score)

    test_max = max_marks * w["tests"]
    logic_max = max_marks * w["logic"]
    quality_max = max_marks * w["quality"]
    test_score = pass_pct / 100 * test_max
    logic_score = logic_pct / 100 * logic_max
    quality_score = quality_pct / 100 * quality_max

    plagiarism_pct = _percent(plagiarism_score)
    authorship_pct = _percent(authorship_score)
    focus_pct = focus_loss_penalty(focus_loss_count, focus_loss_saturation)

    plag_max, plag_deduction, plag_bonus = _slot(max_marks, w["plagiarism"], plagiarism_pct)
    auth_max, auth_deduction, auth_bonus = _slot(max_marks, w["authorship"], authorship_pct)
    focus_max, focus_deduction, focus_bonus = _slot(max_marks, w["focus_loss"], focus_pct)

    performance = test_score + logic_score + quality_score
    total_bonus = plag_bonus + auth_bonus + focus_bonus
    final = min(performance + total_bonus, max_marks)

    return ScoreBreakdown(
        max_marks=max_marks,
        test_score=test_score,
        test_max=test_max,
        tests_passed=test_results.passed_count,
        tests_total=test_results.total_count,
        test_pass_percentage=pass_pct,
        logic_score=logic_score,
        logic_max=logic_max,
        logic_percentage=logic_pct,
        quality_score=quality_score,
        quality_max=quality_max,
        quality_percentage=quality_pct,
        plagiarism_percentage=plagiarism_pct,
        plagiarism_max=plag_max,
        plagiarism_deduction=plag_deduction,
        plagiarism_bonus=plag_bonus,
        authorship_percentage=authorship_pct,
        authorship_max=auth_max,
        authorship_deduction=auth_deduction,
        authorship_bonus=auth_bonus,
        focus_loss_count=focus_loss_count,
        focus_loss_penalty_percent=focus_pct,
        focus_loss_max=focus_max,
        focus_loss_deduction=focus_deduction,
        focus_loss_bonus=focus_bonus,
        performance_score=performance,
        total_bonus=total_bonus,
        final_score=final,
        judge_reasoning=judgement.reasoning,
    )
