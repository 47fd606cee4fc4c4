from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Awaitable, Callable

from .clients import ExternalServiceError, execute_code
from .comparator import CONTAINMENT_RATIO, NUMERIC_TOLERANCE, match_strategy, normalize_output
from .schemas import SandboxResult, TestCase

logger = logging.getLogger(__name__)

Executor = Callable[[str, str, str], Awaitable[SandboxResult]]


@dataclass
class CaseResult:
    test_case: int
    input: str
    expected: str
    actual: str | None
    passed: bool
    error: str | None = None
    strategy: str | None = None
    normalized_expected: str | None = None
    normalized_actual: str | None = None


@dataclass
class HarnessResult:
    results: list[CaseResult] = field(default_factory=list)
    passed_count: int = 0
    total_count: int = 0

    @property
    def pass_percentage(self) -> float:
        return self.passed_count / self.total_count * 100 if self.total_count else 0.0

    def to_dict(self) -> dict:
        return {
            "results": [asdict(r) for r in self.results],
            "passed_count": self.passed_count,
            "total_count": self.total_count,
            "pass_percentage": round(self.pass_percentage, 2),
        }


async def run_test_cases(
    code: str,
    language: str,
    test_cases: list[TestCase],
    execute: Executor = execute_code,
    tolerance: float = NUMERIC_TOLERANCE,
    containment_ratio: float = CONTAINMENT_RATIO,
) -> HarnessResult:
    """Run every test case through the sandbox, one after another.

    A sandbox failure fails its own case and the run moves on.
    """
    harness = HarnessResult(total_count=len(test_cases))

    for index, case in enumerate(test_cases, start=1):
        expected = case.output.strip()
        try:
            output = await execute(code, language, case.input)
        except ExternalServiceError as e:
            logger.warning("Test case %d failed to execute: %s", index, e)
            harness.results.append(
                CaseResult(
                    test_case=index,
                    input=case.input,
                    expected=expected,
                    actual=None,
                    passed=False,
                    error=str(e) or "Execution failed",
                )
            )
            continue

        actual = output.output.strip()
        strategy = match_strategy(actual, expected, tolerance, containment_ratio)
        passed = strategy is not None
        if passed:
            harness.passed_count += 1
        harness.results.append(
            CaseResult(
                test_case=index,
                input=case.input,
                expected=expected,
                actual=actual,
                passed=passed,
                strategy=strategy,
                normalized_expected=normalize_output(expected),
                normalized_actual=normalize_output(actual),
            )
        )

    return harness
