"""Two-stage background evaluation of a submission.

Stage 1 writes the integrity report (peer similarity + authorship).
Stage 2 runs the tests, asks the judge and writes the score breakdown; it
checks for the stage 1 report first and answers ``DEFERRED`` when it is not
there yet, which the scheduler retries with exponential backoff.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
import uuid
from enum import Enum

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from . import authorship
from .clients import (
    ExternalServiceError,
    NotConfigured,
    classify_authorship,
    execute_code,
    get_assessment,
    judge_code,
)
from .config import settings
from .db import SessionLocal
from .harness import run_test_cases
from .models import IntegrityReport, ScoreRecord, Submission
from .schemas import JudgeVerdict
from .scoring import NEUTRAL_JUDGEMENT, aggregate
from .similarity import DETECTION_METHODS, Peer, compare_with_cohort

logger = logging.getLogger(__name__)

# submission ids with a pipeline currently running in this process
_inflight: set[str] = set()


class StageOutcome(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    DEFERRED = "deferred"
    FAILED = "failed"


class SubmissionNotFound(LookupError):
    pass


def _get_submission(db: Session, submission_id: str) -> Submission:
    submission = db.get(Submission, submission_id)
    if submission is None:
        raise SubmissionNotFound(submission_id)
    return submission


def get_report(db: Session, submission_id: str) -> IntegrityReport | None:
    return db.execute(
        select(IntegrityReport).where(IntegrityReport.submission_id == submission_id)
    ).scalar_one_or_none()


def _set_status(db: Session, submission_id: str, status: str, error: str | None = None) -> None:
    db.rollback()
    submission = db.get(Submission, submission_id)
    if submission is None:
        return
    submission.status = status
    submission.error = error
    db.commit()


def load_peers(db: Session, submission: Submission) -> list[Peer]:
    rows = db.execute(
        select(Submission).where(
            and_(
                Submission.assessment_id == submission.assessment_id,
                Submission.author_id != submission.author_id,
                Submission.id != submission.id,
            )
        )
    ).scalars().all()
    return [
        Peer(
            submission_id=r.id,
            author_id=r.author_id,
            author_name=r.author_name,
            code=r.code,
            language=r.language,
            submit_time=r.submit_time,
        )
        for r in rows
    ]


async def assess_authorship(code: str, language: str) -> authorship.AuthorshipResult:
    heuristic = await asyncio.to_thread(authorship.score, code, language)
    try:
        verdict = await classify_authorship(code, language)
    except NotConfigured:
        return heuristic
    except ExternalServiceError as e:
        logger.warning("Authorship classifier failed, using heuristic only: %s", e)
        return heuristic
    return authorship.fuse(
        heuristic,
        verdict,
        heuristic_weight=settings.heuristic_weight,
        classifier_weight=settings.classifier_weight,
    )


async def run_integrity_stage(db: Session, submission_id: str) -> StageOutcome:
    submission = _get_submission(db, submission_id)
    if get_report(db, submission_id) is not None:
        logger.info("Integrity report for %s already exists", submission_id)
        return StageOutcome.SKIPPED

    peers = load_peers(db, submission)
    # pairwise scoring is CPU-bound; keep it off the event loop
    cohort = await asyncio.to_thread(
        compare_with_cohort,
        submission.code,
        submission.language,
        peers,
        threshold=settings.match_threshold,
        weights=settings.similarity_weights,
    )
    result = await assess_authorship(submission.code, submission.language)

    methods = list(authorship.HEURISTIC_METHODS)
    if result.verdict is not None:
        methods.append("external_classifier")

    report = IntegrityReport(
        id=str(uuid.uuid4()),
        submission_id=submission_id,
        overall_similarity_score=cohort.overall_score,
        matches=[m.to_dict() for m in cohort.matches],
        authorship_score=round(result.score, 2),
        authorship_reasons=result.reasons,
        analysis_metadata={
            "total_comparisons": cohort.comparisons,
            "matches_found": len(cohort.matches),
            "detection_methods": DETECTION_METHODS,
            "authorship_methods": methods,
            "authorship_metrics": result.metrics,
            "classifier_analysis": None if result.verdict is None else {
                **result.verdict.model_dump(),
                "likelihood": result.verdict.likelihood,
            },
            "analyzed_at": dt.datetime.utcnow().isoformat(),
        },
    )
    db.add(report)
    submission.status = "ANALYZED"
    submission.error = None
    db.commit()

    logger.info(
        "Integrity report for %s: similarity=%.2f authorship=%.1f matches=%d",
        submission_id, cohort.overall_score, result.score, len(cohort.matches),
    )
    return StageOutcome.COMPLETED


async def judge_submission(question: str, test_cases, code: str, language: str) -> JudgeVerdict:
    try:
        return await judge_code(question, test_cases, code, language)
    except NotConfigured:
        return NEUTRAL_JUDGEMENT
    except ExternalServiceError as e:
        logger.warning("Judge failed, using neutral scores: %s", e)
        return JudgeVerdict(
            logic_score=50,
            quality_score=50,
            reasoning=f"Judge evaluation failed - using default scores ({e})",
        )


async def run_scoring_stage(db: Session, submission_id: str) -> StageOutcome:
    submission = _get_submission(db, submission_id)
    report = get_report(db, submission_id)
    if report is None:
        logger.info("Integrity report for %s not ready, scoring deferred", submission_id)
        return StageOutcome.DEFERRED

    assessment = await get_assessment(submission.assessment_id)
    test_results = await run_test_cases(
        submission.code,
        submission.language,
        assessment.test_cases,
        execute=execute_code,
        tolerance=settings.numeric_tolerance,
        containment_ratio=settings.containment_ratio,
    )
    judgement = await judge_submission(
        assessment.question, assessment.test_cases, submission.code, submission.language
    )
    breakdown = aggregate(
        assessment.marks,
        test_results,
        authorship_score=report.authorship_score,
        plagiarism_score=report.overall_similarity_score,
        focus_loss_count=submission.focus_event_count,
        judgement=judgement,
        weights=settings.score_weights,
        focus_loss_saturation=settings.focus_loss_saturation,
    )

    record = db.get(ScoreRecord, submission_id)
    if record is None:
        record = ScoreRecord(submission_id=submission_id)
        db.add(record)
    record.final_score = round(breakdown.final_score, 2)
    record.breakdown = breakdown.to_dict()
    record.test_results = test_results.to_dict()
    record.evaluated_at = dt.datetime.utcnow()
    submission.status = "SCORED"
    submission.error = None
    db.commit()

    logger.info(
        "Score for %s: %.2f/%s (performance %.2f, bonus %.2f)",
        submission_id, breakdown.final_score, assessment.marks,
        breakdown.performance_score, breakdown.total_bonus,
    )
    return StageOutcome.COMPLETED


async def score_with_retry(
    db: Session,
    submission_id: str,
    max_attempts: int | None = None,
    backoff: float | None = None,
) -> StageOutcome:
    max_attempts = max_attempts or settings.score_max_attempts
    backoff = settings.score_retry_backoff if backoff is None else backoff

    for attempt in range(max_attempts):
        db.expire_all()
        try:
            outcome = await run_scoring_stage(db, submission_id)
        except ExternalServiceError as e:
            logger.error("Scoring %s failed: %s", submission_id, e)
            _set_status(db, submission_id, "SCORE_FAILED", str(e))
            return StageOutcome.FAILED
        except Exception as e:
            logger.exception("Scoring %s failed", submission_id)
            _set_status(db, submission_id, "SCORE_FAILED", str(e))
            return StageOutcome.FAILED
        if outcome is not StageOutcome.DEFERRED:
            return outcome
        if attempt + 1 < max_attempts:
            await asyncio.sleep(backoff * 2 ** attempt)

    logger.error("Integrity report for %s never appeared; giving up after %d attempts", submission_id, max_attempts)
    _set_status(db, submission_id, "SCORE_TIMEOUT", "Integrity report not ready")
    return StageOutcome.DEFERRED


async def run_pipeline(submission_id: str) -> None:
    """Background entry point: stage 1, then stage 2 with retries."""
    if submission_id in _inflight:
        logger.info("Pipeline for %s already running", submission_id)
        return
    _inflight.add(submission_id)

    db = SessionLocal()
    try:
        try:
            await run_integrity_stage(db, submission_id)
        except SubmissionNotFound:
            logger.error("Submission %s vanished before analysis", submission_id)
            return
        except Exception as e:
            logger.exception("Integrity analysis for %s failed", submission_id)
            _set_status(db, submission_id, "ANALYSIS_FAILED", str(e))
            return

        await score_with_retry(db, submission_id)
    finally:
        db.close()
        _inflight.discard(submission_id)
