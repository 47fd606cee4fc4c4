import datetime as dt
import logging
import uuid

import uvicorn
from fastapi import FastAPI, Depends, HTTPException, BackgroundTasks
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import select, and_

from .config import settings
from .db import SessionLocal, init_db
from .models import Submission, ScoreRecord
from .pipeline import get_report, run_pipeline
from .schemas import (
    CreateSubmissionRequest,
    CreateSubmissionResponse,
    SubmissionOut,
    IntegrityReportOut,
    MatchOut,
    ScoreOut,
    PendingOut,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Code Evaluation Service", version="1.0.0")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def _startup():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    init_db()


@app.get("/health")
def health():
    return {"status": "ok"}


def _submission_out(s: Submission) -> SubmissionOut:
    return SubmissionOut(
        id=s.id,
        author_id=s.author_id,
        author_name=s.author_name,
        assessment_id=s.assessment_id,
        language=s.language,
        start_time=s.start_time,
        submit_time=s.submit_time,
        elapsed_seconds=s.elapsed_seconds,
        focus_event_count=s.focus_event_count,
        is_auto_submitted=s.is_auto_submitted,
        status=s.status,
        error=s.error,
    )


def _pending(submission_id: str, status: str, detail: str, status_code: int = 202) -> JSONResponse:
    body = PendingOut(submission_id=submission_id, status=status, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _require_submission(db: Session, submission_id: str) -> Submission:
    submission = db.get(Submission, submission_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission


@app.post("/submissions", response_model=CreateSubmissionResponse, status_code=201)
def create_submission(req: CreateSubmissionRequest, background: BackgroundTasks, db: Session = Depends(get_db)):
    existing = db.execute(
        select(Submission.id).where(
            and_(Submission.author_id == req.author_id, Submission.assessment_id == req.assessment_id)
        )
    ).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=409, detail="Assessment already submitted by this author")

    submit_time = dt.datetime.utcnow()
    start_time = req.start_time
    if start_time.tzinfo is not None:
        start_time = start_time.astimezone(dt.timezone.utc).replace(tzinfo=None)

    submission = Submission(
        id=str(uuid.uuid4()),
        author_id=req.author_id,
        author_name=req.author_name,
        assessment_id=req.assessment_id,
        code=req.code,
        language=req.language,
        start_time=start_time,
        submit_time=submit_time,
        elapsed_seconds=max(int((submit_time - start_time).total_seconds()), 0),
        focus_events=[e.model_dump(mode="json") for e in req.focus_events],
        focus_event_count=len(req.focus_events),
        is_auto_submitted=req.is_auto_submitted,
        auto_submit_reason=req.auto_submit_reason,
        status="RECEIVED",
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)

    # the caller is acknowledged once the row is committed; analysis runs afterwards
    background.add_task(run_pipeline, submission.id)
    logger.info("Accepted submission %s for assessment %s", submission.id, submission.assessment_id)
    return CreateSubmissionResponse(submission=_submission_out(submission))


@app.get("/submissions/{submission_id}", response_model=SubmissionOut)
def get_submission(submission_id: str, db: Session = Depends(get_db)):
    return _submission_out(_require_submission(db, submission_id))


@app.get("/submissions/{submission_id}/report", response_model=IntegrityReportOut)
def get_integrity_report(submission_id: str, db: Session = Depends(get_db)):
    submission = _require_submission(db, submission_id)
    r = get_report(db, submission_id)
    if not r:
        if submission.status == "ANALYSIS_FAILED":
            raise HTTPException(status_code=502, detail=f"Analysis failed: {submission.error}")
        return _pending(submission_id, submission.status, "Integrity report not ready")
    return IntegrityReportOut(
        id=r.id,
        submission_id=r.submission_id,
        created_at=r.created_at,
        overall_similarity_score=r.overall_similarity_score,
        matches=[MatchOut(**m) for m in r.matches],
        authorship_score=r.authorship_score,
        authorship_reasons=r.authorship_reasons,
        analysis_metadata=r.analysis_metadata,
    )


@app.get("/submissions/{submission_id}/score", response_model=ScoreOut)
def get_score(submission_id: str, db: Session = Depends(get_db)):
    submission = _require_submission(db, submission_id)
    record = db.get(ScoreRecord, submission_id)
    if not record:
        if submission.status == "SCORE_TIMEOUT":
            raise HTTPException(status_code=504, detail="Score evaluation timed out waiting for the integrity report")
        if submission.status in ("ANALYSIS_FAILED", "SCORE_FAILED"):
            raise HTTPException(status_code=502, detail=f"Evaluation failed: {submission.error}")
        return _pending(submission_id, submission.status, "Score not ready")
    return ScoreOut(
        submission_id=record.submission_id,
        evaluated_at=record.evaluated_at,
        final_score=record.final_score,
        breakdown=record.breakdown,
        test_results=record.test_results,
    )


@app.post("/submissions/{submission_id}/retry-analysis", response_model=SubmissionOut, status_code=202)
def retry_analysis(submission_id: str, background: BackgroundTasks, db: Session = Depends(get_db)):
    submission = _require_submission(db, submission_id)
    background.add_task(run_pipeline, submission.id)
    return _submission_out(submission)


def run():
    uvicorn.run("evaluation_service.main:app", host="0.0.0.0", port=settings.port)
