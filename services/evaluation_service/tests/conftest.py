"""Shared pytest fixtures.

The service reads its settings at import time, so the data directory and
external-service switches are pinned here before anything imports it.
"""

from __future__ import annotations

import datetime as dt
import os
import tempfile
import uuid

os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="evaluation-service-tests-")
os.environ["LLM_API_KEY"] = ""
os.environ["CLASSIFIER_ENABLED"] = "false"

import pytest  # noqa: E402

from evaluation_service.db import Base, SessionLocal, engine, init_db  # noqa: E402
from evaluation_service.models import Submission  # noqa: E402


@pytest.fixture
def db():
    """Fresh schema per test."""
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_submission(db):
    """Insert a submission row and return it."""

    def _make(code: str, *, author_id: str | None = None, assessment_id: str = "exam-1",
              language: str = "python", focus_event_count: int = 0, author_name: str | None = None):
        now = dt.datetime.utcnow()
        submission = Submission(
            id=str(uuid.uuid4()),
            author_id=author_id or f"student-{uuid.uuid4().hex[:8]}",
            author_name=author_name,
            assessment_id=assessment_id,
            code=code,
            language=language,
            start_time=now - dt.timedelta(minutes=30),
            submit_time=now,
            elapsed_seconds=1800,
            focus_events=[],
            focus_event_count=focus_event_count,
            status="RECEIVED",
        )
        db.add(submission)
        db.commit()
        return submission

    return _make
