import datetime as dt
from sqlalchemy import String, DateTime, Boolean, ForeignKey, Text, Integer, Float, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from .db import Base


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (UniqueConstraint("author_id", "assessment_id", name="uq_submission_author_assessment"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    author_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    author_name: Mapped[str | None] = mapped_column(String, nullable=True)
    assessment_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    code: Mapped[str] = mapped_column(Text, nullable=False)
    language: Mapped[str] = mapped_column(String, nullable=False)

    start_time: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)
    submit_time: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False, index=True)
    elapsed_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    focus_events: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    focus_event_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_auto_submitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_submit_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # RECEIVED / ANALYZED / ANALYSIS_FAILED / SCORED / SCORE_FAILED / SCORE_TIMEOUT
    status: Mapped[str] = mapped_column(String, nullable=False, default="RECEIVED")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)


class IntegrityReport(Base):
    __tablename__ = "integrity_reports"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    submission_id: Mapped[str] = mapped_column(String, ForeignKey("submissions.id"), nullable=False, unique=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=lambda: dt.datetime.utcnow(), nullable=False)

    overall_similarity_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    matches: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    authorship_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    authorship_reasons: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    analysis_metadata: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)


class ScoreRecord(Base):
    __tablename__ = "score_breakdowns"

    submission_id: Mapped[str] = mapped_column(String, ForeignKey("submissions.id"), primary_key=True)
    evaluated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=lambda: dt.datetime.utcnow(), nullable=False)

    final_score: Mapped[float] = mapped_column(Float, nullable=False)
    breakdown: Mapped[dict] = mapped_column(JSON, nullable=False)
    test_results: Mapped[dict] = mapped_column(JSON, nullable=False)

