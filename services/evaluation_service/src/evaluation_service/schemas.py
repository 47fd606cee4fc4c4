import datetime as dt
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class FocusEvent(BaseModel):
    left_at: dt.datetime
    returned_at: dt.datetime | None = None


class CreateSubmissionRequest(BaseModel):
    author_id: str = Field(min_length=1)
    author_name: str | None = None
    assessment_id: str = Field(min_length=1)
    code: str = Field(min_length=1)
    language: str = Field(min_length=1)
    start_time: dt.datetime
    focus_events: list[FocusEvent] = Field(default_factory=list)
    is_auto_submitted: bool = False
    auto_submit_reason: str | None = None


class SubmissionOut(BaseModel):
    id: str
    author_id: str
    author_name: str | None = None
    assessment_id: str
    language: str
    start_time: dt.datetime
    submit_time: dt.datetime
    elapsed_seconds: int
    focus_event_count: int
    is_auto_submitted: bool
    status: str
    error: str | None = None


class CreateSubmissionResponse(BaseModel):
    submission: SubmissionOut


class MatchOut(BaseModel):
    peer_id: str
    peer_name: str | None = None
    score: float
    language: str
    peer_submit_time: dt.datetime | None = None


class IntegrityReportOut(BaseModel):
    id: str
    submission_id: str
    created_at: dt.datetime
    overall_similarity_score: float
    matches: list[MatchOut] = Field(default_factory=list)
    authorship_score: float
    authorship_reasons: list[str] = Field(default_factory=list)
    analysis_metadata: dict = Field(default_factory=dict)


class ScoreOut(BaseModel):
    submission_id: str
    evaluated_at: dt.datetime
    final_score: float
    breakdown: dict
    test_results: dict


class PendingOut(BaseModel):
    submission_id: str
    status: str
    detail: str


# --- external services ------------------------------------------------------

class TestCase(BaseModel):
    __test__ = False  # not a pytest class

    input: str = ""
    output: str = ""


class Assessment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    question: str = ""
    test_cases: list[TestCase] = Field(default_factory=list)
    marks: float = Field(gt=0)
    reference_solution: str | None = None


class SandboxResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    stdout: str | None = None
    stderr: str | None = None
    compile_output: str | None = None

    @property
    def output(self) -> str:
        # compiler errors win over runtime errors, which win over stdout
        return self.compile_output or self.stderr or self.stdout or ""


class ClassifierVerdict(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_generated: bool = Field(validation_alias=AliasChoices("isGenerated", "isAI", "is_generated"))
    confidence: float = Field(ge=0, le=100)
    reasoning: str = ""

    @property
    def likelihood(self) -> float:
        """Confidence restated as the probability of generated authorship."""
        return self.confidence if self.is_generated else 100 - self.confidence


class JudgeVerdict(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    logic_score: float = Field(validation_alias=AliasChoices("logicScore", "logic_score"))
    quality_score: float = Field(validation_alias=AliasChoices("qualityScore", "quality_score"))
    reasoning: str = ""

    @field_validator("logic_score", "quality_score")
    @classmethod
    def _clamp(cls, v: float) -> float:
        return min(max(v, 0.0), 100.0)
