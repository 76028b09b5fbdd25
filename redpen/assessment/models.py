"""Pydantic models for assessments, candidate answers, evaluations, and reports."""

from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Difficulty = Literal["easy", "medium", "hard"]
QuestionKind = Literal["mcq", "descriptive", "coding"]
CodeLanguage = Literal[
    "python", "go", "javascript", "typescript", "java", "cpp",
    "csharp", "rust", "kotlin", "swift", "ruby", "php",
]

ALLOWED_LANGUAGES: List[str] = list(get_args(CodeLanguage))

DEFAULT_CANDIDATE_ID = "candidate-001"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class WireModel(BaseModel):
    """Base model accepting snake_case or camelCase keys and dumping camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_yaml_dict(self) -> dict:
        """Convert to a plain dictionary suitable for YAML/JSON serialization."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RubricCriterion(WireModel):
    """Weighted rubric criterion attached to a question."""
    label: str = Field(description="Name of the criterion")
    weight: float = Field(gt=0, le=1, description="Direct multiplier on the final score")
    description: str = Field(description="What the criterion checks")


class Option(WireModel):
    """A multiple-choice option."""
    id: str
    label: str
    text: str


class CodeTemplate(WireModel):
    """Starter code for one language.

    The language is left open so remote payloads can be filtered against
    ALLOWED_LANGUAGES instead of rejected outright.
    """
    language: str
    starter: str


class TestCase(WireModel):
    """Input/expected pair for the coding checker."""
    __test__ = False  # keep pytest from collecting this model

    input: str
    expected: str
    hidden: bool = False


class Question(WireModel):
    """A single question in an assessment."""
    id: str
    topic: str
    sub_topic: str
    difficulty: Difficulty
    kind: QuestionKind
    prompt: str
    definitions: Optional[Dict[str, str]] = None
    options: Optional[List[Option]] = None
    correct_option_id: Optional[str] = None
    rubric: List[RubricCriterion] = Field(min_length=1)
    estimated_seconds: int
    code_templates: Optional[List[CodeTemplate]] = None
    test_cases: Optional[List[TestCase]] = None


class Assessment(WireModel):
    """An ordered, difficulty-ramped question set for one subject."""
    id: str
    subject: str
    title: str
    created_at: str
    questions: List[Question]
    reading_time_minutes: int
    strategy_note: str

    def find_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


class CodeSnapshot(WireModel):
    """One frame of a candidate's coding history, kept with the attempt snapshot."""
    at_ms: int
    language: CodeLanguage
    code: str


class CandidateAnswer(WireModel):
    """A candidate's answer to one question, mutated as the attempt progresses."""
    question_id: str
    selected_option_id: Optional[str] = None
    descriptive_answer: Optional[str] = None
    code_by_language: Dict[str, str] = Field(default_factory=dict)
    selected_language: Optional[CodeLanguage] = None
    confirmed: bool = False
    flagged: bool = False
    time_spent_seconds: float = 0
    code_timeline: List[CodeSnapshot] = Field(default_factory=list)

    def selected_code(self) -> str:
        """Code for the selected language, defaulting to python."""
        return self.code_by_language.get(self.selected_language or "python") or ""


class ScoreBreakdown(WireModel):
    """A rubric line item."""
    criterion: str
    score: int
    max_score: int
    reasoning: str


class Evaluation(WireModel):
    """Scoring outcome for one question."""
    question_id: str
    score: int = Field(description="Heuristic score on the 0-10 scale, or a reviewer override stored as given")
    max_score: int = 10
    confidence: float = Field(ge=0, le=1)
    borderline: bool
    reasoning_trace: str
    rubric_scores: List[ScoreBreakdown]


class TopicScore(WireModel):
    topic: str
    score_pct: int


class TimelinePoint(WireModel):
    index: int
    accuracy_pct: int
    avg_time: int


class RadarPoint(WireModel):
    topic: str
    score: int


class ReviewerOverride(WireModel):
    """Audit record of a reviewer changing a question score."""
    question_id: str
    previous_score: int
    new_score: int
    note: str
    at: str = Field(default_factory=utc_now_iso)


class Report(WireModel):
    """Aggregated, reviewer-facing result of one candidate attempt."""
    assessment_id: str
    candidate_id: str = DEFAULT_CANDIDATE_ID
    submitted_at: str = Field(default_factory=utc_now_iso)
    total_score: int
    max_score: int
    percentile: int
    evaluations: List[Evaluation]
    strongest_topics: List[TopicScore] = Field(default_factory=list)
    weakest_topics: List[TopicScore] = Field(default_factory=list)
    timeline: List[TimelinePoint] = Field(default_factory=list)
    topic_radar: List[RadarPoint] = Field(default_factory=list)
    reviewer_overrides: List[ReviewerOverride] = Field(default_factory=list)


class ReviewerCalibration(WireModel):
    """Per-subject multiplier learned from reviewer overrides."""
    subject: str
    adjustment_factor: float = Field(default=1.0, ge=0.7, le=1.3)
    override_count: int = 0
