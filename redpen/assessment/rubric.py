"""Rubric decomposition and borderline classification."""

from typing import List

from .models import Question, ScoreBreakdown
from .numeric import round_half_up

BORDERLINE_CONFIDENCE = 0.62
BORDERLINE_LOW = 4
BORDERLINE_HIGH = 6


def decompose_rubric(question: Question, final_score: int) -> List[ScoreBreakdown]:
    """
    Expand a final score into one line item per rubric criterion.

    Weights are applied as-is, so line items need not add up to the final
    score.
    """
    return [
        ScoreBreakdown(
            criterion=criterion.label,
            score=round_half_up(criterion.weight * final_score),
            max_score=max(1, round_half_up(criterion.weight * 10)),
            reasoning=f"{criterion.label} assessed from answer structure and correctness signals.",
        )
        for criterion in question.rubric
    ]


def is_borderline(question: Question, score: int, confidence: float) -> bool:
    """Flag for human review: low confidence, or a mid-range non-mcq score."""
    if confidence < BORDERLINE_CONFIDENCE:
        return True
    return question.kind != "mcq" and BORDERLINE_LOW <= score <= BORDERLINE_HIGH


def reasoning_trace(question: Question, confidence: float) -> str:
    return (
        f"Model notes: difficulty={question.difficulty}, kind={question.kind}, "
        f"confidence={confidence:.2f}. Score derived from rubric coverage, "
        "correctness signals, and clarity indicators."
    )
