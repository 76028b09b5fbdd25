"""Entry points for scoring an attempt and applying reviewer overrides."""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .calibration import update_calibration
from .models import (
    DEFAULT_CANDIDATE_ID,
    Assessment,
    CandidateAnswer,
    Evaluation,
    Question,
    Report,
    ReviewerCalibration,
    ReviewerOverride,
)
from .report import build_report
from .rubric import decompose_rubric, is_borderline, reasoning_trace
from .scorers import ScorerRegistry
from .synthesizer import synthesize_assessment

LOG = logging.getLogger(__name__)

__all__ = ["synthesize_assessment", "evaluate", "evaluate_question", "apply_override", "replay_report"]

DEFAULT_OVERRIDE_NOTE = "Manual reviewer adjustment"


def _answers_by_question(answers: Sequence[CandidateAnswer]) -> Dict[str, CandidateAnswer]:
    by_question: Dict[str, CandidateAnswer] = {}
    for answer in answers:
        by_question.setdefault(answer.question_id, answer)
    return by_question


def evaluate_question(
    question: Question,
    answer: Optional[CandidateAnswer],
    calibration: Optional[ReviewerCalibration] = None,
    scorers: Optional[ScorerRegistry] = None,
) -> Evaluation:
    """Score one question and expand the result into rubric line items."""
    scorers = scorers or ScorerRegistry()
    result = scorers.score(question, answer, calibration)
    return Evaluation(
        question_id=question.id,
        score=result.score,
        max_score=10,
        confidence=result.confidence,
        borderline=is_borderline(question, result.score, result.confidence),
        reasoning_trace=reasoning_trace(question, result.confidence),
        rubric_scores=decompose_rubric(question, result.score),
    )


def evaluate(
    assessment: Assessment,
    answers: Sequence[CandidateAnswer],
    calibration: Optional[ReviewerCalibration] = None,
    candidate_id: str = DEFAULT_CANDIDATE_ID,
    scorers: Optional[ScorerRegistry] = None,
) -> Report:
    """
    Score every question of an attempt and aggregate the report.

    Questions without an answer are scored as empty answers. An assessment
    with no questions yields a 0/0 report with empty aggregates.

    Args:
        assessment: The assessment that was taken
        answers: Candidate answers, in the order they were recorded
        calibration: Optional reviewer calibration applied to every raw score
        candidate_id: Candidate identifier for the report
        scorers: Optional scorer registry (defaults to the heuristic scorers)

    Returns:
        Report for the attempt
    """
    scorers = scorers or ScorerRegistry()
    by_question = _answers_by_question(answers)

    evaluations = [
        evaluate_question(question, by_question.get(question.id), calibration, scorers)
        for question in assessment.questions
    ]

    report = build_report(assessment, answers, evaluations, candidate_id=candidate_id)
    LOG.info(
        "Evaluated %s for %s: %d/%d (percentile %d, %d borderline)",
        assessment.id, candidate_id, report.total_score, report.max_score,
        report.percentile, sum(1 for e in evaluations if e.borderline),
    )
    return report


def apply_override(
    report: Report,
    calibration: ReviewerCalibration,
    question_id: str,
    previous_score: int,
    new_score: int,
    note: str = "",
) -> Tuple[Report, ReviewerCalibration]:
    """
    Record a reviewer override on a report and fold it into the calibration.

    ``new_score`` is stored as given; keeping it within 0-10 is the caller's
    responsibility.

    Returns:
        (updated report, updated calibration); inputs are not modified
    """
    evaluations: List[Evaluation] = [
        evaluation.model_copy(update={"score": new_score})
        if evaluation.question_id == question_id else evaluation
        for evaluation in report.evaluations
    ]
    if not any(e.question_id == question_id for e in report.evaluations):
        LOG.warning("Override for %s does not match any evaluation in %s", question_id, report.assessment_id)

    override = ReviewerOverride(
        question_id=question_id,
        previous_score=previous_score,
        new_score=new_score,
        note=note or DEFAULT_OVERRIDE_NOTE,
    )
    updated_report = report.model_copy(update={
        "evaluations": evaluations,
        "total_score": sum(e.score for e in evaluations),
        "reviewer_overrides": [*report.reviewer_overrides, override],
    })
    updated_calibration = update_calibration(calibration, previous_score, new_score)

    LOG.info(
        "Override on %s/%s: %s -> %s", report.assessment_id, question_id, previous_score, new_score
    )
    return updated_report, updated_calibration


def replay_report(
    assessment: Assessment,
    answers: Sequence[CandidateAnswer],
    calibration: ReviewerCalibration,
    previous: Report,
    scorers: Optional[ScorerRegistry] = None,
) -> Report:
    """
    Re-score an attempt under an updated calibration, keeping the override history.

    Questions a reviewer overrode keep the latest override score; every other
    question is re-scored from the answers. Totals, percentile, and topic
    analytics are rebuilt from the resulting evaluations.
    """
    scorers = scorers or ScorerRegistry()
    by_question = _answers_by_question(answers)
    overridden = {record.question_id: record.new_score for record in previous.reviewer_overrides}

    evaluations = []
    for question in assessment.questions:
        evaluation = evaluate_question(question, by_question.get(question.id), calibration, scorers)
        if question.id in overridden:
            evaluation = evaluation.model_copy(update={"score": overridden[question.id]})
        evaluations.append(evaluation)

    report = build_report(assessment, answers, evaluations, candidate_id=previous.candidate_id)
    LOG.info(
        "Replayed %s for %s with factor %.3f: %d/%d (%d overridden)",
        assessment.id, previous.candidate_id, calibration.adjustment_factor,
        report.total_score, report.max_score, len(overridden),
    )
    return report.model_copy(update={"reviewer_overrides": list(previous.reviewer_overrides)})
