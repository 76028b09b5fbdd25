"""Aggregate per-question evaluations into report analytics."""

from typing import Dict, List, Optional, Sequence, Tuple

from .models import (
    DEFAULT_CANDIDATE_ID,
    Assessment,
    CandidateAnswer,
    Evaluation,
    RadarPoint,
    Report,
    TimelinePoint,
    TopicScore,
    utc_now_iso,
)
from .numeric import clamp, round_half_up

PERCENTILE_FLOOR = 20
PERCENTILE_CEILING = 98
PERCENTILE_OFFSET = 9
TOPIC_HIGHLIGHTS = 3


def percentile_for(total_score: float, max_score: float) -> int:
    """
    Placeholder percentile: the score percentage shifted up by 9, within [20, 98].

    This is a fixed affine mapping, not a population statistic.
    """
    ratio = total_score / max_score if max_score else 0
    return int(clamp(PERCENTILE_FLOOR, PERCENTILE_CEILING, round_half_up(ratio * 100 + PERCENTILE_OFFSET)))


def topic_scores(assessment: Assessment, evaluations: Sequence[Evaluation]) -> List[TopicScore]:
    """Average score percentage per sub-topic, in encounter order."""
    by_question = {evaluation.question_id: evaluation for evaluation in evaluations}
    totals: Dict[str, Tuple[int, int]] = {}
    for question in assessment.questions:
        evaluation = by_question.get(question.id)
        if evaluation is None:
            continue
        score_sum, count = totals.get(question.sub_topic, (0, 0))
        totals[question.sub_topic] = (score_sum + evaluation.score, count + 1)

    return [
        TopicScore(topic=topic, score_pct=round_half_up(score_sum / (count * 10) * 100))
        for topic, (score_sum, count) in totals.items()
    ]


def strongest_and_weakest(topics: Sequence[TopicScore]) -> Tuple[List[TopicScore], List[TopicScore]]:
    """Top three and bottom three topics; ties keep encounter order."""
    ranked = sorted(topics, key=lambda t: t.score_pct, reverse=True)
    strongest = ranked[:TOPIC_HIGHLIGHTS]
    weakest = list(reversed(ranked[-TOPIC_HIGHLIGHTS:])) if ranked else []
    return strongest, weakest


def build_timeline(
    question_count: int,
    evaluations: Sequence[Evaluation],
    answers: Sequence[CandidateAnswer],
) -> List[TimelinePoint]:
    """Cumulative accuracy and average time spent at each question position."""
    timeline = []
    for i in range(1, question_count + 1):
        seen = evaluations[:i]
        seen_score = sum(e.score for e in seen)
        accuracy_pct = round_half_up(seen_score / (len(seen) * 10) * 100) if seen else 0

        answered = answers[:i]
        avg_time = (
            round_half_up(sum(a.time_spent_seconds for a in answered) / len(answered))
            if answered else 0
        )
        timeline.append(TimelinePoint(index=i, accuracy_pct=accuracy_pct, avg_time=avg_time))
    return timeline


def build_report(
    assessment: Assessment,
    answers: Sequence[CandidateAnswer],
    evaluations: List[Evaluation],
    candidate_id: str = DEFAULT_CANDIDATE_ID,
    submitted_at: Optional[str] = None,
) -> Report:
    """
    Fold evaluations into a Report.

    Args:
        assessment: The assessment that was taken
        answers: Candidate answers in the order they were recorded
        evaluations: One evaluation per question, in question order
        candidate_id: Candidate identifier
        submitted_at: Optional ISO timestamp (defaults to now)

    Returns:
        Report with totals, percentile, topic highlights, timeline, and radar
    """
    total_score = sum(e.score for e in evaluations)
    max_score = len(evaluations) * 10

    topics = topic_scores(assessment, evaluations)
    strongest, weakest = strongest_and_weakest(topics)

    return Report(
        assessment_id=assessment.id,
        candidate_id=candidate_id,
        submitted_at=submitted_at or utc_now_iso(),
        total_score=total_score,
        max_score=max_score,
        percentile=percentile_for(total_score, max_score),
        evaluations=evaluations,
        strongest_topics=strongest,
        weakest_topics=weakest,
        timeline=build_timeline(len(assessment.questions), evaluations, answers),
        topic_radar=[RadarPoint(topic=t.topic, score=t.score_pct) for t in topics],
        reviewer_overrides=[],
    )
