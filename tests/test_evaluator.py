"""Tests for end-to-end evaluation, reviewer overrides, and replay."""

import pytest

from redpen.assessment.calibration import default_calibration
from redpen.assessment.evaluator import (
    DEFAULT_OVERRIDE_NOTE,
    apply_override,
    evaluate,
    evaluate_question,
    replay_report,
)
from redpen.assessment.models import Assessment, CandidateAnswer, Report, ReviewerCalibration
from redpen.assessment.report import percentile_for
from redpen.assessment.synthesizer import synthesize_assessment

SOLUTION = """# O(n) time: count characters, then scan for the first unique one
def first_unique_char(s):
    counts = {}
    for ch in s:
        counts[ch] = counts.get(ch, 0) + 1
    for i, ch in enumerate(s):
        if counts[ch] == 1:
            return i
    return -1
"""

ESSAY = (
    "Assumptions: requests are independent and the dataset fits in memory.\n"
    "Approach: measure the growth rate first, then pick the structure whose asymptotic cost "
    "matches the expected input size. The tradeoff is memory against latency.\n"
    "Failure cases: very large inputs and retries of non-idempotent operations."
)


@pytest.fixture(scope="module")
def assessment():
    return synthesize_assessment("Computer Science")


def _strong_answer(question):
    if question.kind == "mcq":
        return CandidateAnswer(question_id=question.id, selected_option_id="b", time_spent_seconds=40)
    if question.kind == "descriptive":
        return CandidateAnswer(question_id=question.id, descriptive_answer=ESSAY, time_spent_seconds=120)
    return CandidateAnswer(question_id=question.id, code_by_language={"python": SOLUTION}, time_spent_seconds=300)


@pytest.fixture
def strong_answers(assessment):
    return [_strong_answer(q) for q in assessment.questions]


def test_strong_attempt_scores_high(assessment, strong_answers):
    report = evaluate(assessment, strong_answers)

    assert report.max_score == 100
    assert report.total_score >= 80
    assert len(report.evaluations) == 10
    assert [e.question_id for e in report.evaluations] == [q.id for q in assessment.questions]
    for question, evaluation in zip(assessment.questions, report.evaluations):
        if question.kind == "mcq":
            assert evaluation.score == 10
            assert not evaluation.borderline
    assert report.percentile == 98
    assert report.candidate_id == "candidate-001"


def test_unanswered_attempt(assessment):
    report = evaluate(assessment, [])

    kinds = {e.question_id: q.kind for q, e in zip(assessment.questions, report.evaluations)}
    for evaluation in report.evaluations:
        kind = kinds[evaluation.question_id]
        if kind == "mcq":
            assert evaluation.score == 0
            assert not evaluation.borderline
        elif kind == "descriptive":
            assert evaluation.score == 0
            assert evaluation.confidence <= 0.45
            assert evaluation.borderline
        else:
            assert evaluation.score == 2
            assert evaluation.borderline
    assert report.total_score == 4
    assert report.percentile == 20
    assert all(point.avg_time == 0 for point in report.timeline)


def test_first_answer_per_question_wins(assessment):
    question = assessment.questions[0]
    answers = [
        CandidateAnswer(question_id=question.id, selected_option_id="b"),
        CandidateAnswer(question_id=question.id, selected_option_id="a"),
    ]
    report = evaluate(assessment, answers)
    assert report.evaluations[0].score == 10


def test_calibration_applied_to_every_question(assessment, strong_answers):
    calibration = ReviewerCalibration(subject="Computer Science", adjustment_factor=0.7)
    report = evaluate(assessment, strong_answers, calibration)
    assert all(e.score == 7 for e in report.evaluations)
    assert report.total_score == 70


def test_evaluate_question_line_items(assessment):
    question = assessment.questions[0]
    evaluation = evaluate_question(question, CandidateAnswer(question_id=question.id, selected_option_id="b"))
    assert evaluation.max_score == 10
    assert [item.score for item in evaluation.rubric_scores] == [8, 2]
    assert "kind=mcq" in evaluation.reasoning_trace


def test_empty_assessment():
    empty = Assessment(
        id="asmt-empty",
        subject="Computer Science",
        title="Empty",
        created_at="2024-01-01T00:00:00+00:00",
        questions=[],
        reading_time_minutes=0,
        strategy_note="",
    )
    report = evaluate(empty, [])
    assert report.total_score == 0
    assert report.max_score == 0
    assert report.percentile == 20
    assert report.evaluations == []
    assert report.timeline == []
    assert report.strongest_topics == []
    assert report.weakest_topics == []
    assert report.topic_radar == []


class TestApplyOverride:

    def test_override_updates_report_and_calibration(self, assessment, strong_answers):
        report = evaluate(assessment, strong_answers)
        calibration = default_calibration("Computer Science")

        updated, new_calibration = apply_override(report, calibration, "q-1", 10, 4)

        assert updated.evaluations[0].score == 4
        assert updated.total_score == report.total_score - 6
        assert len(updated.reviewer_overrides) == 1
        record = updated.reviewer_overrides[0]
        assert (record.question_id, record.previous_score, record.new_score) == ("q-1", 10, 4)
        assert record.note == DEFAULT_OVERRIDE_NOTE
        assert record.at

        assert new_calibration.adjustment_factor == pytest.approx(0.97)
        assert new_calibration.override_count == 1

        # Inputs untouched
        assert report.evaluations[0].score == 10
        assert report.reviewer_overrides == []
        assert calibration.override_count == 0

    def test_overrides_accumulate(self, assessment, strong_answers):
        report = evaluate(assessment, strong_answers)
        calibration = default_calibration("Computer Science")
        report, calibration = apply_override(report, calibration, "q-1", 10, 8, "partial credit")
        report, calibration = apply_override(report, calibration, "q-2", 10, 9)

        assert [o.question_id for o in report.reviewer_overrides] == ["q-1", "q-2"]
        assert report.reviewer_overrides[0].note == "partial credit"
        assert calibration.override_count == 2

    def test_new_score_stored_as_given(self, assessment, strong_answers):
        report = evaluate(assessment, strong_answers)
        updated, _ = apply_override(report, default_calibration("Computer Science"), "q-1", 10, 12)
        assert updated.evaluations[0].score == 12
        assert updated.total_score == report.total_score + 2

    def test_unknown_question(self, assessment, strong_answers):
        report = evaluate(assessment, strong_answers)
        updated, calibration = apply_override(report, default_calibration("Computer Science"), "q-99", 5, 7)
        assert updated.total_score == report.total_score
        assert len(updated.reviewer_overrides) == 1
        assert calibration.override_count == 1


def test_replay_report_keeps_reviewer_scores(assessment):
    answers = [
        CandidateAnswer(question_id="q-1", selected_option_id="b"),
        CandidateAnswer(question_id="q-3", descriptive_answer="short answer"),
    ]
    report = evaluate(assessment, answers, candidate_id="cand-9")
    assert report.evaluations[2].score == 3

    report, _ = apply_override(report, default_calibration("Computer Science"), "q-3", 3, 5)
    calibration = ReviewerCalibration(subject="Computer Science", adjustment_factor=1.3, override_count=1)
    replayed = replay_report(assessment, answers, calibration, report)

    assert replayed.candidate_id == "cand-9"
    assert replayed.evaluations[0].score == 10
    assert replayed.evaluations[2].score == 5
    # Empty coding answers are re-scored under the new factor: round(2 * 1.3) == 3
    assert replayed.evaluations[4].score == 3
    assert replayed.total_score == sum(e.score for e in replayed.evaluations)
    assert [o.question_id for o in replayed.reviewer_overrides] == ["q-3"]


def test_replay_uses_latest_override_per_question(assessment):
    answers = [CandidateAnswer(question_id="q-3", descriptive_answer="short answer")]
    report = evaluate(assessment, answers)
    calibration = default_calibration("Computer Science")
    report, calibration = apply_override(report, calibration, "q-3", 3, 9)
    report, calibration = apply_override(report, calibration, "q-3", 9, 7)

    replayed = replay_report(assessment, answers, calibration, report)

    assert replayed.evaluations[2].score == 7
    assert [o.new_score for o in replayed.reviewer_overrides] == [9, 7]
    assert replayed.percentile == percentile_for(replayed.total_score, replayed.max_score)


def test_out_of_range_override_survives_reload(assessment, strong_answers):
    report = evaluate(assessment, strong_answers)
    updated, calibration = apply_override(report, default_calibration("Computer Science"), "q-1", 10, 12)

    reloaded = Report.model_validate(updated.to_yaml_dict())
    assert reloaded.evaluations[0].score == 12
    assert reloaded.total_score == report.total_score + 2

    replayed = replay_report(assessment, strong_answers, calibration, reloaded)
    assert replayed.evaluations[0].score == 12
