"""Bookkeeping for candidate answers during an attempt."""

from typing import Callable, List, Sequence

from .models import CandidateAnswer
from .numeric import round_half_up


def ensure_answer(answers: Sequence[CandidateAnswer], question_id: str) -> CandidateAnswer:
    """Existing answer for the question, or a fresh one with zero time spent."""
    for answer in answers:
        if answer.question_id == question_id:
            return answer
    return CandidateAnswer(question_id=question_id)


def update_answer(
    answers: Sequence[CandidateAnswer],
    question_id: str,
    updater: Callable[[CandidateAnswer], CandidateAnswer],
) -> List[CandidateAnswer]:
    """
    Apply ``updater`` to the question's answer, creating it lazily.

    The updated answer moves to the end of the list; answers are never
    removed.
    """
    updated = updater(ensure_answer(answers, question_id))
    return [a for a in answers if a.question_id != question_id] + [updated]


def is_answered(answer: CandidateAnswer) -> bool:
    return bool(
        answer.confirmed
        or answer.selected_option_id
        or answer.descriptive_answer
        or answer.code_by_language
    )


def answer_completion_pct(answers: Sequence[CandidateAnswer], total: int) -> int:
    """Share of the ``total`` questions that have any answer content, as a percentage."""
    if total == 0:
        return 0
    completed = sum(1 for answer in answers if is_answered(answer))
    return round_half_up(completed / total * 100)


def total_time_spent(answers: Sequence[CandidateAnswer]) -> float:
    return sum(answer.time_spent_seconds for answer in answers)
