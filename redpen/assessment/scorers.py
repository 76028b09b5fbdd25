"""Heuristic answer scorers, one per question kind."""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .models import CandidateAnswer, Question, ReviewerCalibration, TestCase
from .numeric import clamp, round_half_up
from .synthesizer import DIFFICULTY_WEIGHT

LOG = logging.getLogger(__name__)

MAX_SCORE = 10

CHOICE_CONFIDENCE = 0.95
NO_TEST_CASES_CONFIDENCE = 0.35

STRUCTURE_PATTERN = re.compile(r"assumption|tradeoff|edge|complexity", re.IGNORECASE)
CLARITY_PATTERN = re.compile(r"\n|\.|:")

# Textual markers the coding checker looks for; this is not an interpreter.
MAP_PATTERN = re.compile(r"dict|map|make\(|\{\}", re.IGNORECASE)
LOOP_PATTERN = re.compile(r"\bfor\b|\bwhile\b|range|count|len\(", re.IGNORECASE)
COMPLEXITY_PATTERN = re.compile(r"O\(|complex", re.IGNORECASE)
EDGE_CASE_PATTERN = re.compile(
    r'-1|empty|len\(s\)==0|if s == ""|if len\(s\) == 0', re.IGNORECASE
)


@dataclass(frozen=True)
class ScoreResult:
    """Score on the 0-10 scale plus how much the heuristic trusts it."""
    score: int
    confidence: float


def apply_calibration(raw_score: int, calibration: Optional[ReviewerCalibration]) -> int:
    """Scale a raw score by the reviewer calibration factor, kept within 0-10."""
    if calibration is None:
        return raw_score
    return int(clamp(0, MAX_SCORE, round_half_up(raw_score * calibration.adjustment_factor)))


class AnswerScorer:
    """Extension point for per-kind scoring strategies."""

    supported_kinds: tuple[str, ...] = ()

    def matches(self, question: Question) -> bool:
        return question.kind in self.supported_kinds

    def raw_score(self, question: Question, answer: CandidateAnswer) -> ScoreResult:
        raise NotImplementedError

    def score(
        self,
        question: Question,
        answer: Optional[CandidateAnswer],
        calibration: Optional[ReviewerCalibration] = None,
    ) -> ScoreResult:
        """Score an answer; a missing answer is scored as an empty one."""
        if answer is None:
            answer = CandidateAnswer(question_id=question.id)
        raw = self.raw_score(question, answer)
        return ScoreResult(
            score=apply_calibration(raw.score, calibration),
            confidence=raw.confidence,
        )


class ChoiceScorer(AnswerScorer):
    supported_kinds = ("mcq",)

    def raw_score(self, question: Question, answer: CandidateAnswer) -> ScoreResult:
        correct = (
            answer.selected_option_id is not None
            and answer.selected_option_id == question.correct_option_id
        )
        return ScoreResult(score=MAX_SCORE if correct else 0, confidence=CHOICE_CONFIDENCE)


class FreeTextScorer(AnswerScorer):
    """Scores descriptive answers on length, structure keywords, and punctuation."""

    supported_kinds = ("descriptive",)

    def raw_score(self, question: Question, answer: CandidateAnswer) -> ScoreResult:
        text = (answer.descriptive_answer or "").strip()
        confidence = min(0.9, 0.45 + len(text) / 1200)
        if not text:
            return ScoreResult(score=0, confidence=confidence)

        length_score = min(len(text) / 240, 1) * 5
        structure_bonus = 3 if STRUCTURE_PATTERN.search(text) else 1.5
        clarity_bonus = 2 if CLARITY_PATTERN.search(text) else 1
        raw = (length_score + structure_bonus + clarity_bonus) * DIFFICULTY_WEIGHT[question.difficulty]
        return ScoreResult(score=min(round_half_up(raw), MAX_SCORE), confidence=confidence)


def check_first_unique_char(code: str, test_input: str) -> str:
    """
    Pattern-heuristic stand-in for running the candidate's code.

    Computes the first-unique-character index of ``test_input`` only when the
    code shows both a map construction and an iteration construct; otherwise
    reports "-1" as a solution that never finds anything would.
    """
    if not code:
        return "-1"
    if not (MAP_PATTERN.search(code) and LOOP_PATTERN.search(code)):
        return "-1"

    text = test_input.replace('"', "")
    counts = Counter(text)
    for index, char in enumerate(text):
        if counts[char] == 1:
            return str(index)
    return "-1"


class CodingScorer(AnswerScorer):
    """Scores code with the first-unique-character checker plus style bonuses."""

    supported_kinds = ("coding",)

    def run_cases(self, code: str, test_cases: Sequence[TestCase]) -> List[bool]:
        return [check_first_unique_char(code, case.input) == case.expected for case in test_cases]

    def raw_score(self, question: Question, answer: CandidateAnswer) -> ScoreResult:
        test_cases = question.test_cases or []
        if not test_cases:
            return ScoreResult(score=0, confidence=NO_TEST_CASES_CONFIDENCE)

        code = answer.selected_code()
        results = self.run_cases(code, test_cases)
        passed_fraction = sum(results) / len(test_cases)

        complexity_bonus = 1.5 if COMPLEXITY_PATTERN.search(code) else 0.2
        edge_case_bonus = 1.5 if EDGE_CASE_PATTERN.search(code) else 0.5
        score = round_half_up(min(MAX_SCORE, passed_fraction * 7 + complexity_bonus + edge_case_bonus))

        LOG.debug("Question %s: %d/%d cases matched", question.id, sum(results), len(test_cases))
        return ScoreResult(score=score, confidence=min(0.95, 0.45 + passed_fraction / 2))


def default_scorers() -> List[AnswerScorer]:
    return [ChoiceScorer(), FreeTextScorer(), CodingScorer()]


class ScorerRegistry:
    """Dispatches a question to the scorer registered for its kind."""

    def __init__(self, scorers: Optional[Sequence[AnswerScorer]] = None) -> None:
        self._by_kind: Dict[str, AnswerScorer] = {}
        for scorer in scorers or default_scorers():
            self.register(scorer)

    def register(self, scorer: AnswerScorer) -> None:
        """Register ``scorer`` for its kinds, replacing any earlier one."""
        for kind in scorer.supported_kinds:
            self._by_kind[kind] = scorer

    def scorer_for(self, question: Question) -> AnswerScorer:
        try:
            return self._by_kind[question.kind]
        except KeyError:
            raise ValueError(f"No scorer registered for question kind {question.kind!r}") from None

    def score(
        self,
        question: Question,
        answer: Optional[CandidateAnswer],
        calibration: Optional[ReviewerCalibration] = None,
    ) -> ScoreResult:
        return self.scorer_for(question).score(question, answer, calibration)
