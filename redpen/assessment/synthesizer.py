"""Deterministic question synthesis with a difficulty ramp."""

import logging
import math
import time
from typing import Dict, List, Optional

from .glossary import CS_GLOSSARY, glossary_for_subject
from .models import (
    Assessment,
    CodeTemplate,
    Difficulty,
    Option,
    Question,
    QuestionKind,
    RubricCriterion,
    TestCase,
    utc_now_iso,
)
from .numeric import round_half_up

LOG = logging.getLogger(__name__)

DIFFICULTY_WEIGHT: Dict[str, float] = {
    "easy": 1,
    "medium": 1.4,
    "hard": 1.8,
}

DEFAULT_QUESTION_COUNT = 9

QUESTION_COUNT_BY_SUBJECT: Dict[str, int] = {
    "Computer Science": 10,
    "Machine Learning": 9,
    "System Design": 8,
    "Data Structures": 10,
}

DEFAULT_STRATEGY = "Starts from fundamentals and progressively increases abstraction and ambiguity."

STRATEGY_BY_SUBJECT: Dict[str, str] = {
    "Computer Science": (
        "Starts with core recall, transitions to complexity reasoning, "
        "and finishes with synthesis + implementation."
    ),
    "Machine Learning": (
        "Begins with concept checks, moves into tradeoff analysis, "
        "then model critique and implementation choices."
    ),
    "System Design": (
        "Starts at requirement clarity, advances into scaling constraints, "
        "and ends with failure-mode reasoning."
    ),
    "Data Structures": (
        "Moves from identification to complexity tradeoffs and "
        "implementation-level edge-case handling."
    ),
}

MCQ_SUB_TOPICS = ["Foundations", "Algorithms", "Systems", "Reasoning"]

RUBRIC_TEMPLATES: Dict[str, List[RubricCriterion]] = {
    "mcq": [
        RubricCriterion(label="Concept Correctness", weight=0.8, description="Checks the core concept."),
        RubricCriterion(label="Decision Quality", weight=0.2, description="Checks choice under constraints."),
    ],
    "coding": [
        RubricCriterion(label="Correctness", weight=0.45, description="Passes required scenarios."),
        RubricCriterion(label="Complexity", weight=0.25, description="Time/space quality."),
        RubricCriterion(label="Code clarity", weight=0.15, description="Readable and structured."),
        RubricCriterion(label="Edge cases", weight=0.15, description="Handles corner conditions."),
    ],
    "descriptive": [
        RubricCriterion(label="Technical depth", weight=0.4, description="Correct and nuanced reasoning."),
        RubricCriterion(label="Structure", weight=0.25, description="Clear argument flow."),
        RubricCriterion(label="Tradeoff analysis", weight=0.35, description="Competing choices explained."),
    ],
}

MCQ_OPTIONS = [
    Option(id="a", label="1", text="The first statement is always optimal regardless of scale."),
    Option(id="b", label="2", text="The tradeoff depends on growth rate and constraints; asymptotics matter."),
    Option(id="c", label="3", text="Complexity classes are irrelevant if latency is low on small inputs."),
    Option(id="d", label="4", text="Both options are equivalent once optimized by compilers."),
]
MCQ_CORRECT_OPTION_ID = "b"

# The canonical coding problem: index of the first non-repeating character, or -1.
CODING_PROMPT = (
    "Implement `first_unique_char(s)` returning the index of the first non-repeating "
    "character or `-1`. Explain complexity briefly in a comment."
)

CODING_TEMPLATES = [
    CodeTemplate(
        language="python",
        starter="def first_unique_char(s: str) -> int:\n    # write solution\n    return -1\n",
    ),
    CodeTemplate(
        language="go",
        starter="package main\n\nfunc firstUniqueChar(s string) int {\n\t// write solution\n\treturn -1\n}\n",
    ),
]

CODING_TEST_CASES = [
    TestCase(input='"leetcode"', expected="0"),
    TestCase(input='"aabb"', expected="-1"),
    TestCase(input='"abac"', expected="1", hidden=True),
    TestCase(input='"xxyz"', expected="2", hidden=True),
]

REFINED_VARIANT_NOTE = "(Refined variant with different framing and an extra edge condition.)"


def difficulty_for_index(index: int, total: int) -> Difficulty:
    """Map a zero-based question position onto the easy -> medium -> hard ramp."""
    position = index / max(total - 1, 1)
    if position < 0.35:
        return "easy"
    if position < 0.75:
        return "medium"
    return "hard"


def kind_for_index(index: int) -> QuestionKind:
    """Every fifth slot is coding, every third remaining slot is descriptive."""
    if index % 5 == 4:
        return "coding"
    if index % 3 == 2:
        return "descriptive"
    return "mcq"


def estimated_seconds_for(index: int, difficulty: Difficulty) -> int:
    return round_half_up((95 + index * 18) * DIFFICULTY_WEIGHT[difficulty])


def question_count_for(subject: str) -> int:
    return QUESTION_COUNT_BY_SUBJECT.get(subject, DEFAULT_QUESTION_COUNT)


def reading_time_minutes(questions: List[Question]) -> int:
    """Minutes of reading across all prompts (18 chars per word, 220 words per minute)."""
    words = sum(len(q.prompt) / 18 for q in questions)
    return math.ceil(words / 220)


def build_question(subject: str, index: int, total: int, glossary: Dict[str, str]) -> Question:
    """Build the question at ``index`` of a ``total``-question assessment."""
    difficulty = difficulty_for_index(index, total)
    kind = kind_for_index(index)

    terms = list(glossary.keys())
    term = terms[index % len(terms)]
    term2 = terms[(index + 2) % len(terms)]

    rubric = [criterion.model_copy() for criterion in RUBRIC_TEMPLATES[kind]]
    estimated_seconds = estimated_seconds_for(index, difficulty)
    question_id = f"q-{index + 1}"

    shared_prompt = (
        f"In {subject}, explain how **{term}** influences system behavior. "
        f"Include a concise contrast with **{term2}**. "
        "Also evaluate this expression: $O(n \\log n)$ vs $O(n^2)$ for $n=10^5$."
    )

    if kind == "mcq":
        return Question(
            id=question_id,
            topic=subject,
            sub_topic=MCQ_SUB_TOPICS[index % len(MCQ_SUB_TOPICS)],
            difficulty=difficulty,
            kind=kind,
            prompt=f"{shared_prompt}\n\nPick the most defensible statement.",
            definitions={term: glossary[term], term2: glossary[term2]},
            options=[option.model_copy() for option in MCQ_OPTIONS],
            correct_option_id=MCQ_CORRECT_OPTION_ID,
            rubric=rubric,
            estimated_seconds=estimated_seconds,
        )

    if kind == "coding":
        return Question(
            id=question_id,
            topic=subject,
            sub_topic="Implementation",
            difficulty=difficulty,
            kind=kind,
            prompt=CODING_PROMPT,
            definitions={
                "invariant": CS_GLOSSARY["invariant"],
                "latency": CS_GLOSSARY["latency"],
            },
            rubric=rubric,
            estimated_seconds=estimated_seconds,
            code_templates=[template.model_copy() for template in CODING_TEMPLATES],
            test_cases=[case.model_copy() for case in CODING_TEST_CASES],
        )

    return Question(
        id=question_id,
        topic=subject,
        sub_topic="Analysis",
        difficulty=difficulty,
        kind=kind,
        prompt=(
            f"{shared_prompt}\n\n"
            "Write a structured answer with assumptions, approach, and failure cases."
        ),
        definitions={term: glossary[term], term2: glossary[term2]},
        rubric=rubric,
        estimated_seconds=estimated_seconds,
    )


def synthesize_assessment(subject: str, created_at: Optional[str] = None) -> Assessment:
    """
    Build a full assessment for ``subject``.

    Unknown subjects get the default question count, the CS glossary, and a
    generic strategy note. Never fails for a non-empty subject.

    Args:
        subject: Subject name, e.g. "Computer Science"
        created_at: Optional ISO timestamp (defaults to now)

    Returns:
        Assessment with a difficulty-ramped question set
    """
    total = question_count_for(subject)
    glossary = glossary_for_subject(subject)
    questions = [build_question(subject, i, total, glossary) for i in range(total)]

    assessment = Assessment(
        id=f"asmt-{int(time.time() * 1000)}",
        subject=subject,
        title=f"{subject} Adaptive Assessment",
        created_at=created_at or utc_now_iso(),
        questions=questions,
        reading_time_minutes=reading_time_minutes(questions),
        strategy_note=STRATEGY_BY_SUBJECT.get(subject, DEFAULT_STRATEGY),
    )
    LOG.debug("Synthesized %s with %d questions", assessment.id, total)
    return assessment


def regenerate_question(assessment: Assessment, question_id: str) -> Optional[Question]:
    """Return a reframed copy of one question, or None if the id is unknown."""
    question = assessment.find_question(question_id)
    if question is None:
        LOG.warning("Cannot regenerate unknown question %s in %s", question_id, assessment.id)
        return None

    return question.model_copy(update={
        "prompt": f"{question.prompt}\n\n{REFINED_VARIANT_NOTE}",
        "estimated_seconds": round_half_up(question.estimated_seconds * 1.1),
    })
