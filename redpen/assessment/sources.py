"""Assessment sources: a remote LLM-backed source with a deterministic fallback."""

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, Optional, Sequence

from pydantic import ValidationError

from redpen.libs.config_loader import ConfigType, get_config
from redpen.libs.llm import create_agent, has_remote_credentials
from .evaluator import evaluate, synthesize_assessment
from .models import (
    ALLOWED_LANGUAGES,
    Assessment,
    CandidateAnswer,
    Question,
    Report,
    ReviewerCalibration,
)
from .synthesizer import regenerate_question

LOG = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.35
DEFAULT_TIMEOUT_SECONDS = 22

SYSTEM_PROMPT = (
    "You generate and evaluate adaptive interview assessments with rubric transparency. "
    "Return strict JSON only, with camelCase keys, and no commentary outside the JSON."
)

FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
BARE_JSON = re.compile(r"{.*}", re.DOTALL)


class RemoteSourceError(Exception):
    """Raised when the remote generator fails after all retry attempts."""


def parse_json_payload(text: str) -> Any:
    """
    Extract a JSON object from model output.

    Accepts a ```json fenced block or falls back to the outermost braces.

    Raises:
        ValueError: If no JSON object can be decoded
    """
    fenced = FENCED_JSON.search(text)
    if fenced:
        return json.loads(fenced.group(1))
    bare = BARE_JSON.search(text)
    if bare:
        return json.loads(bare.group())
    raise ValueError("Response did not contain a JSON object")


def restrict_code_languages(assessment: Assessment) -> Assessment:
    """Drop code templates for languages the editor does not support."""
    questions = [
        q.model_copy(update={
            "code_templates": [t for t in q.code_templates if t.language in ALLOWED_LANGUAGES]
        }) if q.code_templates is not None else q
        for q in assessment.questions
    ]
    return assessment.model_copy(update={"questions": questions})


class AssessmentSource:
    """Produces assessments, reports, and regenerated questions."""

    name = "base"

    def generate(self, subject: str) -> Assessment:
        raise NotImplementedError

    def evaluate(
        self,
        assessment: Assessment,
        answers: Sequence[CandidateAnswer],
        calibration: Optional[ReviewerCalibration] = None,
    ) -> Report:
        raise NotImplementedError

    def regenerate(self, assessment: Assessment, question_id: str) -> Optional[Question]:
        raise NotImplementedError


class DeterministicSource(AssessmentSource):
    """Reproducible synthesizer and heuristic scorers; never fails on valid input."""

    name = "deterministic"

    def generate(self, subject: str) -> Assessment:
        return synthesize_assessment(subject)

    def evaluate(
        self,
        assessment: Assessment,
        answers: Sequence[CandidateAnswer],
        calibration: Optional[ReviewerCalibration] = None,
    ) -> Report:
        return evaluate(assessment, answers, calibration)

    def regenerate(self, assessment: Assessment, question_id: str) -> Optional[Question]:
        return regenerate_question(assessment, question_id)


class RemoteSource(AssessmentSource):
    """
    LLM-backed source that validates every payload before trusting it.

    Transport failures and timeouts are retried with linear backoff. A payload
    that fails validation, or a call that exhausts its retries, is discarded
    and the fallback source answers instead, so callers always get a result.
    """

    name = "remote"

    def __init__(
        self,
        configs: ConfigType,
        fallback: Optional[AssessmentSource] = None,
        agent: Any = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the remote source.

        Args:
            configs: Configuration dictionary (openai.* and remote.* keys)
            fallback: Source used when the remote call fails (default: DeterministicSource)
            agent: Pre-built pydantic-ai Agent (default: created from configs)
            sleep: Coroutine used for backoff delays
        """
        self.configs = configs
        self.fallback = fallback or DeterministicSource()
        self.max_attempts = int(get_config("remote.max_attempts", configs, default=DEFAULT_MAX_ATTEMPTS))
        self.backoff_seconds = float(get_config("remote.backoff_seconds", configs, default=DEFAULT_BACKOFF_SECONDS))
        self.timeout_seconds = float(get_config("remote.timeout_seconds", configs, default=DEFAULT_TIMEOUT_SECONDS))
        self._sleep = sleep
        self.agent = agent or create_agent(configs=configs, system_prompt=SYSTEM_PROMPT)

    async def _run_json(self, prompt: str) -> Any:
        """Run the agent with retries and decode the JSON payload it returns."""
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await asyncio.wait_for(self.agent.run(prompt), timeout=self.timeout_seconds)
            except Exception as exc:  # pylint: disable=broad-except
                last_error = exc
                LOG.warning("Remote call attempt %d/%d failed: %s", attempt, self.max_attempts, exc)
                if attempt < self.max_attempts:
                    await self._sleep(self.backoff_seconds * attempt)
                continue

            if hasattr(result, 'output'):
                response_text = str(result.output)
            elif hasattr(result, 'data'):
                response_text = str(result.data)
            else:
                response_text = str(result)
            return parse_json_payload(response_text)

        raise RemoteSourceError(f"Remote generator failed after {self.max_attempts} attempts: {last_error}")

    async def generate_async(self, subject: str) -> Assessment:
        prompt = (
            f"Generate one assessment for subject: {subject}. Include id, title, subject, createdAt, "
            "readingTimeMinutes, strategyNote and questions[]. Questions must ramp easy->hard and "
            "include mcq, descriptive, and coding kinds; coding templates should include at least "
            "python and go."
        )
        try:
            payload = await self._run_json(prompt)
            assessment = Assessment.model_validate(payload)
        except (RemoteSourceError, ValidationError, ValueError) as exc:
            LOG.warning("Remote assessment for %r unusable, using %s: %s", subject, self.fallback.name, exc)
            return self.fallback.generate(subject)
        return restrict_code_languages(assessment)

    async def evaluate_async(
        self,
        assessment: Assessment,
        answers: Sequence[CandidateAnswer],
        calibration: Optional[ReviewerCalibration] = None,
    ) -> Report:
        request = {
            "assessment": assessment.to_yaml_dict(),
            "answers": [answer.to_yaml_dict() for answer in answers],
            "calibration": calibration.to_yaml_dict() if calibration else None,
        }
        prompt = (
            "Evaluate these interview answers and return the final report as JSON. Provide "
            "per-question score (0-10), confidence, borderline flag, reasoningTrace, and rubricScores.\n\n"
            + json.dumps(request, ensure_ascii=True)
        )
        try:
            payload = await self._run_json(prompt)
            report = Report.model_validate(payload)
        except (RemoteSourceError, ValidationError, ValueError) as exc:
            LOG.warning("Remote report for %s unusable, using %s: %s", assessment.id, self.fallback.name, exc)
            return self.fallback.evaluate(assessment, answers, calibration)
        return report

    async def regenerate_async(self, assessment: Assessment, question_id: str) -> Optional[Question]:
        target = assessment.find_question(question_id)
        if target is None:
            return None

        request = {"assessmentSubject": assessment.subject, "question": target.to_yaml_dict()}
        prompt = (
            "Regenerate this single interview question preserving its difficulty and kind. "
            "Return the question as JSON.\n\n" + json.dumps(request, ensure_ascii=True)
        )
        try:
            payload = await self._run_json(prompt)
            question = Question.model_validate(payload)
        except (RemoteSourceError, ValidationError, ValueError) as exc:
            LOG.warning("Remote regeneration of %s unusable, using %s: %s", question_id, self.fallback.name, exc)
            return self.fallback.regenerate(assessment, question_id)
        return question

    def generate(self, subject: str) -> Assessment:
        return asyncio.run(self.generate_async(subject))

    def evaluate(
        self,
        assessment: Assessment,
        answers: Sequence[CandidateAnswer],
        calibration: Optional[ReviewerCalibration] = None,
    ) -> Report:
        return asyncio.run(self.evaluate_async(assessment, answers, calibration))

    def regenerate(self, assessment: Assessment, question_id: str) -> Optional[Question]:
        return asyncio.run(self.regenerate_async(assessment, question_id))


def select_source(configs: ConfigType, fallback: Optional[AssessmentSource] = None) -> AssessmentSource:
    """RemoteSource when an OpenAI key is configured, otherwise DeterministicSource."""
    deterministic = fallback or DeterministicSource()
    if has_remote_credentials(configs):
        LOG.info("Using remote assessment source")
        return RemoteSource(configs, fallback=deterministic)
    LOG.info("No remote credentials configured; using deterministic source")
    return deterministic
