"""Evaluate many candidate attempts of one assessment concurrently."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from tqdm.asyncio import tqdm

from redpen.libs.config_loader import ConfigType, get_config
from .models import Assessment, CandidateAnswer, Report, ReviewerCalibration
from .sources import AssessmentSource, DeterministicSource

LOG = logging.getLogger(__name__)


@dataclass
class BatchEvaluationResult:
    """Outcome of evaluating one candidate's attempt."""
    candidate_id: str
    success: bool
    report: Optional[Report] = None
    error_message: Optional[str] = None
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for YAML serialization."""
        data: Dict[str, Any] = {
            'candidate_id': self.candidate_id,
            'success': self.success,
            'timestamp': self.timestamp,
        }
        if self.report:
            data['total_score'] = self.report.total_score
            data['max_score'] = self.report.max_score
            data['percentile'] = self.report.percentile
            data['borderline'] = [e.question_id for e in self.report.evaluations if e.borderline]
        if self.error_message:
            data['error_message'] = self.error_message
        return data


class BatchEvaluator:
    """Evaluate attempts in parallel, all against one calibration snapshot."""

    def __init__(self, configs: ConfigType, source: Optional[AssessmentSource] = None,
                 max_concurrent: Optional[int] = None):
        """
        Initialize the batch evaluator.

        Args:
            configs: Configuration dictionary
            source: Source used to evaluate each attempt (default: DeterministicSource)
            max_concurrent: Maximum number of concurrent evaluations (overrides config)
        """
        self.configs = configs
        self.source = source or DeterministicSource()
        if max_concurrent is not None:
            self.max_concurrent = max_concurrent
        else:
            self.max_concurrent = get_config("tools.max_concurrent", configs, default=4)

        LOG.info(f"BatchEvaluator initialized with max_concurrent={self.max_concurrent}")

    async def _evaluate_single_async(
        self,
        assessment: Assessment,
        candidate_id: str,
        answers: Sequence[CandidateAnswer],
        calibration: Optional[ReviewerCalibration],
    ) -> BatchEvaluationResult:
        try:
            evaluate_async = getattr(self.source, "evaluate_async", None)
            if evaluate_async is not None:
                report = await evaluate_async(assessment, answers, calibration)
            else:
                report = await asyncio.to_thread(self.source.evaluate, assessment, answers, calibration)
            report = report.model_copy(update={"candidate_id": candidate_id})
            LOG.debug(f"Evaluated {candidate_id}: {report.total_score}/{report.max_score}")
            return BatchEvaluationResult(candidate_id=candidate_id, success=True, report=report)
        except Exception as e:  # pylint: disable=broad-except
            LOG.error(f"Error evaluating {candidate_id}: {e}")
            return BatchEvaluationResult(candidate_id=candidate_id, success=False, error_message=str(e))

    async def evaluate_all_async(
        self,
        assessment: Assessment,
        attempts: Mapping[str, Sequence[CandidateAnswer]],
        calibration: Optional[ReviewerCalibration] = None,
    ) -> List[BatchEvaluationResult]:
        """
        Evaluate every attempt with bounded concurrency.

        Args:
            assessment: The assessment all candidates took
            attempts: Candidate id -> that candidate's answers
            calibration: Calibration snapshot shared by every evaluation

        Returns:
            Results sorted by candidate id
        """
        if not attempts:
            LOG.warning(f"No attempts to evaluate for {assessment.id}")
            return []

        snapshot = calibration.model_copy() if calibration else None
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def evaluate_with_semaphore(candidate_id: str, answers: Sequence[CandidateAnswer]):
            async with semaphore:
                return await self._evaluate_single_async(assessment, candidate_id, answers, snapshot)

        tasks = [
            evaluate_with_semaphore(candidate_id, answers)
            for candidate_id, answers in attempts.items()
        ]

        results = []
        for coro in tqdm.as_completed(tasks, total=len(tasks), desc="Evaluating attempts"):
            result = await coro
            results.append(result)
            if not result.success:
                LOG.warning(f"Failed: {result.candidate_id} - {result.error_message}")

        results.sort(key=lambda r: r.candidate_id)
        return results

    def evaluate_all(
        self,
        assessment: Assessment,
        attempts: Mapping[str, Sequence[CandidateAnswer]],
        calibration: Optional[ReviewerCalibration] = None,
    ) -> List[BatchEvaluationResult]:
        """Synchronous wrapper for evaluate_all_async."""
        return asyncio.run(self.evaluate_all_async(assessment, attempts, calibration))

    def save_summary(self, assessment: Assessment, results: List[BatchEvaluationResult], output_path: Path):
        """Save a batch summary to a YAML file."""
        successful = [r for r in results if r.success and r.report]
        summary = {
            'evaluation_summary': {
                'timestamp': datetime.now().isoformat(),
                'assessment_id': assessment.id,
                'total_attempts': len(results),
                'successful': len(successful),
                'failed': len(results) - len(successful),
                'average_score': (
                    sum(r.report.total_score for r in successful) / len(successful) if successful else 0
                ),
                'max_possible_score': len(assessment.questions) * 10,
            },
            'attempts': [r.to_dict() for r in results],
        }
        with open(output_path, 'w') as f:
            yaml.dump(summary, f, default_flow_style=False, sort_keys=False)
