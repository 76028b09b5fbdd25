"""Assessment synthesis, heuristic scoring, calibration, and report aggregation."""

from .answers import answer_completion_pct, ensure_answer, is_answered, total_time_spent, update_answer
from .models import (
    Assessment,
    CandidateAnswer,
    Evaluation,
    Question,
    Report,
    ReviewerCalibration,
)
from .synthesizer import difficulty_for_index, regenerate_question, synthesize_assessment
from .scorers import ScorerRegistry, ScoreResult
from .calibration import CalibrationStore, update_calibration
from .evaluator import apply_override, evaluate, replay_report
from .sources import AssessmentSource, DeterministicSource, RemoteSource, select_source
from .snapshot_store import SnapshotStore
from .batch_evaluator import BatchEvaluator, BatchEvaluationResult

__all__ = [
    'Assessment',
    'CandidateAnswer',
    'Evaluation',
    'Question',
    'Report',
    'ReviewerCalibration',
    'difficulty_for_index',
    'regenerate_question',
    'synthesize_assessment',
    'ScorerRegistry',
    'ScoreResult',
    'CalibrationStore',
    'update_calibration',
    'apply_override',
    'evaluate',
    'replay_report',
    'AssessmentSource',
    'DeterministicSource',
    'RemoteSource',
    'select_source',
    'SnapshotStore',
    'BatchEvaluator',
    'BatchEvaluationResult',
    'ensure_answer',
    'update_answer',
    'is_answered',
    'answer_completion_pct',
    'total_time_spent',
]
