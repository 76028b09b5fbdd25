"""Best-effort YAML snapshot store for assessments, attempts, reports, and calibrations."""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from redpen.libs.config_loader import ConfigType, get_config
from .calibration import CalibrationStore
from .models import Assessment, CandidateAnswer, Report, ReviewerCalibration

LOG = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def slugify(value: str) -> str:
    """Filesystem-safe key: lowercase, runs of other characters collapsed to '-'."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-") or "default"


class SnapshotStore:
    """
    Persists snapshots as YAML files under ``root_dir``.

    Writes never raise: a failed write is logged and the caller carries on.
    Loads return None (or an empty list) for missing or unreadable snapshots.
    """

    def __init__(self, root_dir: Path, enabled: bool = True):
        self.root_dir = Path(root_dir)
        self.enabled = enabled

    @classmethod
    def from_config(cls, configs: ConfigType) -> "SnapshotStore":
        root = get_config("storage.snapshot_dir", configs, default=".redpen_snapshots")
        enabled = bool(get_config("storage.enabled", configs, default=False))
        return cls(Path(root), enabled=enabled)

    # -- paths ---------------------------------------------------------------

    def assessment_path(self, assessment_id: str) -> Path:
        return self.root_dir / "assessments" / f"{slugify(assessment_id)}.yaml"

    def attempt_path(self, assessment_id: str) -> Path:
        return self.root_dir / "attempts" / f"{slugify(assessment_id)}.yaml"

    def report_path(self, assessment_id: str, candidate_id: str) -> Path:
        return self.root_dir / "reports" / f"{slugify(assessment_id)}__{slugify(candidate_id)}.yaml"

    def calibration_path(self, subject: str) -> Path:
        return self.root_dir / "calibrations" / f"{slugify(subject)}.yaml"

    # -- low level -----------------------------------------------------------

    def _write(self, path: Path, data: Any) -> bool:
        if not self.enabled:
            return False
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w') as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            LOG.warning("Could not write snapshot %s: %s", path, e)
            return False
        LOG.debug("Wrote snapshot %s", path)
        return True

    def _read(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            with open(path, 'r') as f:
                return yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            LOG.warning("Could not read snapshot %s: %s", path, e)
            return None

    def _load_model(self, path: Path, model: Type[ModelT]) -> Optional[ModelT]:
        data = self._read(path)
        if data is None:
            return None
        try:
            return model.model_validate(data)
        except ValidationError as e:
            LOG.warning("Discarding malformed snapshot %s: %s", path, e)
            return None

    # -- snapshots -----------------------------------------------------------

    def save_assessment(self, assessment: Assessment) -> bool:
        return self._write(self.assessment_path(assessment.id), assessment.to_yaml_dict())

    def load_assessment(self, assessment_id: str) -> Optional[Assessment]:
        return self._load_model(self.assessment_path(assessment_id), Assessment)

    def save_attempt(self, assessment_id: str, answers: Sequence[CandidateAnswer]) -> bool:
        return self._write(
            self.attempt_path(assessment_id),
            {"assessmentId": assessment_id, "answers": [a.to_yaml_dict() for a in answers]},
        )

    def load_attempt(self, assessment_id: str) -> List[CandidateAnswer]:
        data = self._read(self.attempt_path(assessment_id))
        if not isinstance(data, dict):
            return []
        try:
            return [CandidateAnswer.model_validate(a) for a in data.get("answers") or []]
        except ValidationError as e:
            LOG.warning("Discarding malformed attempt snapshot for %s: %s", assessment_id, e)
            return []

    def save_report(self, report: Report) -> bool:
        return self._write(self.report_path(report.assessment_id, report.candidate_id), report.to_yaml_dict())

    def load_report(self, assessment_id: str, candidate_id: str) -> Optional[Report]:
        return self._load_model(self.report_path(assessment_id, candidate_id), Report)

    def save_calibration(self, calibration: ReviewerCalibration) -> bool:
        return self._write(self.calibration_path(calibration.subject), calibration.to_yaml_dict())

    def load_calibration(self, subject: str) -> Optional[ReviewerCalibration]:
        return self._load_model(self.calibration_path(subject), ReviewerCalibration)

    def load_calibrations(self) -> Dict[str, ReviewerCalibration]:
        """All stored calibrations keyed by subject."""
        calibrations: Dict[str, ReviewerCalibration] = {}
        directory = self.root_dir / "calibrations"
        if not directory.is_dir():
            return calibrations
        for path in sorted(directory.glob("*.yaml")):
            calibration = self._load_model(path, ReviewerCalibration)
            if calibration is not None:
                calibrations[calibration.subject] = calibration
        return calibrations

    def calibration_store(self) -> CalibrationStore:
        """CalibrationStore seeded from disk that writes every update back."""
        return CalibrationStore(initial=self.load_calibrations(), on_update=self.save_calibration)
