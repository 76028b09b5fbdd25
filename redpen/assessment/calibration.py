"""Reviewer calibration: a bounded per-subject score multiplier."""

import logging
import threading
from typing import Callable, Dict, Optional

from .models import ReviewerCalibration
from .numeric import clamp

LOG = logging.getLogger(__name__)

MIN_FACTOR = 0.7
MAX_FACTOR = 1.3
DELTA_DIVISOR = 200


def default_calibration(subject: str) -> ReviewerCalibration:
    return ReviewerCalibration(subject=subject, adjustment_factor=1.0, override_count=0)


def update_calibration(
    calibration: ReviewerCalibration,
    previous_score: float,
    new_score: float,
) -> ReviewerCalibration:
    """
    Fold one reviewer override into the calibration.

    Each override nudges the factor by (new - previous) / 200, kept within
    [0.7, 1.3]. Sequential overrides compound.

    Returns:
        A new ReviewerCalibration; the input is not modified
    """
    delta = new_score - previous_score
    factor = clamp(MIN_FACTOR, MAX_FACTOR, calibration.adjustment_factor + delta / DELTA_DIVISOR)
    return calibration.model_copy(update={
        "adjustment_factor": factor,
        "override_count": calibration.override_count + 1,
    })


class CalibrationStore:
    """
    Keyed store of subject -> ReviewerCalibration.

    Overrides are read-modify-written under a lock. Scoring runs should take a
    ``snapshot`` up front so a concurrent override cannot change the factor
    mid-report.
    """

    def __init__(
        self,
        initial: Optional[Dict[str, ReviewerCalibration]] = None,
        on_update: Optional[Callable[[ReviewerCalibration], None]] = None,
    ) -> None:
        """
        Args:
            initial: Calibrations to seed the store with, keyed by subject
            on_update: Called with each updated calibration, e.g. to persist it
        """
        self._lock = threading.Lock()
        self._by_subject: Dict[str, ReviewerCalibration] = dict(initial or {})
        self._on_update = on_update

    def get(self, subject: str) -> ReviewerCalibration:
        with self._lock:
            return self._by_subject.get(subject) or default_calibration(subject)

    def snapshot(self, subject: str) -> ReviewerCalibration:
        """Independent copy of the subject's calibration for one scoring run."""
        return self.get(subject).model_copy()

    def record_override(self, subject: str, previous_score: float, new_score: float) -> ReviewerCalibration:
        """
        Apply one override to the subject's calibration and store the result.

        ``on_update`` runs under the lock, so persisted updates land in the
        same order as the in-memory ones.
        """
        with self._lock:
            current = self._by_subject.get(subject) or default_calibration(subject)
            updated = update_calibration(current, previous_score, new_score)
            self._by_subject[subject] = updated
            if self._on_update:
                self._on_update(updated)
        LOG.info(
            "Calibration for %s: factor %.3f -> %.3f (%d overrides)",
            subject, current.adjustment_factor, updated.adjustment_factor, updated.override_count,
        )
        return updated
