"""Deterministic assessment synthesis, scoring, and reviewer calibration."""

__version__ = "0.1.0"
