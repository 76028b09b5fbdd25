"""Rounding and clamping helpers shared by the scorers and the aggregator."""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up.

    Python's round() uses banker's rounding (round(4.5) == 4); scores are
    defined with half-up rounding so round_half_up(4.5) == 5.
    """
    return int(math.floor(value + 0.5))


def clamp(low: float, high: float, value: float) -> float:
    return max(low, min(high, value))
