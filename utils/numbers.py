"""Numeric helpers shared by the analyzers."""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards +infinity.

    Python's round() uses banker's rounding (round(2.5) == 2). Every
    user-visible number here is rounded the way dashboards round, so
    2.5 becomes 3 and -2.5 becomes -2.
    """
    return math.floor(value + 0.5)
