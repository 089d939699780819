"""
Synchronization Scoring
Group heart-rate synchronization metric (0-100)

The metric is a plain linear function of the spread between the fastest
and slowest active heart rates, not a statistical correlation. Downstream
visualisation thresholds (e.g. the >70% trigger) are calibrated to it.
"""

from typing import Iterable

import numpy as np

# Spread in bpm considered completely unsynchronized
MAX_POSSIBLE_RANGE = 50

MIN_ACTIVE_READINGS = 2


def sync_score(readings: Iterable[int]) -> float:
    """
    Score how close the active heart rates are to each other

    Zero readings (silent sensors) are ignored. Fewer than two active
    readings cannot be synchronized and score 0.

    Args:
        readings: Current bpm per session, in roster order

    Returns:
        float: 100 * (1 - (max - min) / MAX_POSSIBLE_RANGE), clamped to [0, 100]
    """
    values = np.asarray(list(readings), dtype=float)
    active = values[values > 0]

    if active.size < MIN_ACTIVE_READINGS:
        return 0.0

    spread = float(active.max() - active.min())
    raw = 100.0 * (1.0 - spread / MAX_POSSIBLE_RANGE)

    return float(np.clip(raw, 0.0, 100.0))
