"""
Metric normalization across a candidate set.

Each metric is rescaled independently into [0,1] using the full set of
candidate values for that metric. Direction is applied last, so a "down"
metric yields higher normalized values for lower raw inputs.
"""
import math
import statistics
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .constants import DEFAULT_ZSCORE_SPREAD, NEUTRAL_VALUE
from .types import Direction, EntryStatus, NormalizeStrategy


@dataclass(frozen=True)
class NormalizedValue:
    """Normalized value for one candidate"""

    value: float
    status: EntryStatus = EntryStatus.OK


def clamp01(value: float) -> float:
    """Clamp a value into [0,1]; NaN maps to 0"""
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def coerce_raw(value) -> Optional[float]:
    """Return a finite float for usable raw input, else None"""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    return None


def normalize_values(
    values: Sequence,
    direction: Direction = Direction.UP,
    strategy: NormalizeStrategy = NormalizeStrategy.MINMAX,
    zscore_spread: float = DEFAULT_ZSCORE_SPREAD,
) -> List[NormalizedValue]:
    """
    Normalize one metric's raw values across all candidates.

    Missing or non-finite raw values never abort normalization: they are
    excluded from the statistics, mapped to 0 and flagged as missing.
    Statistics are taken over values divided by their largest magnitude,
    so any finite input stays finite; both strategies are scale invariant.

    Args:
        values: Raw value per candidate, in candidate order
        direction: ``down`` inverts the result (``1 - value``)
        strategy: minmax, zscore or none
        zscore_spread: Standard deviations mapped onto the unit range

    Returns:
        One NormalizedValue per input value, in the same order
    """
    raw = [coerce_raw(v) for v in values]
    present = [v for v in raw if v is not None]

    magnitude = max((abs(v) for v in present), default=0.0) or 1.0
    unit = [v / magnitude for v in present]

    low = high = mean = stdev = 0.0
    if unit and strategy == NormalizeStrategy.MINMAX:
        low, high = min(unit), max(unit)
    elif unit and strategy == NormalizeStrategy.ZSCORE:
        mean = statistics.fmean(unit)
        stdev = statistics.pstdev(unit)
    spread = stdev * zscore_spread

    results = []
    for value in raw:
        if value is None:
            results.append(NormalizedValue(0.0, EntryStatus.MISSING))
            continue

        if strategy == NormalizeStrategy.MINMAX:
            scaled = NEUTRAL_VALUE if high == low else (value / magnitude - low) / (high - low)
        elif strategy == NormalizeStrategy.ZSCORE:
            if spread == 0 or not math.isfinite(spread):
                scaled = NEUTRAL_VALUE
            else:
                scaled = 0.5 + (value / magnitude - mean) / spread
        else:
            scaled = value

        scaled = clamp01(scaled)
        if direction == Direction.DOWN:
            scaled = 1.0 - scaled
        results.append(NormalizedValue(scaled))

    return results
