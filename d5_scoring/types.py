"""
Scoring Types and Enumerations

Type definitions for the ranking core: metric kinds, normalization
strategies, per-(candidate, metric) score entries and aggregate results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class MetricType(str, Enum):
    """How a metric's value is produced"""

    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    LIKERT = "likert"
    FORMULA = "formula"  # computed locally from earlier metrics


class Direction(str, Enum):
    """Whether a higher raw value is better"""

    UP = "up"
    DOWN = "down"


class NormalizeStrategy(str, Enum):
    """Rescaling rule applied across all candidates for one metric"""

    MINMAX = "minmax"
    ZSCORE = "zscore"
    NONE = "none"


class EntryStatus(str, Enum):
    """Quality of a single (candidate, metric) value"""

    OK = "ok"
    MISSING = "missing"  # raw value absent or not a number; contributes 0
    FAILED = "failed"  # formula evaluation failed; weight excluded


class TierPolicy(str, Enum):
    """How tier labels were obtained"""

    EXPLICIT = "explicit"
    DERIVED = "derived"


@dataclass(frozen=True)
class SourceRef:
    """Supporting reference returned by the reasoning service"""

    url: str
    title: Optional[str] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class RawScoreEntry:
    """Raw value for one (candidate, metric) pair as received upstream"""

    candidate_id: str
    metric_key: str
    value: Optional[float]
    reason: Optional[str] = None
    sources: tuple = ()


@dataclass(frozen=True)
class NormalizedScoreEntry:
    """A rescaled value in [0,1] with direction already applied"""

    metric_key: str
    value: float
    weight: float
    status: EntryStatus = EntryStatus.OK
    reason: Optional[str] = None

    @property
    def contributes(self) -> bool:
        """Whether the entry takes part in the weighted sum"""
        return self.weight > 0 and self.status != EntryStatus.FAILED

    @property
    def contribution(self) -> float:
        return self.weight * self.value if self.contributes else 0.0

    @property
    def flagged(self) -> bool:
        return self.status != EntryStatus.OK


@dataclass(frozen=True)
class AggregateResult:
    """Weighted total for one candidate"""

    candidate_id: str
    total_score: float
    breakdown: List[NormalizedScoreEntry] = field(default_factory=list)
    top_criteria: List[str] = field(default_factory=list)
    insufficient_data: bool = False


@dataclass(frozen=True)
class TierAssignment:
    """Tier label given to one candidate"""

    candidate_id: str
    score: float
    tier: str
    policy: TierPolicy
