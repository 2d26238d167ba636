"""
Tier Assignment System

Maps candidate totals to discrete tier labels using one of two policies:

- Explicit: labels supplied by the reasoning service are trusted verbatim
  and candidates are simply grouped by them.
- Derived: candidates are ranked by total score and labelled by their
  percentile position (rank ratio) against configurable cutoffs.

Both policies are pure functions of their input, so re-running assignment
on an unchanged score set yields the same grouping.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .constants import DEFAULT_TIER_CUTOFFS, DEFAULT_TIER_LABELS
from .types import TierAssignment, TierPolicy

logger = logging.getLogger(__name__)


@dataclass
class PercentileTierConfiguration:
    """
    Rank-ratio boundaries for derived tiers

    ``labels[i]`` is assigned when ``ratio <= cutoffs[i]``; the last label
    takes everything above the final cutoff.
    """

    cutoffs: List[float] = field(default_factory=lambda: list(DEFAULT_TIER_CUTOFFS))
    labels: List[str] = field(default_factory=lambda: list(DEFAULT_TIER_LABELS))
    name: str = "percentile_sabc"

    def __post_init__(self):
        """Validate configuration"""
        if not self.cutoffs:
            raise ValueError("At least one cutoff is required")
        if any(c < 0 or c > 1 for c in self.cutoffs):
            raise ValueError("Cutoffs must be between 0 and 1")
        if any(b <= a for a, b in zip(self.cutoffs, self.cutoffs[1:])):
            raise ValueError("Cutoffs must be strictly ascending")
        if len(self.labels) != len(self.cutoffs) + 1:
            raise ValueError("Labels must have exactly one more entry than cutoffs")
        if len(set(self.labels)) != len(self.labels):
            raise ValueError("Tier labels must be unique")

    def tier_for_ratio(self, ratio: float) -> str:
        """Find the tier label for a rank ratio in [0,1]"""
        for cutoff, label in zip(self.cutoffs, self.labels):
            if ratio <= cutoff:
                return label
        return self.labels[-1]


@dataclass(frozen=True)
class TierCandidate:
    """Input to tier assignment: a candidate's total and optional upstream label"""

    candidate_id: str
    score: float
    explicit_tier: Optional[str] = None


class TierAssigner:
    """Stateless tier assignment with explicit and derived policies"""

    def __init__(self, configuration: Optional[PercentileTierConfiguration] = None):
        self.configuration = configuration or PercentileTierConfiguration()

    def choose_policy(self, candidates: Sequence[TierCandidate]) -> TierPolicy:
        """
        Explicit labels are used only when every candidate returned upstream
        carries one; otherwise all tiers are derived.
        """
        if candidates and all(c.explicit_tier and c.explicit_tier.strip() for c in candidates):
            return TierPolicy.EXPLICIT
        return TierPolicy.DERIVED

    def derive(self, candidates: Sequence[TierCandidate]) -> List[TierAssignment]:
        """
        Assign tiers by percentile rank

        Candidates are ranked by score descending with input order breaking
        ties; rank ``r`` of ``n`` maps to ``ratio = r / max(1, n - 1)``.

        Returns:
            Assignments in input order
        """
        n = len(candidates)
        ranked = sorted(range(n), key=lambda i: (-candidates[i].score, i))
        denominator = max(1, n - 1)

        tiers: Dict[int, str] = {}
        for rank, index in enumerate(ranked):
            tiers[index] = self.configuration.tier_for_ratio(rank / denominator)

        return [
            TierAssignment(
                candidate_id=c.candidate_id,
                score=c.score,
                tier=tiers[i],
                policy=TierPolicy.DERIVED,
            )
            for i, c in enumerate(candidates)
        ]

    def explicit(self, candidates: Sequence[TierCandidate], fallback_tier: str) -> List[TierAssignment]:
        """
        Trust upstream labels verbatim

        Args:
            candidates: Candidates with their upstream labels
            fallback_tier: Label for candidates without one

        Returns:
            Assignments in input order
        """
        return [
            TierAssignment(
                candidate_id=c.candidate_id,
                score=c.score,
                tier=c.explicit_tier.strip() if c.explicit_tier and c.explicit_tier.strip() else fallback_tier,
                policy=TierPolicy.EXPLICIT,
            )
            for c in candidates
        ]

    def display_order(
        self,
        policy: TierPolicy,
        labels: Sequence[str] = (),
        preferred_order: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """
        Order in which tiers are displayed

        Derived tiers use the configured labels. Explicit tiers use the
        caller's order first, then remaining labels by first appearance.
        """
        if policy == TierPolicy.DERIVED:
            return list(self.configuration.labels)

        order: List[str] = []
        for label in list(preferred_order or []) + list(labels):
            label = (label or "").strip()
            if label and label not in order:
                order.append(label)
        return order or list(self.configuration.labels)

    def assign(
        self,
        reported: Sequence[TierCandidate],
        unreported: Sequence[TierCandidate] = (),
        preferred_order: Optional[Sequence[str]] = None,
    ) -> tuple:
        """
        Assign tiers to a full candidate set

        Args:
            reported: Candidates present in the upstream result, in request order
            unreported: Requested candidates the upstream result omitted
            preferred_order: Caller-specified tier display order

        Returns:
            Tuple of (policy, display order, assignments for reported then unreported)
        """
        policy = self.choose_policy(reported)

        if policy == TierPolicy.EXPLICIT:
            order = self.display_order(policy, [c.explicit_tier for c in reported], preferred_order)
            fallback = order[-1]
            assignments = self.explicit(reported, fallback) + self.explicit(
                [TierCandidate(c.candidate_id, c.score) for c in unreported], fallback
            )
        else:
            order = self.display_order(policy)
            assignments = self.derive(list(reported) + list(unreported))

        logger.info(f"Assigned {len(assignments)} tiers using {policy.value} policy")
        return policy, order, assignments


def group_by_tier(assignments: Sequence[TierAssignment], order: Sequence[str]) -> Dict[str, List[TierAssignment]]:
    """
    Group assignments by tier in display order

    Every label in ``order`` is present, possibly empty; labels not in
    ``order`` are appended by first appearance. Members keep input order.
    """
    groups: Dict[str, List[TierAssignment]] = {label: [] for label in order}
    for assignment in assignments:
        groups.setdefault(assignment.tier, []).append(assignment)
    return groups


def tier_distribution(assignments: Sequence[TierAssignment]) -> Dict[str, int]:
    """Count of candidates per tier"""
    return dict(Counter(a.tier for a in assignments))


def tier_rank(label: str, order: Sequence[str]) -> int:
    """Position of a tier in display order (lower is better); unknown labels sort last"""
    try:
        return list(order).index(label)
    except ValueError:
        return len(order)
