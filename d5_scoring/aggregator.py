"""
Weighted aggregation of normalized metric values.

Metrics are processed in definition order, one column at a time across all
candidates. Raw metrics are normalized; formula metrics are evaluated per
candidate with every earlier metric's normalized value in scope (under its
key and identifier-safe label) plus the running weighted total as ``score``.
"""
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from core.exceptions import EvaluationError
from core.logging import get_logger
from core.metrics import formula_evaluations

from .constants import DEFAULT_ZSCORE_SPREAD, SCORE_VARIABLE, TOP_CRITERIA_LIMIT
from .expression import ExpressionEvaluator, get_expression_evaluator
from .formula_validator import metric_names
from .normalizer import clamp01, normalize_values
from .types import AggregateResult, Direction, EntryStatus, MetricType, NormalizedScoreEntry, RawScoreEntry

logger = get_logger(__name__)


def weighted_total(entries: Sequence[NormalizedScoreEntry]) -> float:
    """
    ``clamp01(sum(weight * value) / sum(weight))`` over contributing entries

    Weight-0 and failed entries are excluded from both sums; with nothing
    left the total is 0.
    """
    numerator = 0.0
    denominator = 0.0
    for entry in entries:
        if entry.contributes:
            numerator += entry.contribution
            denominator += entry.weight
    if denominator <= 0:
        return 0.0
    return clamp01(numerator / denominator)


def top_criteria(entries: Sequence[NormalizedScoreEntry], limit: int = TOP_CRITERIA_LIMIT) -> List[str]:
    """Metric keys by descending weighted contribution, input order breaking ties"""
    ranked = [(i, e) for i, e in enumerate(entries) if e.contributes and e.status == EntryStatus.OK]
    ranked.sort(key=lambda pair: (-pair[1].contribution, pair[0]))
    return [e.metric_key for _, e in ranked[:limit]]


class Aggregator:
    """Combines per-metric values into one total score per candidate"""

    def __init__(
        self,
        evaluator: Optional[ExpressionEvaluator] = None,
        zscore_spread: float = DEFAULT_ZSCORE_SPREAD,
    ):
        self.evaluator = evaluator or get_expression_evaluator()
        self.zscore_spread = zscore_spread

    def _evaluate_formula(self, metric, candidate_id: str, scope: Dict[str, float]) -> Optional[float]:
        try:
            value = self.evaluator.evaluate(metric.formula, scope)
        except EvaluationError as e:
            formula_evaluations.labels(status="failed").inc()
            logger.warning(
                f"Formula metric '{metric.key}' failed for candidate '{candidate_id}': {e.message}",
                extra={"metric": metric.key, "candidate_id": candidate_id, "formula": metric.formula},
            )
            return None
        formula_evaluations.labels(status="ok").inc()
        return value

    def aggregate(
        self,
        metrics: Sequence,
        candidate_ids: Sequence[str],
        raw_scores: Mapping[Tuple[str, str], RawScoreEntry],
    ) -> List[AggregateResult]:
        """
        Compute totals, breakdowns and top criteria for every candidate

        Args:
            metrics: Ordered metric definitions
            candidate_ids: Candidates in arrival order
            raw_scores: Raw entries keyed by (candidate id, metric key); absent
                pairs count as missing data

        Returns:
            One AggregateResult per candidate, in the order given
        """
        breakdowns: Dict[str, List[NormalizedScoreEntry]] = {cid: [] for cid in candidate_ids}
        scopes: Dict[str, Dict[str, float]] = {cid: {} for cid in candidate_ids}

        for metric in metrics:
            reasons: Dict[str, Optional[str]] = {}
            failed = set()

            if metric.type == MetricType.FORMULA:
                values = []
                for cid in candidate_ids:
                    scope = dict(scopes[cid])
                    scope[SCORE_VARIABLE] = weighted_total(breakdowns[cid])
                    value = self._evaluate_formula(metric, cid, scope)
                    if value is None:
                        failed.add(cid)
                    values.append(value)
                direction = Direction.UP
            else:
                values = []
                for cid in candidate_ids:
                    raw = raw_scores.get((cid, metric.key))
                    values.append(raw.value if raw else None)
                    reasons[cid] = raw.reason if raw else None
                direction = metric.direction

            normalized = normalize_values(values, direction, metric.normalize_strategy, self.zscore_spread)

            for cid, result in zip(candidate_ids, normalized):
                status = EntryStatus.FAILED if cid in failed else result.status
                entry = NormalizedScoreEntry(
                    metric_key=metric.key,
                    value=result.value,
                    weight=metric.weight,
                    status=status,
                    reason=reasons.get(cid),
                )
                breakdowns[cid].append(entry)
                if status == EntryStatus.OK:
                    for name in metric_names(metric):
                        scopes[cid][name] = entry.value

        results = []
        for cid in candidate_ids:
            entries = breakdowns[cid]
            insufficient = not any(e.status == EntryStatus.OK for e in entries)
            results.append(
                AggregateResult(
                    candidate_id=cid,
                    total_score=weighted_total(entries),
                    breakdown=entries,
                    top_criteria=top_criteria(entries),
                    insufficient_data=insufficient,
                )
            )
        return results
