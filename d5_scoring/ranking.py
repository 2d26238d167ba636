"""
Ranking assembly.

Turns a validated request plus the reasoning service's (untrusted) result
into a complete, internally consistent ranking: every requested candidate
is present, every displayed tier exists (possibly empty), and totals,
breakdowns and tiers are all recomputed locally.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from core.logging import get_logger
from core.metrics import rankings

from .aggregator import Aggregator
from .constants import DEFAULT_ZSCORE_SPREAD, INSUFFICIENT_DATA_NOTE, INSUFFICIENT_DATA_REASON, MAX_RISK_NOTES, MAX_SOURCES
from .expression import ExpressionEvaluator
from .schemas import (
    BreakdownEntry,
    Metric,
    RankingRequest,
    RankingResponse,
    ReasoningItem,
    ReasoningResult,
    ScoreEntry,
    SourceEntry,
    TierGroup,
    TierItem,
)
from .tiers import PercentileTierConfiguration, TierAssigner, TierCandidate, group_by_tier
from .types import AggregateResult, EntryStatus, MetricType, RawScoreEntry

logger = get_logger(__name__)


@dataclass
class RankingPolicy:
    """Tunable policy constants for post-processing"""

    tiers: PercentileTierConfiguration = field(default_factory=PercentileTierConfiguration)
    zscore_spread: float = DEFAULT_ZSCORE_SPREAD

    @classmethod
    def from_settings(cls, settings) -> "RankingPolicy":
        return cls(
            tiers=PercentileTierConfiguration(cutoffs=list(settings.tier_cutoffs), labels=list(settings.tier_labels)),
            zscore_spread=settings.zscore_spread,
        )


def _lookup(mapping: Dict[str, object], metric: Metric):
    """Find a metric's entry by key, then by label"""
    if metric.key in mapping:
        return mapping[metric.key]
    if metric.label and metric.label in mapping:
        return mapping[metric.label]
    return None


def normalize_sources(item: Optional[ReasoningItem]) -> List[SourceEntry]:
    """Trimmed sources with a URL, deduplicated by URL, at most three"""
    if item is None:
        return []
    sources: List[SourceEntry] = []
    seen = set()
    for source in item.sources:
        url = (source.url or "").strip()
        if not url or url in seen:
            continue
        seen.add(url)
        title = (source.title or "").strip() or None
        sources.append(SourceEntry(url=url, title=title))
        if len(sources) >= MAX_SOURCES:
            break
    return sources


def normalize_risk_notes(item: Optional[ReasoningItem]) -> List[str]:
    if item is None:
        return [INSUFFICIENT_DATA_NOTE]
    notes = [note.strip() for note in item.risk_notes if note and note.strip()]
    return notes[:MAX_RISK_NOTES]


def main_reason_for(item: Optional[ReasoningItem], breakdown: Sequence[BreakdownEntry]) -> Optional[str]:
    """Upstream main reason, else the item's reason, else the first breakdown reason"""
    if item is not None:
        for text in (item.main_reason, item.reason):
            if text and text.strip():
                return text.strip()
    for entry in breakdown:
        if entry.reason and entry.reason.strip():
            return entry.reason.strip()
    return None


def collect_raw_scores(
    request: RankingRequest, items: Dict[str, ReasoningItem]
) -> Dict[Tuple[str, str], RawScoreEntry]:
    """Raw (candidate, metric) entries for every non-formula metric an item reports"""
    raw: Dict[Tuple[str, str], RawScoreEntry] = {}
    for candidate in request.candidates:
        item = items.get(candidate.id)
        if item is None:
            continue
        for metric in request.raw_metrics:
            value = _lookup(item.contrib, metric)
            reason = _lookup(item.reasons, metric)
            raw[(candidate.id, metric.key)] = RawScoreEntry(
                candidate_id=candidate.id,
                metric_key=metric.key,
                value=value,
                reason=reason.strip() if isinstance(reason, str) and reason.strip() else None,
            )
    return raw


def index_items(request: RankingRequest, result: ReasoningResult) -> Dict[str, ReasoningItem]:
    """Map upstream items to requested candidates; unknown and duplicate ids are dropped"""
    requested = {c.id for c in request.candidates}
    items: Dict[str, ReasoningItem] = {}
    for item in result.items:
        item_id = item.id.strip()
        if item_id not in requested:
            logger.warning(f"Ignoring reasoning item for unknown candidate '{item_id}'")
            continue
        if item_id in items:
            logger.warning(f"Ignoring duplicate reasoning item for candidate '{item_id}'")
            continue
        items[item_id] = item
    return items


def _breakdown(aggregate: AggregateResult, reported: bool) -> List[BreakdownEntry]:
    entries = []
    for entry in aggregate.breakdown:
        reason = entry.reason
        if reason is None and entry.status == EntryStatus.MISSING and not reported:
            reason = INSUFFICIENT_DATA_REASON
        entries.append(
            BreakdownEntry(
                metric_key=entry.metric_key,
                normalized_value=entry.value,
                weight=entry.weight,
                reason=reason,
                status=entry.status.value,
            )
        )
    return entries


def build_ranking(
    request: RankingRequest,
    result: ReasoningResult,
    policy: Optional[RankingPolicy] = None,
    evaluator: Optional[ExpressionEvaluator] = None,
) -> RankingResponse:
    """
    Build the full ranking for a request

    Args:
        request: Validated ranking request (formulas already checked)
        result: Parsed reasoning service result
        policy: Normalization and tier policy constants
        evaluator: Expression evaluator for formula metrics

    Returns:
        RankingResponse with every requested candidate
    """
    policy = policy or RankingPolicy()
    items = index_items(request, result)
    raw = collect_raw_scores(request, items)

    candidate_ids = [c.id for c in request.candidates]
    aggregator = Aggregator(evaluator=evaluator, zscore_spread=policy.zscore_spread)
    aggregates = {a.candidate_id: a for a in aggregator.aggregate(request.metrics, candidate_ids, raw)}

    reported = [
        TierCandidate(cid, aggregates[cid].total_score, items[cid].tier) for cid in candidate_ids if cid in items
    ]
    unreported = [TierCandidate(cid, aggregates[cid].total_score) for cid in candidate_ids if cid not in items]
    tier_policy, order, assignments = TierAssigner(policy.tiers).assign(
        reported, unreported, preferred_order=request.options.tiers
    )
    tier_by_id = {a.candidate_id: a.tier for a in assignments}

    position = {cid: i for i, cid in enumerate(candidate_ids)}
    scores: List[ScoreEntry] = []
    for candidate in request.candidates:
        item = items.get(candidate.id)
        aggregate = aggregates[candidate.id]
        breakdown = _breakdown(aggregate, item is not None)
        scores.append(
            ScoreEntry(
                id=candidate.id,
                name=candidate.name,
                total_score=aggregate.total_score,
                tier=tier_by_id[candidate.id],
                main_reason=main_reason_for(item, breakdown),
                top_criteria=aggregate.top_criteria,
                breakdown=breakdown,
                sources=normalize_sources(item),
                risk_notes=normalize_risk_notes(item),
                insufficient_data=aggregate.insufficient_data,
            )
        )
    scores.sort(key=lambda s: (-s.total_score, position[s.id]))

    by_id = {s.id: s for s in scores}
    groups = group_by_tier(sorted(assignments, key=lambda a: (-a.score, position[a.candidate_id])), order)
    tiers = [
        TierGroup(
            label=label,
            items=[
                TierItem(
                    id=a.candidate_id,
                    name=by_id[a.candidate_id].name,
                    score=a.score,
                    main_reason=by_id[a.candidate_id].main_reason,
                    top_criteria=by_id[a.candidate_id].top_criteria,
                )
                for a in members
            ],
        )
        for label, members in groups.items()
    ]

    formula_count = sum(1 for m in request.metrics if m.type == MetricType.FORMULA)
    rankings.labels(tier_policy=tier_policy.value, status="success").inc()
    logger.info(
        f"Built ranking for {len(scores)} candidates",
        extra={
            "candidates": len(scores),
            "unreported": len(unreported),
            "formula_metrics": formula_count,
            "tier_policy": tier_policy.value,
        },
    )
    return RankingResponse(tiers=tiers, scores=scores, tier_policy=tier_policy)
