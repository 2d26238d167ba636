"""
D5 Scoring - local post-processing of reasoning-service scores

Formula evaluation and validation, per-metric normalization, weighted
aggregation and tier assignment, assembled into a deterministic ranking.
"""

from .aggregator import Aggregator
from .expression import ExpressionEvaluator, evaluate_expression, free_variables
from .formula_validator import validate_formula, validate_metric_formulas
from .normalizer import normalize_values
from .ranking import RankingPolicy, build_ranking
from .report import build_report_summary
from .schemas import Candidate, Metric, RankingOptions, RankingRequest, RankingResponse, ReasoningResult
from .tiers import PercentileTierConfiguration, TierAssigner
from .types import Direction, EntryStatus, MetricType, NormalizeStrategy, TierPolicy

__version__ = "0.1.0"

__all__ = [
    "Aggregator",
    "ExpressionEvaluator",
    "evaluate_expression",
    "free_variables",
    "validate_formula",
    "validate_metric_formulas",
    "normalize_values",
    "RankingPolicy",
    "build_ranking",
    "build_report_summary",
    "PercentileTierConfiguration",
    "TierAssigner",
    # Schemas
    "Candidate",
    "Metric",
    "RankingOptions",
    "RankingRequest",
    "RankingResponse",
    "ReasoningResult",
    # Types
    "MetricType",
    "Direction",
    "NormalizeStrategy",
    "EntryStatus",
    "TierPolicy",
]
