"""Constants for formula handling, normalization and tier assignment."""

# Reserved formula variable holding the candidate's running weighted total
SCORE_VARIABLE = "score"

# Names that are always in scope and never count as free variables
EXPRESSION_CONSTANTS = {"pi", "e"}

# Longest expression accepted by the evaluator
MAX_EXPRESSION_LENGTH = 1000

# Value used when a metric has no variance across candidates
NEUTRAL_VALUE = 0.5

# Standard deviations mapped onto the [0,1] range for z-score normalization
DEFAULT_ZSCORE_SPREAD = 4.0

# Derived tiers: rank-ratio upper bounds and labels (best first)
DEFAULT_TIER_CUTOFFS = (0.2, 0.5, 0.8)
DEFAULT_TIER_LABELS = ("S", "A", "B", "C")

# Maximum number of metric keys reported as top criteria
TOP_CRITERIA_LIMIT = 3

# Upstream payload limits
MAX_SOURCES = 3
MAX_RISK_NOTES = 10

INSUFFICIENT_DATA_REASON = "Insufficient information to evaluate this criterion."
INSUFFICIENT_DATA_NOTE = "Insufficient information; further research is needed."
