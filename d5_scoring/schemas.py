"""
Ranking Schemas

Pydantic schemas for ranking requests, the reasoning service's result and
the caller-visible ranking response. Field names are snake_case in Python
and camelCase on the wire; both spellings are accepted on input.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from core.exceptions import ValidationError

from .types import Direction, MetricType, NormalizeStrategy, TierPolicy


class Strictness(str, Enum):
    LENIENT = "lenient"
    BALANCED = "balanced"
    STRICT = "strict"


class SearchDepth(str, Enum):
    SHALLOW = "shallow"
    NORMAL = "normal"
    DEEP = "deep"


class WireModel(BaseModel):
    """Base model with camelCase aliases"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Request schemas


class Candidate(WireModel):
    """One item being ranked"""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None

    @field_validator("id", "name")
    @classmethod
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class Metric(WireModel):
    """One evaluation axis"""

    key: str = Field(..., min_length=1)
    label: Optional[str] = None
    type: MetricType = MetricType.NUMERIC
    direction: Direction = Direction.UP
    weight: float = Field(1.0, ge=0, allow_inf_nan=False)
    normalize_strategy: NormalizeStrategy = Field(
        NormalizeStrategy.NONE,
        validation_alias=AliasChoices("normalizeStrategy", "normalize_strategy", "normalize"),
    )
    formula: Optional[str] = None
    note: Optional[str] = None

    @field_validator("key")
    @classmethod
    def strip_key(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Metric key cannot be blank")
        return v

    @model_validator(mode="after")
    def check_formula(self):
        if not self.label or not self.label.strip():
            self.label = self.key
        if self.type == MetricType.FORMULA:
            if not self.formula or not self.formula.strip():
                raise ValueError(f"Formula metric '{self.key}' requires a formula")
        elif self.formula:
            raise ValueError(f"Only formula metrics may define a formula (metric '{self.key}')")
        return self


class RankingOptions(WireModel):
    """Caller options forwarded to the reasoning service"""

    tiers: Optional[List[str]] = Field(None, min_length=1, max_length=10)
    use_web_search: bool = False
    strictness: Strictness = Strictness.BALANCED
    search_depth: SearchDepth = SearchDepth.NORMAL

    @field_validator("tiers")
    @classmethod
    def clean_tiers(cls, v):
        if v is None:
            return v
        labels = []
        for label in v:
            label = label.strip()
            if label and label not in labels:
                labels.append(label)
        if not labels:
            raise ValueError("At least one tier label is required")
        return labels


class RankingRequest(WireModel):
    """Candidates and metrics to rank"""

    candidates: List[Candidate] = Field(..., min_length=1)
    metrics: List[Metric] = Field(..., min_length=1)
    options: RankingOptions = Field(default_factory=RankingOptions)

    @model_validator(mode="after")
    def check_unique(self):
        ids = [c.id for c in self.candidates]
        if len(set(ids)) != len(ids):
            raise ValueError("Candidate ids must be unique")
        keys = [m.key for m in self.metrics]
        if len(set(keys)) != len(keys):
            raise ValueError("Metric keys must be unique")
        return self

    @property
    def raw_metrics(self) -> List[Metric]:
        """Metrics whose values come from the reasoning service"""
        return [m for m in self.metrics if m.type != MetricType.FORMULA]


def parse_ranking_request(data: Dict[str, Any]) -> RankingRequest:
    """
    Parse a ranking request payload

    Raises:
        ValidationError: With the individual pydantic issues in ``details["issues"]``
    """
    try:
        return RankingRequest.model_validate(data)
    except PydanticValidationError as e:
        issues = [
            {"loc": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        first = issues[0] if issues else {"loc": None, "message": "invalid request"}
        raise ValidationError(
            f"Invalid ranking request: {first['message']}",
            field=first["loc"] or None,
            issues=issues,
        ) from e


# Reasoning service result schemas (lenient; anything unusable is dropped later)


class ReasoningSource(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: Optional[str] = None
    title: Optional[str] = None
    note: Optional[str] = None


class ReasoningItem(BaseModel):
    """One candidate as returned by the reasoning service"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    score: Optional[float] = None
    contrib: Dict[str, Optional[float]] = Field(default_factory=dict)
    tier: Optional[str] = None
    reason: Optional[str] = None
    main_reason: Optional[str] = Field(None, validation_alias=AliasChoices("main_reason", "mainReason"))
    reasons: Dict[str, Optional[str]] = Field(default_factory=dict)
    sources: List[ReasoningSource] = Field(default_factory=list)
    risk_notes: List[str] = Field(default_factory=list, validation_alias=AliasChoices("risk_notes", "riskNotes"))

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("contrib", mode="before")
    @classmethod
    def coerce_contrib(cls, v):
        if not isinstance(v, dict):
            return {}
        cleaned = {}
        for key, value in v.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                cleaned[str(key)] = None
            else:
                cleaned[str(key)] = float(value)
        return cleaned

    @field_validator("reasons", mode="before")
    @classmethod
    def coerce_reasons(cls, v):
        if not isinstance(v, dict):
            return {}
        return {str(k): val for k, val in v.items() if isinstance(val, str)}

    @field_validator("sources", mode="before")
    @classmethod
    def coerce_sources(cls, v):
        if not isinstance(v, list):
            return []
        return [s for s in v if isinstance(s, dict)]

    @field_validator("risk_notes", mode="before")
    @classmethod
    def coerce_notes(cls, v):
        if not isinstance(v, list):
            return []
        return [n for n in v if isinstance(n, str)]

    @field_validator("score", mode="before")
    @classmethod
    def coerce_score(cls, v):
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        return v

    @field_validator("tier", "reason", "main_reason", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return v if isinstance(v, str) else None


class ReasoningResult(BaseModel):
    """Parsed reasoning service output"""

    model_config = ConfigDict(extra="ignore")

    items: List[ReasoningItem] = Field(default_factory=list)
    meta: Dict[str, Any] = Field(default_factory=dict)


# Response schemas


class SourceEntry(WireModel):
    url: str
    title: Optional[str] = None


class BreakdownEntry(WireModel):
    metric_key: str
    normalized_value: float
    weight: float
    reason: Optional[str] = None
    status: str = "ok"


class ScoreEntry(WireModel):
    """Full per-candidate result"""

    id: str
    name: str
    total_score: float
    tier: str
    main_reason: Optional[str] = None
    top_criteria: List[str] = Field(default_factory=list)
    breakdown: List[BreakdownEntry] = Field(default_factory=list)
    sources: List[SourceEntry] = Field(default_factory=list)
    risk_notes: List[str] = Field(default_factory=list)
    insufficient_data: bool = False


class TierItem(WireModel):
    id: str
    name: str
    score: float
    main_reason: Optional[str] = None
    top_criteria: List[str] = Field(default_factory=list)


class TierGroup(WireModel):
    label: str
    items: List[TierItem] = Field(default_factory=list)


class RankingResponse(WireModel):
    """Caller-visible ranking: tiers in display order plus full scores"""

    tiers: List[TierGroup]
    scores: List[ScoreEntry]
    tier_policy: TierPolicy

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, omitting empty optionals"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def score_for(self, candidate_id: str) -> Optional[ScoreEntry]:
        for entry in self.scores:
            if entry.id == candidate_id:
                return entry
        return None
