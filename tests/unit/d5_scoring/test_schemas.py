"""
Tests for ranking request and reasoning result schemas
"""
import pytest

from core.exceptions import ValidationError
from d5_scoring.schemas import Metric, RankingOptions, ReasoningItem, ReasoningResult, parse_ranking_request
from d5_scoring.types import Direction, MetricType, NormalizeStrategy
from tests.fixtures import make_request

pytestmark = pytest.mark.unit


class TestRankingRequest:
    def test_parse_valid(self, ranking_request_data):
        request = parse_ranking_request(ranking_request_data)

        assert [c.id for c in request.candidates] == ["a", "b", "c"]
        cost = request.metrics[0]
        assert cost.direction == Direction.DOWN
        assert cost.normalize_strategy == NormalizeStrategy.MINMAX
        assert request.options.use_web_search is False

    def test_normalize_strategy_spellings(self):
        for name in ("normalizeStrategy", "normalize_strategy", "normalize"):
            metric = Metric.model_validate({"key": "x", name: "zscore"})
            assert metric.normalize_strategy == NormalizeStrategy.ZSCORE

    def test_label_defaults_to_key(self):
        assert Metric(key="speed").label == "speed"

    def test_formula_required_for_formula_metric(self):
        with pytest.raises(ValueError):
            Metric(key="blend", type=MetricType.FORMULA)

    def test_formula_rejected_on_raw_metric(self):
        with pytest.raises(ValueError):
            Metric(key="cost", formula="1 + 1")

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            Metric(key="cost", weight=-1)

    @pytest.mark.parametrize("weight", ["inf", float("inf"), float("nan")])
    def test_non_finite_weight_rejected(self, weight):
        with pytest.raises(ValidationError) as exc:
            parse_ranking_request(make_request(metrics=[{"key": "m", "weight": weight}]))
        assert "weight" in exc.value.details["field"]

    def test_duplicate_candidate_ids(self):
        data = make_request(candidates=[{"id": "a", "name": "A"}, {"id": "a", "name": "Again"}])
        with pytest.raises(ValidationError) as exc_info:
            parse_ranking_request(data)
        assert "unique" in exc_info.value.message
        assert exc_info.value.details["issues"]

    def test_duplicate_metric_keys(self):
        data = make_request(metrics=[{"key": "x"}, {"key": "x"}])
        with pytest.raises(ValidationError):
            parse_ranking_request(data)

    def test_empty_lists_rejected(self):
        with pytest.raises(ValidationError):
            parse_ranking_request({"candidates": [], "metrics": [{"key": "x"}]})

    def test_camel_case_options(self):
        request = parse_ranking_request(make_request(useWebSearch=True, searchDepth="deep", tiers=["Gold", "Silver"]))
        assert request.options.use_web_search is True
        assert request.options.search_depth.value == "deep"
        assert request.options.tiers == ["Gold", "Silver"]

    def test_tier_option_limits(self):
        with pytest.raises(ValueError):
            RankingOptions(tiers=[str(i) for i in range(11)])
        assert RankingOptions(tiers=[" S ", "S", "A"]).tiers == ["S", "A"]

    def test_raw_metrics_exclude_formulas(self):
        data = make_request(
            metrics=[{"key": "x"}, {"key": "f", "type": "formula", "formula": "x * 2"}],
        )
        request = parse_ranking_request(data)
        assert [m.key for m in request.raw_metrics] == ["x"]


class TestReasoningResult:
    def test_lenient_item(self):
        item = ReasoningItem.model_validate(
            {
                "id": 7,
                "score": "high",
                "contrib": {"x": 0.4, "y": "n/a", "z": True},
                "reasons": {"x": "fine", "y": 3},
                "sources": [{"url": "https://a"}, "junk"],
                "risk_notes": ["ok", 5],
                "mainReason": "best",
                "unexpected": {"nested": True},
            }
        )
        assert item.id == "7"
        assert item.score is None
        assert item.contrib == {"x": 0.4, "y": None, "z": None}
        assert item.reasons == {"x": "fine"}
        assert len(item.sources) == 1
        assert item.risk_notes == ["ok"]
        assert item.main_reason == "best"

    def test_missing_items_defaults_empty(self):
        assert ReasoningResult.model_validate({"meta": {}}).items == []
