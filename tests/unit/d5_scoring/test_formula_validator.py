"""
Tests for authoring-time formula validation
"""
from types import SimpleNamespace

import pytest

from core.exceptions import ValidationError
from d5_scoring.formula_validator import metric_names, validate_formula, validate_metric_formulas
from d5_scoring.types import MetricType

pytestmark = pytest.mark.unit


def metric(key, type=MetricType.NUMERIC, formula=None, label=None):
    return SimpleNamespace(key=key, label=label or key, type=type, formula=formula)


class TestValidateFormula:
    def test_references_prior_metrics(self):
        """Formula over earlier metrics passes and reports its variables"""
        assert validate_formula("0.5*cost + 0.5*quality", ["score", "cost", "quality"]) == ["cost", "quality"]

    def test_unknown_variable_named(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_formula("cost + reputation", ["score", "cost"], metric_key="blend")

        error = exc_info.value
        assert "reputation" in error.message
        assert error.details["variable"] == "reputation"
        assert error.details["metric"] == "blend"
        assert error.field == "formula"
        assert error.error_category == "input"

    def test_first_unknown_variable_reported(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_formula("zeta + alpha + cost", ["cost"])
        assert exc_info.value.details["variable"] == "zeta"

    def test_constants_always_allowed(self):
        assert validate_formula("pi * e * score", ["score"]) == ["score"]

    def test_division_by_zero_is_not_a_validation_error(self):
        assert validate_formula("cost / 0", ["cost"]) == ["cost"]

    def test_syntax_error_is_validation_error(self):
        with pytest.raises(ValidationError, match="Invalid formula"):
            validate_formula("cost +", ["cost"], metric_key="broken")

    def test_deterministic(self):
        allowed = ("score", "cost")
        first = validate_formula("cost * score", allowed)
        second = validate_formula("cost * score", allowed)
        assert first == second == ["cost", "score"]
        assert allowed == ("score", "cost")


class TestValidateMetricFormulas:
    def test_left_to_right_order(self):
        metrics = [
            metric("cost"),
            metric("quality"),
            metric("blend", MetricType.FORMULA, "0.5*cost + 0.5*quality"),
            metric("boosted", MetricType.FORMULA, "blend * score"),
        ]
        validate_metric_formulas(metrics)

    def test_forward_reference_rejected(self):
        metrics = [
            metric("blend", MetricType.FORMULA, "cost * 2"),
            metric("cost"),
        ]
        with pytest.raises(ValidationError) as exc_info:
            validate_metric_formulas(metrics)
        assert exc_info.value.details["variable"] == "cost"

    def test_self_reference_rejected(self):
        with pytest.raises(ValidationError):
            validate_metric_formulas([metric("loop", MetricType.FORMULA, "loop + 1")])

    def test_reputation_not_defined(self):
        metrics = [metric("cost"), metric("blend", MetricType.FORMULA, "cost + reputation")]
        with pytest.raises(ValidationError, match="reputation"):
            validate_metric_formulas(metrics)

    def test_label_usable_as_variable(self):
        metrics = [
            metric("m1", label="price"),
            metric("value", MetricType.FORMULA, "1 - price"),
        ]
        validate_metric_formulas(metrics)

    def test_missing_formula(self):
        with pytest.raises(ValidationError, match="has no formula"):
            validate_metric_formulas([metric("blend", MetricType.FORMULA, "  ")])


class TestMetricNames:
    def test_key_and_identifier_label(self):
        assert metric_names(metric("m1", label="price")) == ["m1", "price"]

    def test_non_identifier_label_skipped(self):
        assert metric_names(metric("m1", label="Unit price")) == ["m1"]

    def test_same_label(self):
        assert metric_names(metric("cost")) == ["cost"]
