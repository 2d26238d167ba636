"""
Test structured exceptions
"""
from datetime import datetime, timezone

import pytest

from core.exceptions import (
    CATEGORY_INPUT,
    CATEGORY_INTERNAL,
    CATEGORY_RETRY,
    ConfigurationError,
    EvaluationError,
    TierwiseError,
    ValidationError,
)
from d0_gateway.exceptions import (
    EmptyResponseError,
    NetworkError,
    ParseError,
    QuotaExceededError,
    QuotaStoreError,
    UpstreamError,
    truncate_raw,
)

pytestmark = pytest.mark.unit


class TestCoreExceptions:
    def test_base_error_defaults(self):
        error = TierwiseError("boom")

        assert error.error_code == "TierwiseError"
        assert error.status_code == 500
        assert error.error_category == CATEGORY_INTERNAL
        assert error.to_dict() == {"error": "TierwiseError", "message": "boom", "details": {}}

    def test_validation_error(self):
        error = ValidationError("Bad weight", field="metrics.0.weight", value=-1)

        assert error.status_code == 400
        assert error.error_category == CATEGORY_INPUT
        assert error.details == {"field": "metrics.0.weight", "value": -1}
        assert error.field == "metrics.0.weight"

    def test_validation_error_without_field(self):
        assert ValidationError("Bad").details == {}

    def test_evaluation_error(self):
        error = EvaluationError("Division by zero", expression="a / 0")

        assert error.error_code == "EVALUATION_ERROR"
        assert error.details["expression"] == "a / 0"
        assert error.status_code == 422

    def test_configuration_error(self):
        error = ConfigurationError("Missing key", setting="openai_api_key")
        assert error.to_dict()["details"] == {"setting": "openai_api_key"}


class TestGatewayExceptions:
    def test_quota_exceeded(self):
        reset = datetime(2026, 1, 2, tzinfo=timezone.utc)
        error = QuotaExceededError("scoring", reset_at=reset, limit=5)

        assert error.status_code == 429
        assert error.error_category == CATEGORY_RETRY
        assert error.details["reset_at"] == reset.isoformat()
        assert "resets at" in error.message
        assert error.scoring_decision is None

    def test_quota_store_error(self):
        error = QuotaStoreError("Redis down", backend="redis")
        assert error.status_code == 503
        assert error.details == {"backend": "redis"}

    @pytest.mark.parametrize(
        "error_class,code,status",
        [
            (NetworkError, "NETWORK_ERROR", 504),
            (EmptyResponseError, "EMPTY_RESPONSE", 502),
            (ParseError, "PARSE_ERROR", 502),
        ],
    )
    def test_reasoning_error_kinds(self, error_class, code, status):
        error = error_class("openai", "failed")

        assert error.error_code == code
        assert error.status_code == status
        assert error.message == "openai: failed"
        assert error.details == {"provider": "openai"}

    def test_upstream_error_keeps_status_and_raw(self):
        error = UpstreamError("openai", "HTTP 500", upstream_status=500, raw="x" * 3000)

        assert error.upstream_status == 500
        assert error.details["upstream_status"] == 500
        assert len(error.details["raw"]) == 2000

    def test_truncate_raw(self):
        assert truncate_raw(None) is None
        assert truncate_raw("short") == "short"
