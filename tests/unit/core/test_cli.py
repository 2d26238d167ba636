"""
Test the command-line interface
"""
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
import yaml
from click.testing import CliRunner

from core.cli import cli
from d0_gateway.counter_store import CounterStore
from d0_gateway.quota import QuotaGate
from d0_gateway.types import CounterResult
from tests.fixtures import make_gate, make_request, make_result

pytestmark = pytest.mark.unit


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def request_file(tmp_path, ranking_request_data):
    path = tmp_path / "request.json"
    path.write_text(json.dumps(ranking_request_data))
    return str(path)


@pytest.fixture
def scores_file(tmp_path, reasoning_result_data):
    path = tmp_path / "scores.yaml"
    path.write_text(yaml.safe_dump(reasoning_result_data))
    return str(path)


class TestRank:
    def test_rank_json(self, runner, request_file, scores_file):
        result = runner.invoke(cli, ["rank", request_file, "--scores", scores_file])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert [s["id"] for s in payload["scores"]] == ["a", "b", "c"]
        assert payload["tierPolicy"] == "derived"

    def test_rank_text(self, runner, request_file, scores_file):
        result = runner.invoke(cli, ["rank", request_file, "--scores", scores_file, "--format", "text"])

        assert result.exit_code == 0, result.output
        assert "Ranking summary" in result.output
        assert "#1 Alpha" in result.output

    def test_rank_empty_result(self, runner, request_file, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text(json.dumps({"items": []}))

        result = runner.invoke(cli, ["rank", request_file, "--scores", str(path)])

        assert result.exit_code != 0
        assert "EMPTY_RESPONSE" in result.output

    def test_rank_invalid_request(self, runner, tmp_path, scores_file):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"candidates": [], "metrics": []}))

        result = runner.invoke(cli, ["rank", str(path), "--scores", scores_file])

        assert result.exit_code != 0
        assert "VALIDATION_ERROR" in result.output

    def test_non_mapping_document(self, runner, tmp_path, scores_file):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        result = runner.invoke(cli, ["rank", str(path), "--scores", scores_file])

        assert result.exit_code != 0
        assert "mapping" in result.output


class TestValidateFormulas:
    def test_valid(self, runner, tmp_path):
        path = tmp_path / "request.yaml"
        metrics = [
            {"key": "cost", "type": "numeric"},
            {"key": "blend", "type": "formula", "formula": "0.5 * cost + 0.5 * score"},
        ]
        path.write_text(yaml.safe_dump(make_request(metrics=metrics)))

        result = runner.invoke(cli, ["validate-formulas", str(path)])

        assert result.exit_code == 0, result.output
        assert "1 formula metric(s) valid across 2 metrics" in result.output

    def test_forward_reference(self, runner, tmp_path):
        path = tmp_path / "request.yaml"
        metrics = [
            {"key": "blend", "type": "formula", "formula": "cost * 2"},
            {"key": "cost", "type": "numeric"},
        ]
        path.write_text(yaml.safe_dump(make_request(metrics=metrics)))

        result = runner.invoke(cli, ["validate-formulas", str(path)])

        assert result.exit_code != 0
        assert "unknown variable 'cost'" in result.output


class TestQuotaStatus:
    def test_fresh_guest(self, runner):
        result = runner.invoke(cli, ["quota-status", "203.0.113.7"])

        assert result.exit_code == 0, result.output
        assert "Identity: 203.0.113.7 (guest)" in result.output
        assert "scoring: 5/5 remaining" in result.output
        assert "web: 2/2 remaining" in result.output
        assert "in-process counter store" in result.output

    def test_authenticated_user(self, runner):
        result = runner.invoke(cli, ["quota-status", "user-1", "--authenticated"])

        assert result.exit_code == 0, result.output
        assert "scoring: 50/50 remaining" in result.output

    def test_shared_store_has_no_note(self, runner, monkeypatch):
        store = AsyncMock(spec=CounterStore)
        store.peek.return_value = CounterResult(count=3, reset_at=datetime(2026, 1, 2, tzinfo=timezone.utc))
        monkeypatch.setattr(QuotaGate, "from_settings", classmethod(lambda cls, settings=None: make_gate(store)))

        result = runner.invoke(cli, ["quota-status", "203.0.113.7"])

        assert result.exit_code == 0, result.output
        assert "scoring: 2/5 remaining, resets 2026-01-02T00:00:00+00:00" in result.output
        assert "in-process counter store" not in result.output
        store.close.assert_awaited_once()


def test_env_info(runner):
    result = runner.invoke(cli, ["env-info"])

    assert result.exit_code == 0
    assert "Use stubs: True" in result.output
    assert "Tier labels: S, A, B, C" in result.output


def test_unused_result_items_are_ignored(runner, request_file, tmp_path):
    data = make_result({"a": {"cost": 1, "quality": 1}, "zzz": {"cost": 5, "quality": 0}})
    path = tmp_path / "scores.json"
    path.write_text(json.dumps(data))

    result = runner.invoke(cli, ["rank", request_file, "--scores", str(path)])

    assert result.exit_code == 0, result.output
    ids = [s["id"] for s in json.loads(result.output)["scores"]]
    assert ids[0] == "a"
    assert "zzz" not in ids
