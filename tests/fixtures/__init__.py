"""
Centralized test fixtures: sample ranking requests and reasoning results
"""
import pytest

from d0_gateway.counter_store import InMemoryCounterStore
from d0_gateway.quota import QuotaGate
from d0_gateway.types import ActionClass, IdentityKind

__all__ = [
    "make_request",
    "make_result",
    "make_gate",
    "ranking_request_data",
    "reasoning_result_data",
    "memory_store",
    "quota_gate",
]


def make_request(candidates=None, metrics=None, **options):
    """Build a ranking request payload in wire format"""
    return {
        "candidates": candidates
        or [
            {"id": "a", "name": "Alpha"},
            {"id": "b", "name": "Beta"},
            {"id": "c", "name": "Gamma"},
        ],
        "metrics": metrics
        or [
            {"key": "cost", "label": "Cost", "type": "numeric", "direction": "down", "weight": 1, "normalize": "minmax"},
            {"key": "quality", "label": "Quality", "type": "likert", "weight": 2},
        ],
        "options": options,
    }


def make_result(contribs, tiers=None, **item_fields):
    """Build a reasoning result from {candidate_id: {metric: value}}"""
    items = []
    for candidate_id, contrib in contribs.items():
        item = {"id": candidate_id, "contrib": contrib}
        if tiers and candidate_id in tiers:
            item["tier"] = tiers[candidate_id]
        item.update(item_fields.get(candidate_id, {}))
        items.append(item)
    return {"items": items, "meta": {"confidence": "B"}}


def make_gate(store=None, scoring=(50, 5), web=(10, 2), window_seconds=86400):
    """Quota gate with explicit (user, guest) budgets"""
    limits = {
        ActionClass.SCORING: {IdentityKind.USER: scoring[0], IdentityKind.GUEST: scoring[1]},
        ActionClass.WEB: {IdentityKind.USER: web[0], IdentityKind.GUEST: web[1]},
    }
    return QuotaGate(store or InMemoryCounterStore(), limits, window_seconds=window_seconds)


@pytest.fixture
def ranking_request_data():
    return make_request()


@pytest.fixture
def reasoning_result_data():
    return make_result(
        {
            "a": {"cost": 10, "quality": 0.9},
            "b": {"cost": 20, "quality": 0.5},
            "c": {"cost": 30, "quality": 0.1},
        }
    )


@pytest.fixture
def memory_store():
    return InMemoryCounterStore()


@pytest.fixture
def quota_gate(memory_store):
    return make_gate(memory_store)
