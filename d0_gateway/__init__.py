"""
D0 Gateway - everything in front of external collaborators

Identity resolution, the quota gate and its counter stores, and the
reasoning service client. No other domain makes direct external calls.
"""

from .counter_store import CounterStore, InMemoryCounterStore, RedisCounterStore
from .exceptions import (
    EmptyResponseError,
    GatewayError,
    NetworkError,
    ParseError,
    QuotaExceededError,
    QuotaStoreError,
    ReasoningServiceError,
    UpstreamError,
)
from .identity import resolve_identity
from .quota import QuotaGate, rejection_headers
from .reasoning_client import ReasoningClient, ReasoningService, StaticReasoningService
from .types import ActionClass, CounterResult, Identity, IdentityKind, QuotaAdmission, QuotaDecision

__all__ = [
    "QuotaGate",
    "rejection_headers",
    "resolve_identity",
    "CounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "ReasoningService",
    "ReasoningClient",
    "StaticReasoningService",
    # Exceptions
    "GatewayError",
    "QuotaExceededError",
    "QuotaStoreError",
    "ReasoningServiceError",
    "UpstreamError",
    "NetworkError",
    "EmptyResponseError",
    "ParseError",
    # Types
    "ActionClass",
    "IdentityKind",
    "Identity",
    "CounterResult",
    "QuotaDecision",
    "QuotaAdmission",
]
