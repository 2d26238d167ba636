"""
Quota gate: daily admission control for expensive reasoning calls

Every ranking request consumes one ``scoring`` slot; web-augmented requests
additionally consume one ``web`` slot, checked only after scoring passed.
Windows are rolling, anchored to the first request, and budgets depend on
whether the caller is authenticated.
"""
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from core.config import get_settings
from core.logging import get_logger
from core.metrics import quota_checks

from .counter_store import CounterStore, InMemoryCounterStore, RedisCounterStore
from .exceptions import QuotaExceededError, QuotaStoreError
from .types import HEADER_SLUGS, ActionClass, Identity, IdentityKind, QuotaAdmission, QuotaDecision

logger = get_logger(__name__)


class QuotaGate:
    """Sliding-window quota per (identity, action class)"""

    def __init__(
        self,
        store: CounterStore,
        limits: Dict[ActionClass, Dict[IdentityKind, int]],
        window_seconds: int = 86400,
        key_prefix: str = "ratelimit",
    ):
        self.store = store
        self.limits = limits
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix

    @classmethod
    def from_settings(cls, settings=None, store: Optional[CounterStore] = None) -> "QuotaGate":
        """Build a gate from settings; stub mode always uses the in-process store"""
        settings = settings or get_settings()
        if store is None:
            if settings.use_stubs or settings.quota_backend == "memory":
                store = InMemoryCounterStore()
            else:
                store = RedisCounterStore(settings.redis_url)
        limits = {
            ActionClass.SCORING: {
                IdentityKind.USER: settings.quota_scoring_user_limit,
                IdentityKind.GUEST: settings.quota_scoring_guest_limit,
            },
            ActionClass.WEB: {
                IdentityKind.USER: settings.quota_web_user_limit,
                IdentityKind.GUEST: settings.quota_web_guest_limit,
            },
        }
        return cls(store, limits, settings.quota_window_seconds, settings.quota_key_prefix)

    def limit_for(self, identity: Identity, action_class: ActionClass) -> int:
        return self.limits[action_class][identity.kind]

    def key_for(self, identity: Identity, action_class: ActionClass) -> str:
        """Counter key, with a separate namespace for guests"""
        key = f"{self.key_prefix}:{HEADER_SLUGS[action_class]}"
        if identity.kind == IdentityKind.GUEST:
            key += ":guest"
        return f"{key}:{identity.value}"

    async def check(self, identity: Identity, action_class: ActionClass) -> QuotaDecision:
        """
        Consume one slot and report whether the request is admitted

        The increment happens even when the request ends up rejected; a
        rejected request's count past the limit only ever reports 0 remaining.

        Raises:
            QuotaStoreError: If the counter store is unavailable
        """
        limit = self.limit_for(identity, action_class)
        key = self.key_for(identity, action_class)

        try:
            counter = await self.store.increment_and_get(key, self.window_seconds)
        except QuotaStoreError:
            quota_checks.labels(
                action_class=action_class.value, identity_kind=identity.kind.value, outcome="error"
            ).inc()
            raise

        allowed = counter.count <= limit
        decision = QuotaDecision(
            action_class=action_class,
            allowed=allowed,
            remaining=max(0, limit - counter.count),
            limit=limit,
            reset_at=counter.reset_at,
        )

        quota_checks.labels(
            action_class=action_class.value,
            identity_kind=identity.kind.value,
            outcome="admitted" if allowed else "rejected",
        ).inc()
        if allowed:
            logger.debug(f"Quota admitted {action_class.value} for {identity.kind.value}: {decision.remaining} left")
        else:
            logger.warning(
                f"Quota exceeded for {action_class.value} ({identity.kind.value} {identity.value})",
                extra={"limit": limit, "reset_at": decision.reset_at.isoformat()},
            )
        return decision

    async def enforce(self, identity: Identity, action_class: ActionClass) -> QuotaDecision:
        """Check and raise QuotaExceededError when the request is not admitted"""
        decision = await self.check(identity, action_class)
        if not decision.allowed:
            raise QuotaExceededError(
                action_class=action_class.value,
                remaining=decision.remaining,
                reset_at=decision.reset_at,
                limit=decision.limit,
            )
        return decision

    async def admit_request(self, identity: Identity, use_web: bool = False) -> QuotaAdmission:
        """
        Admit one ranking request: scoring first, then web if requested

        Raises:
            QuotaExceededError: On the first exhausted class; a web rejection
                carries the admitted scoring decision in ``scoring_decision``
            QuotaStoreError: If the counter store is unavailable
        """
        scoring = await self.enforce(identity, ActionClass.SCORING)
        if not use_web:
            return QuotaAdmission(scoring=scoring)

        try:
            web = await self.enforce(identity, ActionClass.WEB)
        except QuotaExceededError as e:
            e.scoring_decision = scoring
            raise
        return QuotaAdmission(scoring=scoring, web=web)

    async def peek(self, identity: Identity, action_class: ActionClass) -> QuotaDecision:
        """Report the current budget without consuming a slot"""
        limit = self.limit_for(identity, action_class)
        counter = await self.store.peek(self.key_for(identity, action_class))
        if counter is None:
            reset_at = datetime.fromtimestamp(time.time(), tz=timezone.utc) + timedelta(seconds=self.window_seconds)
            return QuotaDecision(action_class, limit > 0, limit, limit, reset_at)
        remaining = max(0, limit - counter.count)
        return QuotaDecision(action_class, remaining > 0, remaining, limit, counter.reset_at)


def rejection_headers(error: QuotaExceededError) -> Dict[str, str]:
    """Headers for a quota rejection, including an already-admitted scoring check"""
    headers: Dict[str, str] = {}
    if error.scoring_decision is not None:
        headers.update(error.scoring_decision.to_headers())
    slug = HEADER_SLUGS[ActionClass(error.action_class)]
    headers[f"x-ratelimit-{slug}-remaining"] = "0"
    if error.reset_at is not None:
        headers[f"x-ratelimit-{slug}-reset"] = error.reset_at.isoformat()
    return headers
