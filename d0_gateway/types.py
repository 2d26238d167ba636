"""
Type definitions for gateway domain
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class ActionClass(str, Enum):
    """Quota buckets for expensive calls"""

    SCORING = "scoring"  # every ranking request
    WEB = "web"  # web-augmented requests, checked after scoring


class IdentityKind(str, Enum):
    """Authenticated users get larger budgets than guests"""

    USER = "user"
    GUEST = "guest"


# Header name fragment per action class
HEADER_SLUGS = {
    ActionClass.SCORING: "score",
    ActionClass.WEB: "web",
}


@dataclass(frozen=True)
class Identity:
    """Caller principal used as the quota key"""

    value: str
    kind: IdentityKind

    @property
    def authenticated(self) -> bool:
        return self.kind == IdentityKind.USER


@dataclass(frozen=True)
class CounterResult:
    """Counter state after an increment or peek"""

    count: int
    reset_at: datetime


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of one quota check"""

    action_class: ActionClass
    allowed: bool
    remaining: int
    limit: int
    reset_at: datetime

    def to_headers(self) -> Dict[str, str]:
        slug = HEADER_SLUGS[self.action_class]
        return {
            f"x-ratelimit-{slug}-remaining": str(self.remaining),
            f"x-ratelimit-{slug}-reset": self.reset_at.isoformat(),
        }


@dataclass(frozen=True)
class QuotaAdmission:
    """All quota decisions that admitted one request"""

    scoring: QuotaDecision
    web: Optional[QuotaDecision] = None

    @property
    def use_web(self) -> bool:
        return self.web is not None and self.web.allowed

    def to_headers(self) -> Dict[str, str]:
        headers = self.scoring.to_headers()
        if self.web is not None:
            headers.update(self.web.to_headers())
        return headers
