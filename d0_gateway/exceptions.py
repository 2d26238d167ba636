"""
Gateway-specific exceptions
"""
from datetime import datetime
from typing import Optional

from core.exceptions import CATEGORY_RETRY, TierwiseError

MAX_RAW_LENGTH = 2000


def truncate_raw(raw: Optional[str]) -> Optional[str]:
    """Limit an upstream body kept for diagnostics"""
    if raw is None:
        return None
    return raw if len(raw) <= MAX_RAW_LENGTH else raw[:MAX_RAW_LENGTH]


class GatewayError(TierwiseError):
    """Base exception for gateway domain"""

    error_category = CATEGORY_RETRY


class QuotaExceededError(GatewayError):
    """Daily quota exhausted for an identity and action class"""

    def __init__(self, action_class: str, remaining: int = 0, reset_at: Optional[datetime] = None, limit: int = None):
        self.action_class = action_class
        self.remaining = remaining
        self.reset_at = reset_at
        self.limit = limit
        # set by the gate when a web rejection follows an admitted scoring check
        self.scoring_decision = None
        message = f"Quota exceeded for {action_class}"
        if reset_at:
            message += f", resets at {reset_at.isoformat()}"
        super().__init__(
            message=message,
            error_code="QUOTA_EXCEEDED",
            details={
                "action_class": action_class,
                "remaining": remaining,
                "reset_at": reset_at.isoformat() if reset_at else None,
                "limit": limit,
            },
            status_code=429,
        )


class QuotaStoreError(GatewayError):
    """Counter store unavailable; requests are rejected rather than admitted"""

    def __init__(self, message: str, backend: str = None):
        self.backend = backend
        super().__init__(
            message=message,
            error_code="QUOTA_STORE_ERROR",
            details={"backend": backend} if backend else {},
            status_code=503,
        )


class ReasoningServiceError(GatewayError):
    """Error calling or interpreting the external reasoning service"""

    code = "REASONING_ERROR"
    default_status = 502

    def __init__(self, provider: str, message: str, raw: Optional[str] = None, status_code: int = None, **details):
        self.provider = provider
        self.raw = truncate_raw(raw)
        payload = {"provider": provider, **details}
        if self.raw is not None:
            payload["raw"] = self.raw
        super().__init__(
            message=f"{provider}: {message}",
            error_code=self.code,
            details=payload,
            status_code=status_code or self.default_status,
        )


class UpstreamError(ReasoningServiceError):
    """Reasoning service answered with a non-success status"""

    code = "UPSTREAM_ERROR"

    def __init__(self, provider: str, message: str, upstream_status: int = None, raw: Optional[str] = None):
        self.upstream_status = upstream_status
        super().__init__(provider, message, raw=raw, upstream_status=upstream_status)


class NetworkError(ReasoningServiceError):
    """Transport failure or timeout reaching the reasoning service"""

    code = "NETWORK_ERROR"
    default_status = 504


class EmptyResponseError(ReasoningServiceError):
    """Reasoning service returned no usable text or no items"""

    code = "EMPTY_RESPONSE"


class ParseError(ReasoningServiceError):
    """Reasoning service output is not JSON or not the expected shape"""

    code = "PARSE_ERROR"
