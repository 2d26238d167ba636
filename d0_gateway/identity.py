"""
Caller identity resolution for quota keys
"""
from typing import Optional

from .types import Identity, IdentityKind

ANONYMOUS = "anonymous"


def first_forwarded(forwarded_for: Optional[str]) -> Optional[str]:
    """First non-empty address of an X-Forwarded-For header"""
    if not forwarded_for:
        return None
    for part in forwarded_for.split(","):
        part = part.strip()
        if part:
            return part
    return None


def resolve_identity(
    user_id: Optional[str] = None,
    forwarded_for: Optional[str] = None,
    remote_addr: Optional[str] = None,
) -> Identity:
    """
    Resolve the principal a request is counted against

    An authenticated user id wins. Otherwise the caller is a guest keyed by
    the first forwarded address, then the remote address, then "anonymous".
    """
    if user_id and user_id.strip():
        return Identity(value=user_id.strip(), kind=IdentityKind.USER)

    address = first_forwarded(forwarded_for) or (remote_addr or "").strip() or ANONYMOUS
    return Identity(value=address, kind=IdentityKind.GUEST)
