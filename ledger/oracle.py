"""
Authorization Oracle
====================
Pure decision functions over grant state and the current time. Nothing here
mutates state or emits events.
"""

from typing import Optional

from core.models import NO_EXPIRY, AccessGrant

from .state import LedgerState


def grant_authorizes(grant: Optional[AccessGrant], now: int) -> bool:
    """True iff the grant is active and not past its expiry at ``now``."""
    if grant is None or not grant.active:
        return False
    return grant.valid_until == NO_EXPIRY or now <= grant.valid_until


def is_authorized(state: LedgerState, record_id: str, principal: str, now: int) -> bool:
    """Decide whether ``principal`` may access ``record_id`` at ``now``."""
    if not isinstance(record_id, str) or not isinstance(principal, str):
        return False
    if record_id not in state.records:
        return False
    return grant_authorizes(state.grants.get((record_id, principal)), now)
