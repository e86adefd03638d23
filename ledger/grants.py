"""
Access Grant Store
==================
(record, grantee) grants with optional expiry and an opaque scope tag.
Revocation deactivates a grant but keeps its last parameters for audit.
"""

from typing import Optional

from core.exceptions import (
    GrantNotActiveError,
    InvalidExpiryError,
    InvalidGranteeError,
    InvalidInputError,
)
from core.models import NO_EXPIRY, AccessGrant, EventType

from .guards import require_owner, require_record
from .roles import Capability, has_capability
from .state import LedgerState


def upsert_grant(
    state: LedgerState,
    record_id: str,
    grantee: str,
    valid_until: int,
    scope: str,
    granted_by: str,
    now: int,
    emergency: bool = False,
) -> AccessGrant:
    """Write an active grant, replacing any previous entry for the key."""
    grant = AccessGrant(
        record_id=record_id,
        grantee=grantee,
        active=True,
        valid_until=valid_until,
        scope=scope,
        granted_by=granted_by,
        granted_at=now,
        emergency=emergency,
    )
    state.put_grant(grant)
    return grant


def _validate_grantee(state: LedgerState, grantee: str) -> None:
    if not isinstance(grantee, str):
        raise InvalidGranteeError(repr(grantee), "not a principal id")
    principal = state.principals.get(grantee)
    if principal is None or not principal.registered:
        raise InvalidGranteeError(grantee, "not registered")
    if not has_capability(principal.role, Capability.RECEIVE_GRANTS):
        raise InvalidGranteeError(grantee, f"role {principal.role.value} cannot hold grants")


def grant(
    state: LedgerState,
    caller: str,
    record_id: str,
    grantee: str,
    valid_until: int,
    scope: str,
    now: int,
) -> AccessGrant:
    """
    Grant (or re-grant) access to a delegate.

    Re-granting overwrites the previous expiry and scope.

    Raises:
        RecordNotFoundError: Record does not exist.
        NotOwnerError: Caller does not own the record.
        InvalidGranteeError: Grantee is unregistered or not delegate-class.
        InvalidExpiryError: valid_until is non-zero and not after now.
    """
    record = require_record(state, record_id)
    require_owner(record, caller)
    _validate_grantee(state, grantee)

    if not isinstance(valid_until, int) or isinstance(valid_until, bool) or valid_until < 0:
        raise InvalidExpiryError(valid_until, now, reason="not_a_timestamp")
    if valid_until != NO_EXPIRY and valid_until <= now:
        raise InvalidExpiryError(valid_until, now)
    if not isinstance(scope, str):
        raise InvalidInputError("scope", "must be a string")

    result = upsert_grant(state, record_id, grantee, valid_until, scope, caller, now)
    state.emit(
        EventType.ACCESS_GRANTED,
        now,
        actor=caller,
        record_id=record_id,
        grantee=grantee,
        valid_until=valid_until,
        scope=scope,
    )
    return result


def revoke(
    state: LedgerState,
    caller: str,
    record_id: str,
    grantee: str,
    now: int,
) -> AccessGrant:
    """
    Revoke an active grant, whether or not it has already expired.

    Raises:
        RecordNotFoundError: Record does not exist.
        NotOwnerError: Caller does not own the record.
        GrantNotActiveError: No grant exists or it is already revoked.
    """
    record = require_record(state, record_id)
    require_owner(record, caller)

    existing = get_grant(state, record_id, grantee)
    if existing is None or not existing.active:
        raise GrantNotActiveError(record_id, grantee)

    revoked = existing.model_copy(update={"active": False})
    state.put_grant(revoked)
    state.emit(
        EventType.ACCESS_REVOKED,
        now,
        actor=caller,
        record_id=record_id,
        grantee=grantee,
    )
    return revoked


def get_grant(state: LedgerState, record_id: str, grantee: str) -> Optional[AccessGrant]:
    if not isinstance(record_id, str) or not isinstance(grantee, str):
        return None
    return state.grants.get((record_id, grantee))
