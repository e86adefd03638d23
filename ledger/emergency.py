"""
Emergency Access Controller
===========================
Break-glass path: a responder grants itself time-bounded access without
owner consent. The control is the audit trail, not a gate: every use emits
one EmergencyAccess event carrying the justification hash, and never an
ordinary AccessGranted event.
"""

from core.exceptions import InvalidExpiryError, InvalidInputError
from core.models import NO_SCOPE, AccessGrant, EventType, LedgerConfig

from .grants import upsert_grant
from .guards import require_capability, require_record, require_registered
from .roles import Capability
from .state import LedgerState


def emergency_access(
    state: LedgerState,
    config: LedgerConfig,
    caller: str,
    record_id: str,
    justification_hash: str,
    valid_for: int,
    now: int,
) -> AccessGrant:
    """
    Grant the caller access for ``valid_for`` seconds, bypassing consent.

    Overwrites any existing grant for (record, caller), including a
    consensual one with a later expiry.

    Raises:
        UnknownPrincipalError: Caller is not registered.
        UnauthorizedError: Caller's role is not enabled for break-glass.
        RecordNotFoundError: Record does not exist.
        InvalidExpiryError: Duration is not positive, or exceeds a configured cap.
        InvalidInputError: Justification hash is empty.
    """
    principal = require_registered(state, caller)
    require_capability(
        principal,
        Capability.BREAK_GLASS,
        "emergency_access",
        enabled_roles=config.emergency_roles,
    )
    require_record(state, record_id)

    if not isinstance(valid_for, int) or isinstance(valid_for, bool) or valid_for <= 0:
        raise InvalidExpiryError(valid_for, now, reason="duration_not_positive")
    cap = config.emergency_max_duration_seconds
    if cap is not None and valid_for > cap:
        raise InvalidExpiryError(valid_for, now, reason="duration_exceeds_cap")
    if not isinstance(justification_hash, str) or not justification_hash.strip():
        raise InvalidInputError("justification_hash", "must be a non-empty string")

    valid_until = now + valid_for
    result = upsert_grant(
        state,
        record_id,
        caller,
        valid_until,
        NO_SCOPE,
        caller,
        now,
        emergency=True,
    )
    state.emit(
        EventType.EMERGENCY_ACCESS,
        now,
        actor=caller,
        record_id=record_id,
        justification_hash=justification_hash,
        valid_until=valid_until,
    )
    return result
