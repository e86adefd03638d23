"""
Record Registry
===============
Immutable pointers from a derived record id to an owner and an opaque
off-chain content locator. There is no update path once a record exists.
"""

from typing import Optional

from core.exceptions import (
    InvalidInputError,
    InvalidRoleError,
    RecordCollisionError,
    UnauthorizedError,
    UnknownPrincipalError,
)
from core.models import EventType, LedgerConfig, Principal, Record, Role
from core.utils import derive_record_id

from .guards import require_record, require_registered, validate_principal_id
from .identity import insert_principal
from .roles import Capability, has_capability
from .state import LedgerState

OPERATION = "create_record"


def _resolve_registrar_owner(
    state: LedgerState,
    config: LedgerConfig,
    caller: str,
    owner_override: Optional[str],
    now: int,
) -> str:
    """Owner of a record created by a curator-class registrar."""
    if owner_override is None or owner_override == caller:
        return caller

    validate_principal_id(owner_override)
    existing = state.principals.get(owner_override)
    if existing is None or not existing.registered:
        if not config.auto_register_owner:
            raise UnknownPrincipalError(owner_override)
        insert_principal(state, owner_override, Role.PATIENT, now, registered_by=caller)
        return owner_override

    if not has_capability(existing.role, Capability.OWN_RECORDS):
        raise InvalidRoleError(existing.role, expected=Role.PATIENT.value)
    return owner_override


def _creation_mode(principal: Principal, config: LedgerConfig) -> str:
    if principal.role not in config.record_creator_roles:
        raise UnauthorizedError(
            principal.principal_id,
            OPERATION,
            reason=f"role {principal.role.value} may not create records",
        )
    if has_capability(principal.role, Capability.OWN_RECORDS):
        return "self"
    if has_capability(principal.role, Capability.REGISTER_RECORDS):
        return "registrar"
    raise UnauthorizedError(
        principal.principal_id,
        OPERATION,
        reason=f"role {principal.role.value} may not create records",
    )


def create_record(
    state: LedgerState,
    config: LedgerConfig,
    caller: str,
    locator: str,
    now: int,
    owner_override: Optional[str] = None,
) -> Record:
    """
    Create a record pointing at off-chain content.

    Patient-class callers own what they create. Curator-class callers may
    name a patient owner; without one they own the record themselves.

    Raises:
        UnknownPrincipalError: Caller (or named owner) is not registered.
        UnauthorizedError: Caller's role may not create records, or a
            patient names someone else as owner.
        InvalidInputError: Locator is empty.
        InvalidRoleError: Named owner is registered but not patient-class.
        RecordCollisionError: Derived id already exists.
    """
    principal = require_registered(state, caller)
    mode = _creation_mode(principal, config)

    if not isinstance(locator, str) or not locator.strip():
        raise InvalidInputError("locator", "must be a non-empty string")

    record_id = derive_record_id(caller, locator, now)
    if record_id in state.records:
        raise RecordCollisionError(record_id)

    if mode == "self":
        if owner_override not in (None, caller):
            raise UnauthorizedError(
                caller, OPERATION, reason="only a registrar may name another owner"
            )
        owner = caller
    else:
        owner = _resolve_registrar_owner(state, config, caller, owner_override, now)

    record = Record(
        record_id=record_id,
        owner=owner,
        locator=locator,
        created_at=now,
        creator=caller,
    )
    state.put_record(record)
    state.emit(
        EventType.RECORD_CREATED,
        now,
        actor=caller,
        record_id=record_id,
        locator=locator,
        owner=owner,
    )
    return record


def get_record(state: LedgerState, record_id: str) -> Record:
    return require_record(state, record_id)


def get_locator(state: LedgerState, record_id: str) -> str:
    """
    Return the stored locator.

    Not gated by authorization: confidentiality of the payload rests on the
    content store's encryption, and callers that must not leak even the
    locator consult the authorization oracle first.
    """
    return require_record(state, record_id).locator
