"""
Request Workflow
================
Delegates file access requests; the record owner approves or denies each
one exactly once. Approval creates (or refreshes) a grant for the requester
in the same transaction, so an approved request can never be left without
its grant.

    PENDING --approve--> APPROVED
    PENDING --deny-----> DENIED
"""

from typing import List, Optional

from core.exceptions import InvalidInputError
from core.models import AccessRequest, EventType, LedgerConfig, RequestStatus

from .grants import upsert_grant
from .guards import (
    require_capability,
    require_owner,
    require_pending,
    require_record,
    require_registered,
    require_request,
)
from .roles import Capability
from .state import LedgerState


def request_access(
    state: LedgerState,
    caller: str,
    record_id: str,
    reason: str,
    now: int,
) -> AccessRequest:
    """
    File a pending request; its id is the sequence index.

    Raises:
        UnknownPrincipalError: Caller is not registered.
        UnauthorizedError: Caller is not delegate-class.
        RecordNotFoundError: Record does not exist.
        InvalidInputError: Reason is not a string.
    """
    principal = require_registered(state, caller)
    require_capability(principal, Capability.REQUEST_ACCESS, "request_access")
    require_record(state, record_id)

    if reason is None:
        reason = ""
    if not isinstance(reason, str):
        raise InvalidInputError("reason", "must be a string")

    request = state.append_request(
        lambda index: AccessRequest(
            request_id=index,
            requester=caller,
            record_id=record_id,
            reason=reason,
            created_at=now,
        )
    )
    state.emit(
        EventType.ACCESS_REQUESTED,
        now,
        actor=caller,
        record_id=record_id,
        request_id=request.request_id,
        reason=request.reason,
    )
    return request


def _process(
    state: LedgerState,
    caller: str,
    request_id: int,
    approved: bool,
    now: int,
) -> AccessRequest:
    request = require_request(state, request_id)
    record = require_record(state, request.record_id)
    require_owner(record, caller)
    require_pending(request)

    processed = request.model_copy(
        update={"processed": True, "approved": approved, "processed_at": now}
    )
    state.replace_request(processed)
    return processed


def approve(
    state: LedgerState,
    config: LedgerConfig,
    caller: str,
    request_id: int,
    now: int,
) -> AccessRequest:
    """
    Approve a pending request and grant the requester access for the
    configured approval window.

    Raises:
        RequestNotFoundError: Unknown request id.
        NotOwnerError: Caller does not own the referenced record.
        RequestAlreadyProcessedError: Request was already approved or denied.
    """
    processed = _process(state, caller, request_id, True, now)
    state.emit(
        EventType.REQUEST_APPROVED,
        now,
        actor=caller,
        record_id=processed.record_id,
        request_id=processed.request_id,
        requester=processed.requester,
    )

    valid_until = now + config.approval_validity_seconds
    upsert_grant(
        state,
        processed.record_id,
        processed.requester,
        valid_until,
        config.approval_scope,
        caller,
        now,
    )
    state.emit(
        EventType.ACCESS_GRANTED,
        now,
        actor=caller,
        record_id=processed.record_id,
        grantee=processed.requester,
        valid_until=valid_until,
        scope=config.approval_scope,
        request_id=processed.request_id,
    )
    return processed


def deny(
    state: LedgerState,
    caller: str,
    request_id: int,
    now: int,
) -> AccessRequest:
    """Deny a pending request. Same preconditions as approve; no grant."""
    processed = _process(state, caller, request_id, False, now)
    state.emit(
        EventType.REQUEST_DENIED,
        now,
        actor=caller,
        record_id=processed.record_id,
        request_id=processed.request_id,
        requester=processed.requester,
    )
    return processed


def get_request(state: LedgerState, request_id: int) -> AccessRequest:
    return require_request(state, request_id)


def get_request_count(state: LedgerState) -> int:
    return len(state.requests)


def list_requests(
    state: LedgerState,
    record_id: Optional[str] = None,
    status: Optional[RequestStatus] = None,
) -> List[AccessRequest]:
    """Requests in sequence order, optionally filtered by record and status."""
    return [
        r
        for r in state.requests
        if (record_id is None or r.record_id == record_id)
        and (status is None or r.status == status)
    ]
