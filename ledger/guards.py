"""
Precondition guards.

Each guard either returns the entity it validated or raises the specific
LedgerError for the failed precondition. Operations compose guards before
touching state, so a failing guard never leaves a partial mutation behind.
"""

from typing import Collection, Optional

from core.exceptions import (
    NotAdminError,
    NotOwnerError,
    RecordNotFoundError,
    RequestAlreadyProcessedError,
    RequestNotFoundError,
    UnauthorizedError,
    UnknownPrincipalError,
)
from core.models import AccessRequest, LedgerConfig, Principal, Record, Role

from .roles import Capability, has_capability
from .state import LedgerState

NULL_PRINCIPAL = "0x" + "0" * 40


def validate_principal_id(principal_id: str) -> str:
    """Reject empty identifiers and the null address."""
    if not isinstance(principal_id, str) or not principal_id.strip():
        raise UnknownPrincipalError(str(principal_id), reason="empty_identifier")
    if principal_id.lower() == NULL_PRINCIPAL:
        raise UnknownPrincipalError(principal_id, reason="null_identifier")
    return principal_id


def require_admin(config: LedgerConfig, caller: str) -> None:
    if caller != config.admin:
        raise NotAdminError(caller)


def require_registered(state: LedgerState, principal_id: str) -> Principal:
    if not isinstance(principal_id, str):
        raise UnknownPrincipalError(repr(principal_id), reason="not_a_string")
    principal = state.principals.get(principal_id)
    if principal is None or not principal.registered:
        raise UnknownPrincipalError(principal_id)
    return principal


def require_capability(
    principal: Principal,
    capability: Capability,
    operation: str,
    enabled_roles: Optional[Collection[Role]] = None,
) -> Principal:
    """
    Require the principal's role to carry a capability.

    Args:
        principal: Registered principal.
        capability: Capability the operation needs.
        operation: Operation name used in the error.
        enabled_roles: If given, the role must also be listed here
            (configuration can narrow, never widen, the capability table).
    """
    allowed = has_capability(principal.role, capability)
    if allowed and enabled_roles is not None:
        allowed = principal.role in enabled_roles
    if not allowed:
        raise UnauthorizedError(
            principal.principal_id,
            operation,
            reason=f"role {principal.role.value} lacks {capability.value}",
        )
    return principal


def require_record(state: LedgerState, record_id: str) -> Record:
    if not isinstance(record_id, str):
        raise RecordNotFoundError(repr(record_id))
    record = state.records.get(record_id)
    if record is None or not record.exists:
        raise RecordNotFoundError(record_id)
    return record


def require_owner(record: Record, caller: str) -> Record:
    if record.owner != caller:
        raise NotOwnerError(caller, record.record_id)
    return record


def require_request(state: LedgerState, request_id: int) -> AccessRequest:
    if (
        not isinstance(request_id, int)
        or isinstance(request_id, bool)
        or not 0 <= request_id < len(state.requests)
    ):
        raise RequestNotFoundError(request_id)
    return state.requests[request_id]


def require_pending(request: AccessRequest) -> AccessRequest:
    if request.processed:
        raise RequestAlreadyProcessedError(request.request_id, request.approved)
    return request
