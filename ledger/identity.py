"""
Identity Registry
=================
Admin-curated mapping from principal id to role. Registration is add-only:
there is no role reassignment or deregistration path.
"""

from typing import Optional, Union

from core.exceptions import AlreadyRegisteredError, InvalidRoleError
from core.models import EventType, LedgerConfig, Principal, Role

from .guards import require_admin, validate_principal_id
from .state import LedgerState


def parse_role(role: Union[Role, str, int]) -> Role:
    """Resolve a role argument, mapping unknown values to InvalidRoleError."""
    try:
        return Role.parse(role)
    except ValueError:
        raise InvalidRoleError(role) from None


def insert_principal(
    state: LedgerState,
    principal_id: str,
    role: Role,
    now: int,
    registered_by: str,
) -> Principal:
    """Insert a new principal and emit UserRegistered. No permission checks."""
    principal = Principal(principal_id=principal_id, role=role, registered_at=now)
    state.put_principal(principal)
    state.emit(
        EventType.USER_REGISTERED,
        now,
        actor=registered_by,
        principal_id=principal_id,
        role=role.value,
    )
    return principal


def register(
    state: LedgerState,
    config: LedgerConfig,
    caller: str,
    principal_id: str,
    role: Union[Role, str, int],
    now: int,
) -> Principal:
    """
    Register a principal with a role.

    Raises:
        NotAdminError: Caller is not the administrator.
        UnknownPrincipalError: principal_id is empty or the null address.
        InvalidRoleError: Role is NONE or not a known role.
        AlreadyRegisteredError: principal_id already exists.
    """
    require_admin(config, caller)
    validate_principal_id(principal_id)
    resolved = parse_role(role)
    if resolved is Role.NONE:
        raise InvalidRoleError(resolved)
    if principal_id in state.principals:
        raise AlreadyRegisteredError(principal_id)
    return insert_principal(state, principal_id, resolved, now, registered_by=caller)


def get_principal(state: LedgerState, principal_id: str) -> Optional[Principal]:
    if not isinstance(principal_id, str):
        return None
    return state.principals.get(principal_id)


def role_of(state: LedgerState, principal_id: str) -> Role:
    """Role of a principal, Role.NONE when unknown."""
    principal = get_principal(state, principal_id)
    if principal is None or not principal.registered:
        return Role.NONE
    return principal.role
