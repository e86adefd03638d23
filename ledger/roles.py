"""
Role capabilities.

Every Role member must appear in ROLE_CAPABILITIES; the module refuses to
import otherwise, so a newly added role cannot silently fall through to a
default.
"""

from enum import Enum
from typing import Dict, FrozenSet

from core.models import Role


class Capability(str, Enum):
    """Things a role may do, independent of per-record ownership."""

    OWN_RECORDS = "own_records"
    REGISTER_RECORDS = "register_records"
    RECEIVE_GRANTS = "receive_grants"
    REQUEST_ACCESS = "request_access"
    BREAK_GLASS = "break_glass"


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.NONE: frozenset(),
    Role.PATIENT: frozenset({Capability.OWN_RECORDS}),
    Role.PROVIDER: frozenset(
        {Capability.RECEIVE_GRANTS, Capability.REQUEST_ACCESS, Capability.BREAK_GLASS}
    ),
    Role.AUDITOR: frozenset({Capability.REGISTER_RECORDS}),
    Role.RESPONDER: frozenset({Capability.BREAK_GLASS}),
}

_unmapped = set(Role) - set(ROLE_CAPABILITIES)
if _unmapped:
    raise RuntimeError(f"Roles without a capability entry: {sorted(r.value for r in _unmapped)}")


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES[role]
