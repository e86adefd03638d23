"""
PrivaMed Consent Ledger
=======================
Deterministic access-control state machine: identity registry, record
registry, grant store, request workflow, emergency access, audit log and
the authorization oracle, behind the AccessLedger facade.
"""

from .state import AppendOnlyLog, ChangeSet, LedgerState
from .roles import Capability, ROLE_CAPABILITIES, has_capability
from .oracle import grant_authorizes, is_authorized
from .persistence import LedgerDB
from .service import AccessLedger

__all__ = [
    # State
    "AppendOnlyLog",
    "ChangeSet",
    "LedgerState",
    # Roles
    "Capability",
    "ROLE_CAPABILITIES",
    "has_capability",
    # Authorization Oracle
    "grant_authorizes",
    "is_authorized",
    # Persistence
    "LedgerDB",
    # Service
    "AccessLedger",
]
