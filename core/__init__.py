"""
PrivaMed Core Module
====================
Data models, the error taxonomy and shared utilities for the consent ledger.
"""

from .models import (
    NO_EXPIRY,
    NO_SCOPE,
    Role,
    RequestStatus,
    EventType,
    Principal,
    Record,
    AccessGrant,
    AccessRequest,
    AccessEvent,
    LedgerEvent,
    LedgerConfig,
)
from .exceptions import (
    PrivaMedError,
    LedgerError,
    NotAdminError,
    AlreadyRegisteredError,
    UnknownPrincipalError,
    InvalidRoleError,
    RecordNotFoundError,
    RecordCollisionError,
    NotOwnerError,
    InvalidGranteeError,
    GrantNotActiveError,
    InvalidExpiryError,
    RequestNotFoundError,
    RequestAlreadyProcessedError,
    UnauthorizedError,
    InvalidInputError,
    PersistenceError,
    GatewayError,
    ContentStoreError,
    EncryptionError,
    ConfigurationError,
)
from .utils import (
    setup_logging,
    compute_hash,
    derive_record_id,
    hash_justification,
    SystemClock,
    ManualClock,
)

__all__ = [
    # Models
    "NO_EXPIRY",
    "NO_SCOPE",
    "Role",
    "RequestStatus",
    "EventType",
    "Principal",
    "Record",
    "AccessGrant",
    "AccessRequest",
    "AccessEvent",
    "LedgerEvent",
    "LedgerConfig",
    # Exceptions
    "PrivaMedError",
    "LedgerError",
    "NotAdminError",
    "AlreadyRegisteredError",
    "UnknownPrincipalError",
    "InvalidRoleError",
    "RecordNotFoundError",
    "RecordCollisionError",
    "NotOwnerError",
    "InvalidGranteeError",
    "GrantNotActiveError",
    "InvalidExpiryError",
    "RequestNotFoundError",
    "RequestAlreadyProcessedError",
    "UnauthorizedError",
    "InvalidInputError",
    "PersistenceError",
    "GatewayError",
    "ContentStoreError",
    "EncryptionError",
    "ConfigurationError",
    # Utilities
    "setup_logging",
    "compute_hash",
    "derive_record_id",
    "hash_justification",
    "SystemClock",
    "ManualClock",
]
