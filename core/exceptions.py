"""
PrivaMed Custom Exceptions
==========================
Exception taxonomy for the consent ledger and its collaborators.

Every ledger abort is raised as a subclass of LedgerError carrying a stable
error code, so calling layers can tell "not the owner" apart from "record
does not exist" without parsing messages.
"""

from typing import Optional, Any


class PrivaMedError(Exception):
    """Base exception for all PrivaMed errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


# =============================================================================
# Ledger Exceptions
# =============================================================================


class LedgerError(PrivaMedError):
    """Base exception for ledger operation aborts."""

    pass


class NotAdminError(LedgerError):
    """Raised when a non-administrator calls an admin-only operation."""

    def __init__(self, caller: str):
        super().__init__(
            f"Admin only: {caller} is not the ledger administrator",
            error_code="NOT_ADMIN",
            details={"caller": caller},
        )
        self.caller = caller


class AlreadyRegisteredError(LedgerError):
    """Raised when registering a principal that already exists."""

    def __init__(self, principal_id: str):
        super().__init__(
            f"Principal already registered: {principal_id}",
            error_code="ALREADY_REGISTERED",
            details={"principal_id": principal_id},
        )
        self.principal_id = principal_id


class UnknownPrincipalError(LedgerError):
    """Raised when a principal is not registered or its id is malformed."""

    def __init__(self, principal_id: str, reason: str = "not_registered"):
        super().__init__(
            f"Unknown principal: {principal_id!r} ({reason})",
            error_code="UNKNOWN_PRINCIPAL",
            details={"principal_id": principal_id, "reason": reason},
        )
        self.principal_id = principal_id
        self.reason = reason


class InvalidRoleError(LedgerError):
    """Raised when a role is null or not the one an operation requires."""

    def __init__(self, role: Any, expected: Optional[str] = None):
        role_value = getattr(role, "value", role)
        message = f"Invalid role: {role_value}"
        if expected:
            message += f" (expected {expected})"
        super().__init__(
            message,
            error_code="INVALID_ROLE",
            details={"role": role_value, "expected": expected},
        )
        self.role = role


class RecordNotFoundError(LedgerError):
    """Raised when a record id is unknown."""

    def __init__(self, record_id: str):
        super().__init__(
            f"Record not found: {record_id}",
            error_code="RECORD_NOT_FOUND",
            details={"record_id": record_id},
        )
        self.record_id = record_id


class RecordCollisionError(LedgerError):
    """Raised when a derived record id is already taken."""

    def __init__(self, record_id: str):
        super().__init__(
            f"Record id already exists: {record_id}",
            error_code="RECORD_COLLISION",
            details={"record_id": record_id},
        )
        self.record_id = record_id


class NotOwnerError(LedgerError):
    """Raised when the caller does not own the referenced record."""

    def __init__(self, caller: str, record_id: str):
        super().__init__(
            f"{caller} is not the owner of record {record_id}",
            error_code="NOT_OWNER",
            details={"caller": caller, "record_id": record_id},
        )
        self.caller = caller
        self.record_id = record_id


class InvalidGranteeError(LedgerError):
    """Raised when a grantee is unregistered or not delegate-class."""

    def __init__(self, grantee: str, reason: str):
        super().__init__(
            f"Invalid grantee {grantee}: {reason}",
            error_code="INVALID_GRANTEE",
            details={"grantee": grantee, "reason": reason},
        )
        self.grantee = grantee
        self.reason = reason


class GrantNotActiveError(LedgerError):
    """Raised when revoking a grant that does not exist or is inactive."""

    def __init__(self, record_id: str, grantee: str):
        super().__init__(
            f"No active grant for {grantee} on record {record_id}",
            error_code="GRANT_NOT_ACTIVE",
            details={"record_id": record_id, "grantee": grantee},
        )
        self.record_id = record_id
        self.grantee = grantee


class InvalidExpiryError(LedgerError):
    """Raised when an expiry or duration is not acceptable."""

    def __init__(self, value: int, now: int, reason: str = "not_in_future"):
        super().__init__(
            f"Invalid expiry {value} at time {now} ({reason})",
            error_code="INVALID_EXPIRY",
            details={"value": value, "now": now, "reason": reason},
        )
        self.value = value
        self.now = now
        self.reason = reason


class RequestNotFoundError(LedgerError):
    """Raised when a request index is out of range."""

    def __init__(self, request_id: int):
        super().__init__(
            f"Access request not found: {request_id}",
            error_code="REQUEST_NOT_FOUND",
            details={"request_id": request_id},
        )
        self.request_id = request_id


class RequestAlreadyProcessedError(LedgerError):
    """Raised when approving or denying a request a second time."""

    def __init__(self, request_id: int, approved: bool):
        super().__init__(
            f"Access request {request_id} already processed "
            f"({'approved' if approved else 'denied'})",
            error_code="REQUEST_ALREADY_PROCESSED",
            details={"request_id": request_id, "approved": approved},
        )
        self.request_id = request_id
        self.approved = approved


class UnauthorizedError(LedgerError):
    """Raised when the caller's role does not permit the operation."""

    def __init__(self, caller: str, operation: str, reason: Optional[str] = None):
        message = f"{caller} is not authorized to {operation}"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            error_code="UNAUTHORIZED",
            details={"caller": caller, "operation": operation, "reason": reason},
        )
        self.caller = caller
        self.operation = operation


class InvalidInputError(LedgerError):
    """Raised for malformed operation arguments (e.g. an empty locator)."""

    def __init__(self, field: str, reason: str):
        super().__init__(
            f"Invalid {field}: {reason}",
            error_code="INVALID_INPUT",
            details={"field": field, "reason": reason},
        )
        self.field = field


class PersistenceError(LedgerError):
    """Raised when a committed change set cannot be written to storage."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(
            message,
            error_code="PERSISTENCE_ERROR",
            details={"operation": operation},
        )


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(PrivaMedError):
    """Base exception for the content gateway collaborators."""

    pass


class ContentStoreError(GatewayError):
    """Exception raised when the off-chain content store fails."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        locator: Optional[str] = None,
    ):
        super().__init__(
            message,
            error_code="CONTENT_STORE_ERROR",
            details={"endpoint": endpoint, "locator": locator},
        )
        self.locator = locator


class EncryptionError(GatewayError):
    """Exception raised during encryption/decryption."""

    def __init__(self, message: str, operation: str):
        super().__init__(
            message,
            error_code="ENCRYPTION_ERROR",
            details={"operation": operation},
        )
        self.operation = operation


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationError(PrivaMedError):
    """Exception raised for configuration errors."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(
            message,
            error_code="CONFIGURATION_ERROR",
            details={"config_key": config_key},
        )
