"""
PrivaMed Data Models
====================
Pydantic models for the entities held by the consent ledger.

Ledger entities are frozen: a state change never edits a stored value in
place, it replaces it with an updated copy. Timestamps are integer seconds
supplied by the ledger clock; an expiry of 0 means "no expiry".

Author: Fabio Liberti
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


NO_EXPIRY = 0
NO_SCOPE = ""


# =============================================================================
# Enums
# =============================================================================


class Role(str, Enum):
    """Closed set of principal roles."""

    NONE = "none"
    PATIENT = "patient"  # owner-class
    PROVIDER = "provider"  # delegate-class
    AUDITOR = "auditor"  # curator-class
    RESPONDER = "responder"  # break-glass only

    @classmethod
    def parse(cls, value: Union["Role", str, int]) -> "Role":
        """
        Resolve a role from an enum member, a name/value string, or the
        integer codes used by the on-chain deployments (0=None .. 4=Responder).
        """
        if isinstance(value, Role):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Unknown role: {value!r}")
        if isinstance(value, int):
            members = list(cls)
            if 0 <= value < len(members):
                return members[value]
            raise ValueError(f"Unknown role code: {value}")
        normalized = str(value).strip().lower()
        for member in cls:
            if normalized in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown role: {value!r}")


class RequestStatus(str, Enum):
    """Lifecycle state of an access request."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class EventType(str, Enum):
    """Events emitted by committed ledger operations."""

    USER_REGISTERED = "UserRegistered"
    RECORD_CREATED = "RecordCreated"
    ACCESS_GRANTED = "AccessGranted"
    ACCESS_REVOKED = "AccessRevoked"
    ACCESS_REQUESTED = "AccessRequested"
    REQUEST_APPROVED = "RequestApproved"
    REQUEST_DENIED = "RequestDenied"
    EMERGENCY_ACCESS = "EmergencyAccess"
    ACCESS_EVENT = "AccessEvent"


# =============================================================================
# Ledger Entities
# =============================================================================


class Principal(BaseModel):
    """An identity known to the registry, bound to exactly one role."""

    model_config = ConfigDict(frozen=True)

    principal_id: str = Field(..., description="Resolved principal identifier")
    role: Role = Field(..., description="Role assigned at registration")
    registered: bool = Field(default=True)
    registered_at: int = Field(default=0, ge=0)


class Record(BaseModel):
    """Immutable pointer to an off-chain, encrypted content blob."""

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(..., description="Derived from (creator, locator, created_at)")
    owner: str = Field(..., description="Owning principal")
    locator: str = Field(..., description="Opaque off-chain content locator")
    created_at: int = Field(..., ge=0)
    creator: str = Field(..., description="Principal that submitted the creation")
    exists: bool = Field(default=True)


class AccessGrant(BaseModel):
    """Authorization of one grantee on one record."""

    model_config = ConfigDict(frozen=True)

    record_id: str
    grantee: str
    active: bool = Field(default=True)
    valid_until: int = Field(default=NO_EXPIRY, ge=0, description="0 = no expiry")
    scope: str = Field(default=NO_SCOPE, description="Opaque scope tag")
    granted_by: str = Field(..., description="Owner, or the caller for emergency grants")
    granted_at: int = Field(..., ge=0)
    emergency: bool = Field(default=False)


class AccessRequest(BaseModel):
    """A delegate's request for access to a record."""

    model_config = ConfigDict(frozen=True)

    request_id: int = Field(..., ge=0, description="Index in the request sequence")
    requester: str
    record_id: str
    reason: str = Field(default="")
    created_at: int = Field(..., ge=0)
    processed: bool = Field(default=False)
    approved: bool = Field(default=False)
    processed_at: Optional[int] = Field(default=None)

    @property
    def status(self) -> RequestStatus:
        if not self.processed:
            return RequestStatus.PENDING
        return RequestStatus.APPROVED if self.approved else RequestStatus.DENIED


class AccessEvent(BaseModel):
    """A claimed access attempt and its outcome."""

    model_config = ConfigDict(frozen=True)

    record_id: str
    actor: str = Field(..., description="Principal the access is attributed to")
    success: bool
    action: str = Field(..., description="Action label, e.g. READ")
    timestamp: int = Field(..., ge=0)
    logged_by: str = Field(..., description="Caller that submitted the entry")


class LedgerEvent(BaseModel):
    """Event emitted by a committed operation."""

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(..., ge=0)
    event_type: EventType
    timestamp: int = Field(..., ge=0)
    actor: str
    record_id: Optional[str] = Field(default=None)
    payload: Dict[str, Any] = Field(default_factory=dict)

    def to_log_entry(self) -> dict:
        """Convert to structured log entry."""
        return {
            "sequence": self.sequence,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "actor": self.actor,
            "record_id": self.record_id,
            "payload": self.payload,
        }


# =============================================================================
# Configuration Models
# =============================================================================


class LedgerConfig(BaseModel):
    """Policy knobs for a ledger instance."""

    admin: str = Field(..., description="Distinguished administrator principal")
    approval_validity_seconds: int = Field(
        default=30 * 24 * 3600, gt=0, description="Grant window created by approve()"
    )
    approval_scope: str = Field(default="REQUEST")
    emergency_roles: List[Role] = Field(
        default_factory=lambda: [Role.PROVIDER, Role.RESPONDER]
    )
    emergency_max_duration_seconds: Optional[int] = Field(default=None, gt=0)
    record_creator_roles: List[Role] = Field(
        default_factory=lambda: [Role.PATIENT, Role.AUDITOR]
    )
    auto_register_owner: bool = Field(default=False)

    @field_validator("admin")
    @classmethod
    def validate_admin(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Administrator principal must be non-empty")
        return v

    @field_validator("emergency_roles", mode="before")
    @classmethod
    def validate_emergency_roles(cls, v: Any) -> List[Role]:
        roles = [Role.parse(r) for r in v]
        allowed = {Role.PROVIDER, Role.RESPONDER}
        if not set(roles) <= allowed:
            raise ValueError("Emergency roles must be drawn from provider/responder")
        return roles

    @field_validator("record_creator_roles", mode="before")
    @classmethod
    def validate_creator_roles(cls, v: Any) -> List[Role]:
        roles = [Role.parse(r) for r in v]
        allowed = {Role.PATIENT, Role.AUDITOR}
        if not set(roles) <= allowed:
            raise ValueError("Record creator roles must be drawn from patient/auditor")
        return roles
