"""
Access Ledger Service
=====================
Single entry point of the consent ledger.

AccessLedger owns the state object, reads the clock once per operation,
runs every state-changing operation inside an atomic transaction, writes
the change set to the optional SQLite store before the transaction closes,
and publishes the committed events to subscribers.

Author: Fabio Liberti
"""

import threading
from typing import Callable, List, Optional, Tuple, Union

import structlog

from core.exceptions import LedgerError
from core.models import (
    AccessEvent,
    AccessGrant,
    AccessRequest,
    LedgerConfig,
    LedgerEvent,
    Principal,
    Record,
    RequestStatus,
    Role,
)
from core.utils import SystemClock

from . import access_requests, audit, emergency, grants, identity, oracle, records
from .persistence import LedgerDB
from .state import LedgerState

logger = structlog.get_logger(__name__)

Subscriber = Callable[[LedgerEvent], None]


class AccessLedger:
    """
    Consent-based access-control ledger.

    Every mutating method takes the already-authenticated caller principal
    as its first argument and either commits completely or raises a
    LedgerError with no observable state change.
    """

    def __init__(
        self,
        config: LedgerConfig,
        clock: Optional[Callable[[], int]] = None,
        state: Optional[LedgerState] = None,
        db: Optional[LedgerDB] = None,
    ):
        """
        Initialize the ledger.

        Args:
            config: Ledger policy (administrator, approval window, roles).
            clock: Callable returning integer seconds; wall clock if None.
            state: Existing state to operate on. Loaded from ``db`` when
                omitted and a database is given, empty otherwise.
            db: Optional persistence backend written on every commit.
        """
        self.config = config
        self.db = db
        if state is None:
            state = db.load_state() if db is not None else LedgerState()
        self.state = state

        self._clock = clock or SystemClock()
        self._last_now = 0
        self._lock = threading.RLock()
        self._subscribers: List[Subscriber] = []

    @classmethod
    def from_config(
        cls,
        clock: Optional[Callable[[], int]] = None,
        **overrides,
    ) -> "AccessLedger":
        """Build a ledger from config.yaml / PRIVAMED_* settings."""
        from config.config_loader import get_ledger_config, get_persistence_config

        config = get_ledger_config(**overrides)
        persistence = get_persistence_config()
        db = LedgerDB(persistence["db_path"]) if persistence["enabled"] else None
        return cls(config, clock=clock, db=db)

    # =========================================================================
    # Clock, transactions and events
    # =========================================================================

    def now(self) -> int:
        """Current ledger time; never earlier than a previously observed time."""
        now = int(self._clock())
        if now < self._last_now:
            logger.warning("Clock moved backwards, holding time", clock=now, held=self._last_now)
            now = self._last_now
        self._last_now = now
        return now

    def _execute(self, operation: str, caller: str, apply: Callable[[int], object]):
        with self._lock:
            now = self.now()
            try:
                with self.state.transaction() as changes:
                    result = apply(now)
                    if self.db is not None:
                        self.db.persist(self.state, changes)
            except LedgerError as e:
                logger.warning(
                    "Ledger operation aborted",
                    operation=operation,
                    caller=caller,
                    error_code=e.error_code,
                    details=e.details,
                )
                raise

            for event in changes.events:
                logger.info(
                    "Ledger event committed",
                    operation=operation,
                    sequence=event.sequence,
                    event_type=event.event_type.value,
                    actor=event.actor,
                    record_id=event.record_id,
                )
            self._publish(changes.events)
            return result

    def _publish(self, events: List[LedgerEvent]) -> None:
        for event in events:
            for subscriber in list(self._subscribers):
                try:
                    subscriber(event)
                except Exception:
                    # The operation is already committed; a failing observer
                    # must not make it look aborted to the caller.
                    logger.error(
                        "Event subscriber failed",
                        sequence=event.sequence,
                        subscriber=getattr(subscriber, "__name__", repr(subscriber)),
                        exc_info=True,
                    )

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """
        Register a callback invoked for every committed event.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    @property
    def events(self) -> Tuple[LedgerEvent, ...]:
        """Every committed event, in sequence order."""
        with self._lock:
            return self.state.events.snapshot()

    def events_since(self, sequence: int) -> Tuple[LedgerEvent, ...]:
        with self._lock:
            return self.state.events[sequence:]

    # =========================================================================
    # Identity Registry
    # =========================================================================

    def register(self, caller: str, principal_id: str, role: Union[Role, str, int]) -> Principal:
        """Register a principal (administrator only)."""
        return self._execute(
            "register",
            caller,
            lambda now: identity.register(
                self.state, self.config, caller, principal_id, role, now
            ),
        )

    def get_principal(self, principal_id: str) -> Optional[Principal]:
        with self._lock:
            return identity.get_principal(self.state, principal_id)

    def role_of(self, principal_id: str) -> Role:
        with self._lock:
            return identity.role_of(self.state, principal_id)

    def is_registered(self, principal_id: str) -> bool:
        return self.role_of(principal_id) is not Role.NONE

    # =========================================================================
    # Record Registry
    # =========================================================================

    def create_record(
        self,
        caller: str,
        locator: str,
        owner_override: Optional[str] = None,
    ) -> Record:
        """Create an immutable record pointing at off-chain content."""
        return self._execute(
            "create_record",
            caller,
            lambda now: records.create_record(
                self.state, self.config, caller, locator, now, owner_override
            ),
        )

    def get_record(self, record_id: str) -> Record:
        with self._lock:
            return records.get_record(self.state, record_id)

    def get_locator(self, record_id: str) -> str:
        with self._lock:
            return records.get_locator(self.state, record_id)

    # =========================================================================
    # Access Grant Store
    # =========================================================================

    def grant(
        self,
        caller: str,
        record_id: str,
        grantee: str,
        valid_until: int = 0,
        scope: str = "",
    ) -> AccessGrant:
        """Grant a delegate access to a record (owner only)."""
        return self._execute(
            "grant",
            caller,
            lambda now: grants.grant(
                self.state, caller, record_id, grantee, valid_until, scope, now
            ),
        )

    def revoke(self, caller: str, record_id: str, grantee: str) -> AccessGrant:
        """Revoke an active grant (owner only)."""
        return self._execute(
            "revoke",
            caller,
            lambda now: grants.revoke(self.state, caller, record_id, grantee, now),
        )

    def get_grant(self, record_id: str, grantee: str) -> Optional[AccessGrant]:
        with self._lock:
            return grants.get_grant(self.state, record_id, grantee)

    def is_authorized(self, record_id: str, principal: str, at: Optional[int] = None) -> bool:
        """
        Authorization decision for a principal on a record.

        Args:
            record_id: Record to check.
            principal: Principal to check.
            at: Evaluate at this time instead of the ledger clock.
        """
        with self._lock:
            now = self.now() if at is None else at
            return oracle.is_authorized(self.state, record_id, principal, now)

    # =========================================================================
    # Request Workflow
    # =========================================================================

    def request_access(self, caller: str, record_id: str, reason: str = "") -> AccessRequest:
        """File an access request (delegates only)."""
        return self._execute(
            "request_access",
            caller,
            lambda now: access_requests.request_access(
                self.state, caller, record_id, reason, now
            ),
        )

    def approve(self, caller: str, request_id: int) -> AccessRequest:
        """Approve a pending request and grant the requester access."""
        return self._execute(
            "approve",
            caller,
            lambda now: access_requests.approve(
                self.state, self.config, caller, request_id, now
            ),
        )

    def deny(self, caller: str, request_id: int) -> AccessRequest:
        """Deny a pending request."""
        return self._execute(
            "deny",
            caller,
            lambda now: access_requests.deny(self.state, caller, request_id, now),
        )

    def get_request(self, request_id: int) -> AccessRequest:
        with self._lock:
            return access_requests.get_request(self.state, request_id)

    def get_request_count(self) -> int:
        with self._lock:
            return access_requests.get_request_count(self.state)

    def list_requests(
        self,
        record_id: Optional[str] = None,
        status: Optional[RequestStatus] = None,
    ) -> List[AccessRequest]:
        with self._lock:
            return access_requests.list_requests(self.state, record_id, status)

    # =========================================================================
    # Emergency Access
    # =========================================================================

    def emergency_access(
        self,
        caller: str,
        record_id: str,
        justification_hash: str,
        valid_for: int,
    ) -> AccessGrant:
        """Break-glass access for ``valid_for`` seconds, bypassing owner consent."""
        return self._execute(
            "emergency_access",
            caller,
            lambda now: emergency.emergency_access(
                self.state,
                self.config,
                caller,
                record_id,
                justification_hash,
                valid_for,
                now,
            ),
        )

    # =========================================================================
    # Audit Log
    # =========================================================================

    def log_event(
        self,
        caller: str,
        record_id: str,
        actor: str,
        success: bool,
        action: str,
    ) -> AccessEvent:
        """Record a claimed access attempt and its outcome."""
        return self._execute(
            "log_event",
            caller,
            lambda now: audit.log_event(
                self.state, caller, record_id, actor, success, action, now
            ),
        )

    def get_log(self, record_id: str) -> Tuple[AccessEvent, ...]:
        with self._lock:
            return audit.get_log(self.state, record_id)
