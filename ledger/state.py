"""
Ledger State
============
The explicit state object shared by every ledger operation.

All mutation goes through the ``put_*``/``append_*``/``emit`` methods so
that, inside a transaction, every change is journaled and can be undone if
the operation aborts. Outside a transaction the state is read-only by
convention; AccessLedger is the only writer.

Author: Fabio Liberti
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterable,
    Iterator,
    List,
    Optional,
    Set,
    Tuple,
    TypeVar,
    Union,
)

from core.models import (
    AccessEvent,
    AccessGrant,
    AccessRequest,
    EventType,
    LedgerEvent,
    Principal,
    Record,
)

T = TypeVar("T")
GrantKey = Tuple[str, str]

_MISSING = object()


class AppendOnlyLog(Generic[T]):
    """
    Insertion-ordered, index-addressable sequence.

    Entries are never removed or reordered once committed; the only way to
    shrink a log is rolling back an uncommitted append.
    """

    def __init__(self, items: Optional[Iterable[T]] = None):
        self._items: List[T] = list(items or [])

    def append(self, item: T) -> int:
        self._items.append(item)
        return len(self._items) - 1

    def _rollback_to(self, length: int) -> None:
        del self._items[length:]

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: Union[int, slice]) -> Union[T, Tuple[T, ...]]:
        if isinstance(index, slice):
            return tuple(self._items[index])
        return self._items[index]

    def __iter__(self) -> Iterator[T]:
        return iter(tuple(self._items))

    def snapshot(self) -> Tuple[T, ...]:
        return tuple(self._items)

    def __repr__(self) -> str:
        return f"AppendOnlyLog(len={len(self._items)})"


@dataclass
class ChangeSet:
    """Keys and entries touched by one committed operation."""

    principal_ids: Set[str] = field(default_factory=set)
    record_ids: Set[str] = field(default_factory=set)
    grant_keys: Set[GrantKey] = field(default_factory=set)
    request_ids: Set[int] = field(default_factory=set)
    access_events: List[AccessEvent] = field(default_factory=list)
    events: List[LedgerEvent] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.principal_ids
            or self.record_ids
            or self.grant_keys
            or self.request_ids
            or self.access_events
            or self.events
        )


class LedgerState:
    """In-memory stores of the consent ledger."""

    def __init__(self):
        self.principals: Dict[str, Principal] = {}
        self.records: Dict[str, Record] = {}
        self.grants: Dict[GrantKey, AccessGrant] = {}
        self.requests: List[AccessRequest] = []
        self.access_logs: Dict[str, AppendOnlyLog[AccessEvent]] = {}
        self.events: AppendOnlyLog[LedgerEvent] = AppendOnlyLog()

        self._journal: Optional[List[Callable[[], None]]] = None
        self._changes: Optional[ChangeSet] = None

    # =========================================================================
    # Transactions
    # =========================================================================

    @property
    def in_transaction(self) -> bool:
        return self._journal is not None

    @contextmanager
    def transaction(self) -> Iterator[ChangeSet]:
        """
        Run a block of mutations atomically.

        Yields the ChangeSet being accumulated. If the block raises, every
        journaled mutation is undone in reverse order and the exception
        propagates.
        """
        if self._journal is not None:
            raise RuntimeError("Nested ledger transactions are not supported")

        self._journal = []
        self._changes = ChangeSet()
        try:
            yield self._changes
        except BaseException:
            for undo in reversed(self._journal):
                undo()
            raise
        finally:
            self._journal = None
            self._changes = None

    def _require_transaction(self) -> ChangeSet:
        if self._journal is None or self._changes is None:
            raise RuntimeError("Ledger state can only be mutated inside a transaction")
        return self._changes

    def _put(self, store: Dict[Any, Any], key: Any, value: Any) -> None:
        previous = store.get(key, _MISSING)

        def undo() -> None:
            if previous is _MISSING:
                store.pop(key, None)
            else:
                store[key] = previous

        self._journal.append(undo)
        store[key] = value

    def _append(self, log: AppendOnlyLog, item: Any) -> int:
        length = len(log)
        self._journal.append(lambda: log._rollback_to(length))
        return log.append(item)

    # =========================================================================
    # Mutations
    # =========================================================================

    def put_principal(self, principal: Principal) -> None:
        changes = self._require_transaction()
        self._put(self.principals, principal.principal_id, principal)
        changes.principal_ids.add(principal.principal_id)

    def put_record(self, record: Record) -> None:
        changes = self._require_transaction()
        self._put(self.records, record.record_id, record)
        if record.record_id not in self.access_logs:
            self._put(self.access_logs, record.record_id, AppendOnlyLog())
        changes.record_ids.add(record.record_id)

    def put_grant(self, grant: AccessGrant) -> None:
        changes = self._require_transaction()
        key = (grant.record_id, grant.grantee)
        self._put(self.grants, key, grant)
        changes.grant_keys.add(key)

    def append_request(self, build: Callable[[int], AccessRequest]) -> AccessRequest:
        """Append a request built for the next free index."""
        changes = self._require_transaction()
        index = len(self.requests)
        request = build(index)
        if request.request_id != index:
            raise ValueError("Request id must equal its sequence index")
        self._journal.append(lambda: self.requests.pop())
        self.requests.append(request)
        changes.request_ids.add(index)
        return request

    def replace_request(self, request: AccessRequest) -> None:
        changes = self._require_transaction()
        index = request.request_id
        previous = self.requests[index]

        def undo() -> None:
            self.requests[index] = previous

        self._journal.append(undo)
        self.requests[index] = request
        changes.request_ids.add(index)

    def append_access_event(self, event: AccessEvent) -> int:
        changes = self._require_transaction()
        position = self._append(self.access_logs[event.record_id], event)
        changes.access_events.append(event)
        return position

    def emit(
        self,
        event_type: EventType,
        timestamp: int,
        actor: str,
        record_id: Optional[str] = None,
        **payload: Any,
    ) -> LedgerEvent:
        """Append an event to the global event log."""
        changes = self._require_transaction()
        event = LedgerEvent(
            sequence=len(self.events),
            event_type=event_type,
            timestamp=timestamp,
            actor=actor,
            record_id=record_id,
            payload=payload,
        )
        self._append(self.events, event)
        changes.events.append(event)
        return event

    # =========================================================================
    # Bulk loading
    # =========================================================================

    @classmethod
    def restore(
        cls,
        principals: Iterable[Principal],
        records: Iterable[Record],
        grants: Iterable[AccessGrant],
        requests: Iterable[AccessRequest],
        access_events: Iterable[AccessEvent],
        events: Iterable[LedgerEvent],
    ) -> "LedgerState":
        """
        Rebuild state from previously committed entries.

        Requests and events must be supplied in sequence order; access events
        in per-record insertion order.
        """
        state = cls()
        state.principals = {p.principal_id: p for p in principals}
        state.records = {r.record_id: r for r in records}
        state.access_logs = {record_id: AppendOnlyLog() for record_id in state.records}
        state.grants = {(g.record_id, g.grantee): g for g in grants}

        for expected, request in enumerate(requests):
            if request.request_id != expected:
                raise ValueError(f"Request sequence gap at index {expected}")
            state.requests.append(request)

        for event in access_events:
            if event.record_id not in state.access_logs:
                raise ValueError(f"Access event for unknown record {event.record_id}")
            state.access_logs[event.record_id].append(event)

        for expected, event in enumerate(events):
            if event.sequence != expected:
                raise ValueError(f"Event sequence gap at index {expected}")
            state.events.append(event)

        return state
