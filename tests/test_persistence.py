"""
Tests for SQLite ledger persistence
===================================
"""

import pytest

from core.exceptions import PersistenceError
from core.models import EventType, RequestStatus, Role
from core.utils import hash_justification
from ledger import AccessLedger, LedgerDB

from conftest import ADMIN, AUDITOR, PARTIES, PATIENT, PROVIDER, PROVIDER_2, RESPONDER


def _populate(ledger, clock):
    for principal_id, role in PARTIES:
        ledger.register(ADMIN, principal_id, role)
    record_id = ledger.create_record(PATIENT, "QmLocator").record_id
    clock.advance(10)
    ledger.grant(PATIENT, record_id, PROVIDER, clock() + 3600, "consult")
    request = ledger.request_access(PROVIDER_2, record_id, "referral")
    ledger.deny(PATIENT, request.request_id)
    ledger.request_access(PROVIDER_2, record_id, "second opinion")
    ledger.emergency_access(RESPONDER, record_id, hash_justification("ER"), 600)
    ledger.log_event(AUDITOR, record_id, PROVIDER, True, "READ")
    ledger.log_event(AUDITOR, record_id, PROVIDER_2, False, "READ")
    return record_id


class TestLedgerDB:
    """Tests for LedgerDB."""

    @pytest.fixture
    def db_path(self, tmp_path):
        return str(tmp_path / "ledger.db")

    def test_round_trip(self, config, clock, db_path):
        db = LedgerDB(db_path)
        ledger = AccessLedger(config, clock=clock, db=db)
        record_id = _populate(ledger, clock)
        db.close()

        reloaded = AccessLedger(config, clock=clock, db=LedgerDB(db_path))

        assert reloaded.role_of(PATIENT) is Role.PATIENT
        assert reloaded.get_record(record_id) == ledger.get_record(record_id)
        assert reloaded.get_grant(record_id, PROVIDER) == ledger.get_grant(record_id, PROVIDER)
        assert reloaded.get_grant(record_id, RESPONDER).emergency is True
        assert reloaded.list_requests() == ledger.list_requests()
        assert reloaded.get_request(0).status is RequestStatus.DENIED
        assert reloaded.get_log(record_id) == ledger.get_log(record_id)
        assert reloaded.events == ledger.events
        assert reloaded.is_authorized(record_id, PROVIDER)

    def test_reloaded_ledger_keeps_sequencing(self, config, clock, db_path):
        ledger = AccessLedger(config, clock=clock, db=LedgerDB(db_path))
        record_id = _populate(ledger, clock)

        reloaded = AccessLedger(config, clock=clock, db=LedgerDB(db_path))
        request = reloaded.request_access(PROVIDER, record_id)

        assert request.request_id == 2
        assert reloaded.events[-1].sequence == len(ledger.events)

    def test_query_events(self, config, clock):
        db = LedgerDB(":memory:")
        ledger = AccessLedger(config, clock=clock, db=db)
        record_id = _populate(ledger, clock)

        assert db.count_events() == len(ledger.events)

        granted = db.query_events(event_type=EventType.ACCESS_GRANTED.value)
        assert len(granted) == 1
        assert granted[0]["payload"]["scope"] == "consult"

        by_actor = db.query_events(actor=RESPONDER)
        assert [e["event_type"] for e in by_actor] == ["EmergencyAccess"]

        newest = db.query_events(record_id=record_id, limit=2)
        assert newest[0]["sequence"] > newest[1]["sequence"]

    def test_persistence_failure_rolls_back(self, config, clock):
        db = LedgerDB(":memory:")
        ledger = AccessLedger(config, clock=clock, db=db)
        ledger.register(ADMIN, PATIENT, Role.PATIENT)

        # Closing the connection without clearing it makes every write fail
        db._get_conn().close()

        with pytest.raises(PersistenceError):
            ledger.register(ADMIN, PROVIDER, Role.PROVIDER)

        assert not ledger.is_registered(PROVIDER)
        assert len(ledger.events) == 1

    def test_empty_database_loads_empty_state(self, db_path):
        state = LedgerDB(db_path).load_state()
        assert state.principals == {}
        assert len(state.events) == 0
