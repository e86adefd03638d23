"""
Tests for the Access Grant Store and Authorization Oracle
=========================================================
"""

import pytest

from core.exceptions import (
    GrantNotActiveError,
    InvalidExpiryError,
    InvalidGranteeError,
    NotOwnerError,
    RecordNotFoundError,
)
from core.models import NO_EXPIRY, AccessGrant, EventType, Role
from ledger.oracle import grant_authorizes

from conftest import AUDITOR, PATIENT, PATIENT_2, PROVIDER, PROVIDER_2, RESPONDER


class TestGrantAuthorizes:
    """Tests for the pure grant decision."""

    def _grant(self, **kwargs):
        values = dict(record_id="0x1", grantee="D1", granted_by="P1", granted_at=0)
        values.update(kwargs)
        return AccessGrant(**values)

    def test_missing_grant(self):
        assert grant_authorizes(None, 100) is False

    def test_inactive_grant(self):
        assert grant_authorizes(self._grant(active=False), 100) is False

    def test_no_expiry(self):
        assert grant_authorizes(self._grant(valid_until=NO_EXPIRY), 10**12) is True

    def test_expiry_inclusive(self):
        grant = self._grant(valid_until=100)
        assert grant_authorizes(grant, 99) is True
        assert grant_authorizes(grant, 100) is True
        assert grant_authorizes(grant, 101) is False


class TestGrant:
    """Tests for owner-issued grants."""

    def test_grant_without_expiry(self, ledger, record_id, clock):
        grant = ledger.grant(PATIENT, record_id, PROVIDER)

        assert grant.active is True
        assert grant.valid_until == NO_EXPIRY
        assert grant.granted_by == PATIENT
        assert grant.granted_at == clock()
        assert grant.emergency is False
        assert ledger.is_authorized(record_id, PROVIDER)
        assert ledger.is_authorized(record_id, PROVIDER, at=clock() + 10**9)

    def test_grant_emits_event(self, ledger, record_id, clock):
        valid_until = clock() + 3600
        ledger.grant(PATIENT, record_id, PROVIDER, valid_until, "consult")

        event = ledger.events[-1]
        assert event.event_type is EventType.ACCESS_GRANTED
        assert event.actor == PATIENT
        assert event.record_id == record_id
        assert event.payload == {
            "grantee": PROVIDER,
            "valid_until": valid_until,
            "scope": "consult",
        }

    def test_expiry_boundary(self, ledger, record_id, clock):
        """Access holds through valid_until and ends one second later."""
        valid_until = clock() + 100
        ledger.grant(PATIENT, record_id, PROVIDER, valid_until)

        clock.set(valid_until)
        assert ledger.is_authorized(record_id, PROVIDER)
        clock.advance(1)
        assert not ledger.is_authorized(record_id, PROVIDER)

    def test_grant_does_not_authorize_others(self, ledger, record_id):
        ledger.grant(PATIENT, record_id, PROVIDER)
        assert not ledger.is_authorized(record_id, PROVIDER_2)

    def test_unknown_record_is_never_authorized(self, ledger):
        assert not ledger.is_authorized("0xmissing", PROVIDER)

    @pytest.mark.parametrize("offset", [0, -1])
    def test_past_or_present_expiry_rejected(self, ledger, record_id, clock, offset):
        with pytest.raises(InvalidExpiryError):
            ledger.grant(PATIENT, record_id, PROVIDER, clock() + offset)
        assert ledger.get_grant(record_id, PROVIDER) is None

    def test_negative_expiry_rejected(self, ledger, record_id):
        with pytest.raises(InvalidExpiryError):
            ledger.grant(PATIENT, record_id, PROVIDER, -5)

    def test_non_owner_rejected(self, ledger, record_id):
        with pytest.raises(NotOwnerError):
            ledger.grant(PATIENT_2, record_id, PROVIDER)

    def test_unknown_record_rejected(self, ledger):
        with pytest.raises(RecordNotFoundError):
            ledger.grant(PATIENT, "0xmissing", PROVIDER)

    @pytest.mark.parametrize("grantee", ["stranger", PATIENT_2, AUDITOR, RESPONDER])
    def test_non_delegate_grantee_rejected(self, ledger, record_id, grantee):
        with pytest.raises(InvalidGranteeError):
            ledger.grant(PATIENT, record_id, grantee)

    @pytest.mark.parametrize("grantee", [[PROVIDER], {"id": PROVIDER}, 42])
    def test_non_string_grantee_rejected(self, ledger, record_id, grantee):
        with pytest.raises(InvalidGranteeError):
            ledger.grant(PATIENT, record_id, grantee)

    def test_non_string_record_id_rejected(self, ledger):
        with pytest.raises(RecordNotFoundError):
            ledger.grant(PATIENT, [PATIENT], PROVIDER)

    def test_non_string_ids_are_never_authorized(self, ledger, record_id):
        ledger.grant(PATIENT, record_id, PROVIDER)
        assert ledger.is_authorized([record_id], PROVIDER) is False
        assert ledger.is_authorized(record_id, [PROVIDER]) is False
        assert ledger.get_grant(record_id, {"id": PROVIDER}) is None
        assert ledger.role_of([PROVIDER]) is Role.NONE

    def test_ownership_checked_before_grantee(self, ledger, record_id):
        with pytest.raises(NotOwnerError):
            ledger.grant(PATIENT_2, record_id, "stranger")

    def test_regrant_overwrites(self, ledger, record_id, clock):
        ledger.grant(PATIENT, record_id, PROVIDER, clock() + 10, "short")
        ledger.grant(PATIENT, record_id, PROVIDER, clock() + 1000, "long")

        grant = ledger.get_grant(record_id, PROVIDER)
        assert grant.valid_until == clock() + 1000
        assert grant.scope == "long"


class TestRevoke:
    """Tests for revocation."""

    def test_revoke(self, ledger, record_id):
        ledger.grant(PATIENT, record_id, PROVIDER, 0, "consult")
        revoked = ledger.revoke(PATIENT, record_id, PROVIDER)

        assert revoked.active is False
        assert revoked.scope == "consult"
        assert not ledger.is_authorized(record_id, PROVIDER)

        event = ledger.events[-1]
        assert event.event_type is EventType.ACCESS_REVOKED
        assert event.payload == {"grantee": PROVIDER}

    def test_revoke_expired_grant(self, ledger, record_id, clock):
        """An expired but still active grant can be revoked."""
        ledger.grant(PATIENT, record_id, PROVIDER, clock() + 5)
        clock.advance(60)
        ledger.revoke(PATIENT, record_id, PROVIDER)
        assert ledger.get_grant(record_id, PROVIDER).active is False

    def test_revoke_without_grant(self, ledger, record_id):
        with pytest.raises(GrantNotActiveError):
            ledger.revoke(PATIENT, record_id, PROVIDER)

    def test_double_revoke_rejected(self, ledger, record_id):
        ledger.grant(PATIENT, record_id, PROVIDER)
        ledger.revoke(PATIENT, record_id, PROVIDER)
        with pytest.raises(GrantNotActiveError):
            ledger.revoke(PATIENT, record_id, PROVIDER)

    def test_non_owner_cannot_revoke(self, ledger, record_id):
        ledger.grant(PATIENT, record_id, PROVIDER)
        with pytest.raises(NotOwnerError):
            ledger.revoke(PROVIDER, record_id, PROVIDER)
        assert ledger.is_authorized(record_id, PROVIDER)

    def test_revocation_is_not_undone_by_time(self, ledger, record_id, clock):
        ledger.grant(PATIENT, record_id, PROVIDER)
        ledger.revoke(PATIENT, record_id, PROVIDER)
        clock.advance(10**6)
        assert not ledger.is_authorized(record_id, PROVIDER)

    def test_revoke_non_string_grantee(self, ledger, record_id):
        with pytest.raises(GrantNotActiveError):
            ledger.revoke(PATIENT, record_id, [PROVIDER])

    def test_regrant_after_revoke(self, ledger, record_id):
        ledger.grant(PATIENT, record_id, PROVIDER)
        ledger.revoke(PATIENT, record_id, PROVIDER)
        ledger.grant(PATIENT, record_id, PROVIDER)
        assert ledger.is_authorized(record_id, PROVIDER)
