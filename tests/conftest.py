"""Shared fixtures for the ledger test suite."""

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.models import LedgerConfig, Role
from core.utils import ManualClock
from ledger import AccessLedger

ADMIN = "admin"
PATIENT = "P1"
PATIENT_2 = "P2"
PROVIDER = "D1"
PROVIDER_2 = "D2"
AUDITOR = "A1"
RESPONDER = "R1"

PARTIES = [
    (PATIENT, Role.PATIENT),
    (PATIENT_2, Role.PATIENT),
    (PROVIDER, Role.PROVIDER),
    (PROVIDER_2, Role.PROVIDER),
    (AUDITOR, Role.AUDITOR),
    (RESPONDER, Role.RESPONDER),
]


@pytest.fixture
def clock():
    return ManualClock(start=1_700_000_000)


@pytest.fixture
def config():
    return LedgerConfig(admin=ADMIN)


@pytest.fixture
def empty_ledger(config, clock):
    """Ledger with no registered principals."""
    return AccessLedger(config, clock=clock)


@pytest.fixture
def ledger(empty_ledger):
    """Ledger with one principal of every role (two patients, two providers)."""
    for principal_id, role in PARTIES:
        empty_ledger.register(ADMIN, principal_id, role)
    return empty_ledger


@pytest.fixture
def record_id(ledger):
    """Record owned by PATIENT."""
    return ledger.create_record(PATIENT, "QmRecordLocator").record_id
