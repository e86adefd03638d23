"""
Consent Walkthrough Example
===========================
Demonstrates a complete consent lifecycle on the PrivaMed ledger.

This example shows how to:
1. Register principals (administrator only)
2. Store an encrypted record through the gateway
3. Grant, use and revoke delegate access
4. File and approve an access request
5. Use break-glass access and inspect the audit trail

Author: Fabio Liberti
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from config.config_loader import get_logging_config  # noqa: E402
from core.exceptions import UnauthorizedError  # noqa: E402
from core.models import Role  # noqa: E402
from core.utils import ManualClock, hash_justification, setup_logging  # noqa: E402
from gateway import RecordGateway  # noqa: E402
from ledger import AccessLedger  # noqa: E402


def run_walkthrough():
    """Run the consent lifecycle end to end."""
    setup_logging(**get_logging_config())
    clock = ManualClock()

    print("\n" + "=" * 60)
    print("PrivaMed Ledger - Consent Walkthrough")
    print("=" * 60 + "\n")

    ledger = AccessLedger.from_config(clock=clock)
    gateway = RecordGateway.from_config(ledger)
    admin = ledger.config.admin

    # =========================================================================
    # STEP 1: IDENTITIES
    # =========================================================================
    print("[1/5] Registering principals...")
    ledger.register(admin, "alice", Role.PATIENT)
    ledger.register(admin, "dr-bob", Role.PROVIDER)
    ledger.register(admin, "dr-carol", Role.PROVIDER)
    ledger.register(admin, "medic-dan", Role.RESPONDER)
    ledger.register(admin, gateway.service_principal, Role.AUDITOR)
    print(f"  - {len(ledger.events)} registrations committed")

    # =========================================================================
    # STEP 2: RECORD
    # =========================================================================
    print("\n[2/5] Storing an encrypted record...")
    record = gateway.store_record("alice", '{"allergies": ["penicillin"]}')
    record_id = record.record_id
    print(f"  - Record: {record_id[:18]}...")
    print(f"  - Locator: {ledger.get_locator(record_id)}")

    # =========================================================================
    # STEP 3: GRANT / REVOKE
    # =========================================================================
    print("\n[3/5] Granting and revoking access...")
    ledger.grant("alice", record_id, "dr-bob", clock() + 3600, "ALLERGIES")
    print(f"  - dr-bob reads: {gateway.fetch_record('dr-bob', record_id)}")
    ledger.revoke("alice", record_id, "dr-bob")
    try:
        gateway.fetch_record("dr-bob", record_id)
    except UnauthorizedError as e:
        print(f"  - After revoke: {e.error_code}")

    # =========================================================================
    # STEP 4: REQUEST WORKFLOW
    # =========================================================================
    print("\n[4/5] Request and approval...")
    clock.advance(60)
    request = ledger.request_access("dr-carol", record_id, "pre-surgery check")
    ledger.approve("alice", request.request_id)
    grant = ledger.get_grant(record_id, "dr-carol")
    print(f"  - Request #{request.request_id}: {ledger.get_request(request.request_id).status.value}")
    print(f"  - dr-carol authorized until {grant.valid_until}")

    # =========================================================================
    # STEP 5: BREAK-GLASS AND AUDIT
    # =========================================================================
    print("\n[5/5] Emergency access and audit trail...")
    clock.advance(60)
    ledger.emergency_access(
        "medic-dan", record_id, hash_justification("unconscious in ER"), 1800
    )
    gateway.fetch_record("medic-dan", record_id)

    for entry in ledger.get_log(record_id):
        outcome = "ok" if entry.success else "denied"
        print(f"  - t={entry.timestamp} {entry.actor:<10} {entry.action} {outcome}")

    print(f"\n  Ledger events: {len(ledger.events)}")
    print("\n" + "=" * 60)
    print("Walkthrough Complete")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    run_walkthrough()
