"""
Record Gateway
==============
Reference caller-side collaborator of the ledger: encrypts payloads, puts
them in a content store, registers the locator on the ledger, and releases
decrypted content only to the record owner or an authorized principal.

Every fetch attempt, allowed or not, is written to the record's audit log
under the gateway's own service principal.

Author: Fabio Liberti
"""

from typing import Dict, Optional

import structlog

from core.exceptions import EncryptionError, GatewayError, UnauthorizedError
from core.models import Record
from ledger.service import AccessLedger

from .content_store import ContentStore, create_content_store
from .encryption import decrypt_record, encrypt_record, generate_symmetric_key

logger = structlog.get_logger(__name__)

READ_ACTION = "READ"


class RecordGateway:
    """Mediates payload storage and retrieval around an AccessLedger."""

    def __init__(
        self,
        ledger: AccessLedger,
        store: ContentStore,
        service_principal: str = "gateway",
    ):
        """
        Initialize the gateway.

        Args:
            ledger: Ledger consulted for records and authorization.
            store: Off-chain content store for encrypted envelopes.
            service_principal: Registered principal the gateway acts as when
                logging reads and registering records on a patient's behalf.
                Must hold the auditor role for the latter.
        """
        self.ledger = ledger
        self.store = store
        self.service_principal = service_principal
        # Per-record symmetric keys; a real deployment keeps these in a KMS
        self._keys: Dict[str, bytes] = {}

    @classmethod
    def from_config(cls, ledger: AccessLedger) -> "RecordGateway":
        """Build a gateway whose store and service principal come from config.yaml."""
        from config.config_loader import get_gateway_config

        cfg = get_gateway_config()
        if cfg["content_store"] == "ipfs":
            store = create_content_store(
                "ipfs", api_url=cfg["ipfs_api_url"], timeout=cfg["ipfs_timeout"]
            )
        else:
            store = create_content_store(cfg["content_store"])
        return cls(ledger, store, service_principal=cfg["service_principal"])

    def store_record(
        self,
        caller: str,
        plaintext: str,
        owner: Optional[str] = None,
    ) -> Record:
        """
        Encrypt and store a payload, then create its ledger record.

        Args:
            caller: Principal submitting the payload.
            plaintext: Payload to protect.
            owner: Patient to register the record for. When set (and not the
                caller), the gateway's service principal creates the record
                as registrar.

        Returns:
            The created Record.
        """
        key = generate_symmetric_key()
        envelope = encrypt_record(plaintext, key)
        locator = self.store.add_json(envelope)

        if owner is None or owner == caller:
            record = self.ledger.create_record(caller, locator)
        else:
            record = self.ledger.create_record(
                self.service_principal, locator, owner_override=owner
            )

        self._keys[record.record_id] = key
        logger.info(
            "Record stored",
            record_id=record.record_id,
            owner=record.owner,
            locator=locator,
        )
        return record

    def can_read(self, caller: str, record_id: str) -> bool:
        record = self.ledger.get_record(record_id)
        return caller == record.owner or self.ledger.is_authorized(record_id, caller)

    def fetch_record(self, caller: str, record_id: str) -> str:
        """
        Return the decrypted payload if the caller may read it.

        Raises:
            RecordNotFoundError: Record does not exist.
            UnauthorizedError: Caller is neither owner nor authorized.
            GatewayError: Content could not be fetched or decrypted.
        """
        if not self.can_read(caller, record_id):
            self.ledger.log_event(self.service_principal, record_id, caller, False, READ_ACTION)
            raise UnauthorizedError(caller, "read record", reason=f"no active grant on {record_id}")

        try:
            key = self._keys.get(record_id)
            if key is None:
                raise EncryptionError(f"No key held for record {record_id}", operation="decrypt")
            envelope = self.store.get_json(self.ledger.get_locator(record_id))
            plaintext = decrypt_record(envelope, key)
        except GatewayError as e:
            self.ledger.log_event(self.service_principal, record_id, caller, False, READ_ACTION)
            logger.warning(
                "Record fetch failed",
                record_id=record_id,
                caller=caller,
                error_code=e.error_code,
            )
            raise

        self.ledger.log_event(self.service_principal, record_id, caller, True, READ_ACTION)
        return plaintext
