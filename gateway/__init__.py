"""
PrivaMed Gateway
================
Collaborators around the consent ledger: payload encryption, off-chain
content stores, and the record gateway that ties them to the ledger.
"""

from .encryption import generate_symmetric_key, encrypt_record, decrypt_record
from .content_store import (
    ContentStore,
    InMemoryContentStore,
    IPFSContentStore,
    create_content_store,
)
from .service import RecordGateway

__all__ = [
    # Encryption
    "generate_symmetric_key",
    "encrypt_record",
    "decrypt_record",
    # Content Stores
    "ContentStore",
    "InMemoryContentStore",
    "IPFSContentStore",
    "create_content_store",
    # Gateway
    "RecordGateway",
]
