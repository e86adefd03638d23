"""
Payload Encryption
==================
AES-256-GCM envelope encryption for record payloads before they reach the
content store. Envelopes are JSON-friendly dicts of hex strings:
``{"iv": ..., "tag": ..., "ciphertext": ...}``.

Author: Fabio Liberti
"""

import os
from typing import Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core.exceptions import EncryptionError

KEY_SIZE = 32
IV_SIZE = 12
TAG_SIZE = 16


def generate_symmetric_key() -> bytes:
    """Generate a random 256-bit key."""
    return AESGCM.generate_key(bit_length=KEY_SIZE * 8)


def _check_key(key: bytes, operation: str) -> None:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise EncryptionError(f"Key must be {KEY_SIZE} bytes", operation=operation)


def encrypt_record(plaintext: str, key: bytes) -> Dict[str, str]:
    """
    Encrypt a UTF-8 payload.

    Args:
        plaintext: Payload to protect.
        key: 32-byte symmetric key.

    Returns:
        Envelope with hex-encoded iv, tag and ciphertext.
    """
    _check_key(key, "encrypt")
    iv = os.urandom(IV_SIZE)
    sealed = AESGCM(bytes(key)).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
    return {
        "iv": iv.hex(),
        "tag": tag.hex(),
        "ciphertext": ciphertext.hex(),
    }


def decrypt_record(envelope: Dict[str, str], key: bytes) -> str:
    """
    Decrypt an envelope produced by encrypt_record.

    Raises:
        EncryptionError: Malformed envelope, wrong key, or tampered data.
    """
    _check_key(key, "decrypt")
    try:
        iv = bytes.fromhex(envelope["iv"])
        tag = bytes.fromhex(envelope["tag"])
        ciphertext = bytes.fromhex(envelope["ciphertext"])
    except (KeyError, TypeError, ValueError) as e:
        raise EncryptionError(f"Malformed envelope: {e}", operation="decrypt") from e

    try:
        plaintext = AESGCM(bytes(key)).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as e:
        raise EncryptionError("Authentication tag mismatch", operation="decrypt") from e
    return plaintext.decode("utf-8")
