"""
PrivaMed Utility Functions
==========================
Logging setup, hashing, identifier derivation and clocks shared by the
ledger and the gateway.
"""

import hashlib
import json
import logging
import time
from typing import Dict, Optional, Union

import structlog


# =============================================================================
# Logging Setup
# =============================================================================


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
) -> structlog.BoundLogger:
    """
    Configure structured logging for the ledger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: Output format (json, console).
        log_file: Optional file path for log output.

    Returns:
        Configured logger instance.
    """
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        handlers=[
            logging.StreamHandler(),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            ),
        ],
    )

    return structlog.get_logger()


# =============================================================================
# Hashing and Integrity
# =============================================================================


def compute_hash(data: Union[str, bytes, Dict], algorithm: str = "sha256") -> str:
    """
    Compute cryptographic hash of data.

    Args:
        data: Data to hash (string, bytes, or dictionary).
        algorithm: Hash algorithm (sha256, sha3_256, sha512).

    Returns:
        Hexadecimal hash string.
    """
    if isinstance(data, dict):
        data = json.dumps(data, sort_keys=True)
    if isinstance(data, str):
        data = data.encode("utf-8")

    hasher = hashlib.new(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


def verify_hash(data: Union[str, bytes, Dict], expected_hash: str, algorithm: str = "sha256") -> bool:
    """Verify data integrity against expected hash."""
    return compute_hash(data, algorithm) == expected_hash


# =============================================================================
# ID Generation
# =============================================================================


def derive_record_id(creator: str, locator: str, timestamp: int) -> str:
    """
    Derive a record identifier from (creator, locator, timestamp).

    The three parts are length-prefixed before hashing so that distinct
    triples can never serialize to the same preimage.

    Returns:
        0x-prefixed hex digest.
    """
    parts = [creator, locator, str(int(timestamp))]
    preimage = "".join(f"{len(p)}:{p}" for p in parts)
    return "0x" + compute_hash(preimage, algorithm="sha3_256")


def hash_justification(justification: str) -> str:
    """Hash a free-text break-glass justification for on-ledger storage."""
    return "0x" + compute_hash(justification, algorithm="sha3_256")


# =============================================================================
# Clocks
# =============================================================================


class SystemClock:
    """Wall clock in whole seconds."""

    def __call__(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Settable clock for tests, simulations and replay.

    Time never moves backwards.
    """

    def __init__(self, start: int = 1_700_000_000):
        self._now = int(start)

    def __call__(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self._now += int(seconds)
        return self._now

    def set(self, timestamp: int) -> int:
        if timestamp < self._now:
            raise ValueError("Clock cannot move backwards")
        self._now = int(timestamp)
        return self._now
