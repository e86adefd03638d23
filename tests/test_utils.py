"""Tests for shared utilities."""

import structlog

from core.exceptions import NotOwnerError, PrivaMedError
from core.utils import compute_hash, setup_logging, verify_hash


class TestHashing:
    """Tests for compute_hash / verify_hash."""

    def test_dict_hash_ignores_key_order(self):
        assert compute_hash({"a": 1, "b": 2}) == compute_hash({"b": 2, "a": 1})

    def test_str_and_bytes_agree(self):
        assert compute_hash("abc") == compute_hash(b"abc")

    def test_algorithms_differ(self):
        assert compute_hash("abc", algorithm="sha3_256") != compute_hash("abc")

    def test_verify(self):
        digest = compute_hash("payload")
        assert verify_hash("payload", digest)
        assert not verify_hash("tampered", digest)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_returns_logger(self, tmp_path):
        logger = setup_logging(level="DEBUG", log_format="json", log_file=str(tmp_path / "l.log"))
        assert logger is not None
        structlog.reset_defaults()

    def test_console_format(self):
        assert setup_logging(level="WARNING", log_format="console") is not None
        structlog.reset_defaults()


class TestErrorSerialization:
    """Tests for the exception taxonomy."""

    def test_to_dict(self):
        err = NotOwnerError("D1", "0xabc")
        assert isinstance(err, PrivaMedError)
        assert err.to_dict() == {
            "error_type": "NotOwnerError",
            "message": "D1 is not the owner of record 0xabc",
            "error_code": "NOT_OWNER",
            "details": {"caller": "D1", "record_id": "0xabc"},
        }
        assert str(err).startswith("[NOT_OWNER]")
