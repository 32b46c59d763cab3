"""Tests for secure logging."""

import json
import logging
import uuid

import pytest

from securestore.core.logging import (
    SecureLogFilter,
    SecureRotatingFileHandler,
    StructuredLogFormatter,
    get_secure_logger,
    key_fingerprint,
)


def make_record(msg, args=()):
    return logging.LogRecord("securestore.test", logging.INFO, __file__, 1, msg, args, None)


@pytest.fixture
def logger_name():
    name = f"securestore.test.{uuid.uuid4().hex[:8]}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


class TestSecureLogFilter:
    """Tests for redaction of sensitive values."""

    @pytest.mark.parametrize(
        "message, secret",
        [
            ("secret_key=hunter2", "hunter2"),
            ("secretKey: 'hunter2'", "hunter2"),
            ("salt=pepper", "pepper"),
            ("iv=0011aabb", "0011aabb"),
            ("password: letmein", "letmein"),
            ("storage key " + "ab" * 32, "ab" * 32),
            ("blob " + "QUJD" * 15, "QUJD" * 15),
        ],
    )
    def test_redacts(self, message, secret):
        record = make_record(message)
        assert SecureLogFilter().filter(record) is True
        assert secret not in record.msg
        assert "[REDACTED]" in record.msg

    def test_redacts_args(self):
        record = make_record("configured %s", ("secret_key=hunter2",))
        SecureLogFilter().filter(record)
        assert "hunter2" not in record.getMessage()

    def test_redacts_mapping_args(self):
        record = make_record("configured %(opt)s", ({"opt": "salt=pepper"},))
        SecureLogFilter().filter(record)
        assert "pepper" not in record.getMessage()

    def test_bytes_args_become_lengths(self):
        record = make_record("stored %s under %s", (b"\x00ciphertext", bytearray(b"digest")))
        SecureLogFilter().filter(record)
        assert record.getMessage() == "stored <11 bytes> under <6 bytes>"

    def test_leaves_ordinary_messages(self):
        record = make_record("get [a1b2c3d4]")
        SecureLogFilter().filter(record)
        assert record.msg == "get [a1b2c3d4]"

    def test_additional_patterns(self):
        import re

        log_filter = SecureLogFilter(additional_patterns=[re.compile(r"tenant-\d+")])
        record = make_record("tenant-42 wrote")
        log_filter.filter(record)
        assert record.msg == "[REDACTED] wrote"


class TestGetSecureLogger:
    """Tests for logger construction."""

    def test_console_only(self, logger_name):
        logger = get_secure_logger(logger_name, enable_file=False)

        assert len(logger.handlers) == 1
        assert logger.propagate is False
        assert any(isinstance(f, SecureLogFilter) for f in logger.handlers[0].filters)

    def test_no_duplicate_handlers(self, logger_name):
        first = get_secure_logger(logger_name, enable_file=False)
        second = get_secure_logger(logger_name, enable_file=False)

        assert first is second
        assert len(second.handlers) == 1

    def test_level(self, logger_name):
        logger = get_secure_logger(logger_name, level="debug", enable_console=False, enable_file=False)
        assert logger.level == logging.DEBUG

    def test_file_output_is_redacted(self, logger_name, tmp_path):
        logger = get_secure_logger(logger_name, log_dir=tmp_path, enable_console=False)
        logger.warning("rotated secret_key=hunter2")
        for handler in logger.handlers:
            handler.flush()

        [log_file] = list(tmp_path.glob("*.log"))
        content = log_file.read_text(encoding="utf-8")
        assert "rotated" in content
        assert "hunter2" not in content

    def test_json_file_output(self, logger_name, tmp_path):
        logger = get_secure_logger(logger_name, log_dir=tmp_path, enable_console=False, enable_json=True)
        logger.info("store opened")
        for handler in logger.handlers:
            handler.flush()

        [log_file] = list(tmp_path.glob("*.log"))
        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
        assert entry["message"] == "store opened"
        assert entry["level"] == "INFO"
        assert entry["logger"] == logger_name

    def test_json_includes_store_context(self, logger_name, tmp_path):
        logger = get_secure_logger(logger_name, log_dir=tmp_path, enable_console=False, enable_json=True)
        logger.warning("get [%s]", "deadbeef", extra={"key_fingerprint": "deadbeef"})
        for handler in logger.handlers:
            handler.flush()

        [log_file] = list(tmp_path.glob("*.log"))
        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
        assert entry["key_fingerprint"] == "deadbeef"
        assert "operation_count" not in entry

    def test_child_loggers_inherit_handlers(self, logger_name, tmp_path):
        get_secure_logger(logger_name, log_dir=tmp_path, enable_console=False)
        logging.getLogger(f"{logger_name}.kdf").warning("derivation failed")
        for handler in logging.getLogger(logger_name).handlers:
            handler.flush()

        [log_file] = list(tmp_path.glob("*.log"))
        assert "derivation failed" in log_file.read_text(encoding="utf-8")


class TestStructuredLogFormatter:
    def test_includes_exception(self):
        try:
            raise RuntimeError("bad")
        except RuntimeError:
            import sys

            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        entry = json.loads(StructuredLogFormatter().format(record))
        assert "RuntimeError" in entry["exception"]


class TestSecureRotatingFileHandler:
    def test_rejects_traversal(self, tmp_path):
        with pytest.raises(ValueError):
            SecureRotatingFileHandler(tmp_path / ".." / "escape.log")

    def test_creates_directory(self, tmp_path):
        handler = SecureRotatingFileHandler(tmp_path / "nested" / "store.log")
        try:
            assert (tmp_path / "nested").is_dir()
        finally:
            handler.close()


def test_key_fingerprint():
    assert key_fingerprint(bytes.fromhex("deadbeef00112233")) == "deadbeef"
