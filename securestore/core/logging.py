"""
Secure Logging Module
=====================

Logging for the encryption layer that cannot leak key material.

Library modules log through ``logging.getLogger("securestore.<area>")``
and attach no handlers themselves. An application calls
``get_secure_logger("securestore")`` (or
``SecureStoreSettings.configure_logging()``) once; every child logger then
inherits the filtered handlers.

What is redacted:
- name=value pairs for secrets, salts, IVs, passwords and tokens
- long hex and base64 runs (digests, ciphertext dumps)
- bytes arguments, which are replaced by their length

Storage keys are identified in logs by ``key_fingerprint()`` only.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Final, Optional, Pattern

_ASSIGNMENT = r'\s*[=:]\s*["\']?[^\s"\',)]+["\']?'

_SENSITIVE_PATTERNS: Final[tuple[tuple[str, Pattern[str]], ...]] = (
    ("secret_key", re.compile(r"(?i)(secret[_-]?key|secret)" + _ASSIGNMENT)),
    ("salt", re.compile(r"(?i)\bsalt" + _ASSIGNMENT)),
    ("iv", re.compile(r"(?i)\b(iv|initialization[_-]?vector)" + _ASSIGNMENT)),
    ("password", re.compile(r"(?i)(password|passwd|pwd)" + _ASSIGNMENT)),
    ("token", re.compile(r"(?i)(token|bearer)" + _ASSIGNMENT)),
    ("base64_blob", re.compile(r"[A-Za-z0-9+/]{40,}={0,2}")),
    ("hex_blob", re.compile(r"(?i)(?:0x)?[a-f0-9]{32,}")),
)

_REDACTED_TEXT: Final[str] = "[REDACTED]"

# Context attached with extra={...} and copied into JSON output
_CONTEXT_FIELDS: Final[tuple[str, ...]] = ("key_fingerprint", "operation_count")

_CONSOLE_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_FILE_FORMAT: Final[str] = (
    "%(asctime)s %(levelname)s [%(name)s] %(module)s:%(lineno)d %(message)s"
)


def key_fingerprint(storage_key: bytes) -> str:
    """Short, log-safe identifier for a storage key."""
    return storage_key[:4].hex()


class SecureLogFilter(logging.Filter):
    """
    Sanitizes records before any handler formats them.

    Records are never dropped. Text is scrubbed with the sensitive
    patterns, and bytes-like arguments are replaced by ``<N bytes>``.
    """

    def __init__(self, name: str = "", additional_patterns: Optional[list[Pattern[str]]] = None) -> None:
        """
        Args:
            name: Logger name filter (empty string matches all)
            additional_patterns: Extra regexes whose matches are redacted
        """
        super().__init__(name)
        self._additional_patterns = tuple(additional_patterns or ())

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.sanitize(record.msg)

        if isinstance(record.args, dict):
            record.args = {key: self._clean_arg(value) for key, value in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self._clean_arg(arg) for arg in record.args)

        return True

    def _clean_arg(self, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return f"<{len(value)} bytes>"
        if isinstance(value, str):
            return self.sanitize(value)
        return value

    def sanitize(self, text: str) -> str:
        """Return text with every sensitive match replaced."""
        for label, pattern in _SENSITIVE_PATTERNS:
            text = pattern.sub(f"{label}={_REDACTED_TEXT}", text)
        for pattern in self._additional_patterns:
            text = pattern.sub(_REDACTED_TEXT, text)
        return text


class StructuredLogFormatter(logging.Formatter):
    """One JSON object per record, including any store context fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.lineno}",
        }
        for name in _CONTEXT_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class SecureRotatingFileHandler(RotatingFileHandler):
    """
    Size-rotated log file.

    The file name may not contain ``..`` components. The parent directory
    is created owner-only when missing.
    """

    def __init__(
        self,
        filename: str | Path,
        mode: str = "a",
        maxBytes: int = 10 * 1024 * 1024,
        backupCount: int = 5,
        encoding: str = "utf-8",
    ) -> None:
        requested = Path(filename)
        if ".." in requested.parts:
            raise ValueError(f"Log path may not traverse upwards: {filename}")

        log_path = requested.resolve()
        log_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

        super().__init__(
            log_path,
            mode=mode,
            maxBytes=maxBytes,
            backupCount=backupCount,
            encoding=encoding,
        )


def _console_handler(log_filter: logging.Filter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    handler.addFilter(log_filter)
    return handler


def _file_handler(
    log_file: Path,
    log_filter: logging.Filter,
    as_json: bool,
    max_file_size: int,
    backup_count: int,
) -> logging.Handler:
    handler = SecureRotatingFileHandler(log_file, maxBytes=max_file_size, backupCount=backup_count)
    if as_json:
        handler.setFormatter(StructuredLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(log_filter)
    return handler


def get_secure_logger(
    name: str,
    log_dir: Optional[Path] = None,
    level: str = "INFO",
    enable_console: bool = True,
    enable_file: bool = True,
    enable_json: bool = False,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Attach filtered handlers to a logger, once.

    Args:
        name: Logger name, normally "securestore"
        log_dir: Directory for the rotating file; no file output when None
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        enable_console: Write to stderr
        enable_file: Write to <log_dir>/<name>.log
        enable_json: Use StructuredLogFormatter for the file
        max_file_size: Bytes before the file rotates
        backup_count: Rotated files to keep

    Returns:
        The configured logger. A logger that already has handlers is
        returned unchanged.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level.upper())
    log_filter = SecureLogFilter()

    if enable_console:
        logger.addHandler(_console_handler(log_filter))
    if enable_file and log_dir is not None:
        log_file = Path(log_dir) / f"{name.replace('.', '_')}.log"
        logger.addHandler(
            _file_handler(log_file, log_filter, enable_json, max_file_size, backup_count)
        )

    logger.propagate = False
    return logger
