"""
Validation Utilities
====================

Normalization of keys and values at the SecureStore boundary.

Everything that enters the cryptographic pipeline is bytes:
- bytes-like inputs are copied to immutable bytes
- text is UTF-8 encoded
- other scalars (int, float, ...) use their str() form
"""

from __future__ import annotations

from typing import Any

from securestore.core.exceptions import ValidationError


def to_bytes(value: Any, field_name: str = "value") -> bytes:
    """
    Convert a key or value to bytes.

    Args:
        value: The input to convert
        field_name: Name of the field for error messages

    Returns:
        The input as bytes

    Raises:
        ValidationError: If the value is None
    """
    if value is None:
        raise ValidationError(f"{field_name} cannot be None")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    return str(value).encode("utf-8")


def validate_key(key: Any) -> bytes:
    """
    Validate a logical key and return it as bytes.

    Raises:
        ValidationError: If the key is None or empty
    """
    data = to_bytes(key, "key")
    if not data:
        raise ValidationError("key cannot be empty")
    return data


def validate_value(value: Any) -> bytes:
    """
    Validate a value and return it as bytes. Empty values are allowed.

    Raises:
        ValidationError: If the value is None
    """
    return to_bytes(value, "value")
