"""
Memory Zeroization Utilities
============================

Explicit wiping of transient key material.

Cipher keys derived for a single record live in a bytearray only for the
duration of one encrypt/decrypt and are overwritten afterwards.

Security Notes:
- This is best-effort; the interpreter and OpenSSL may hold copies
- Only mutable buffers (bytearray) can be wiped
"""

from __future__ import annotations

import ctypes
from contextlib import contextmanager
from typing import Final, Iterator


# Overwrite patterns applied in order
WIPE_PATTERNS: Final[tuple[int, ...]] = (0x00, 0xFF, 0x00)


def secure_zero(data: bytearray | memoryview) -> None:
    """
    Securely zero a byte buffer.

    Uses ctypes.memset for bytearrays, with a Python-level loop for
    memoryviews.

    Args:
        data: Mutable byte buffer to zero
    """
    if len(data) == 0:
        return

    if isinstance(data, memoryview):
        for i in range(len(data)):
            data[i] = 0
        return

    buffer = (ctypes.c_char * len(data)).from_buffer(data)
    addr = ctypes.addressof(buffer)
    for pattern in WIPE_PATTERNS:
        ctypes.memset(addr, pattern, len(data))
    # Release the export so the bytearray can be resized or freed
    del buffer


@contextmanager
def ZeroizeContext(*buffers: bytearray) -> Iterator[None]:
    """
    Context manager that zeroizes buffers on exit.

    Always zeroizes, whether exit is normal or exceptional.

    Usage:
        cipher_key = await derive_cipher_key(key, value_hmac, value_scrypt)
        with ZeroizeContext(cipher_key):
            ciphertext = cipher.encrypt(plaintext, cipher_key)
        # cipher_key is now zeroed
    """
    try:
        yield
    finally:
        for buf in buffers:
            secure_zero(buf)
