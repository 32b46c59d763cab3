"""
SecureStore Memory Security Module
==================================

Provides explicit zeroization of per-record cipher keys.

WARNING:
- Python's memory model doesn't guarantee secure erasure
- These are best-effort mitigations
"""

from securestore.core.memory.zeroization import (
    secure_zero,
    ZeroizeContext,
)

__all__ = [
    "secure_zero",
    "ZeroizeContext",
]
