"""
Database module - Key-value engines wrapped by SecureStore.

Security Considerations:
- Engines only ever receive storage keys and ciphertext
- No plaintext keys, values or derivation metadata are persisted
- Engine errors are passed to callers unchanged
"""

from securestore.db.base import (
    AbstractStore,
    NotFoundError,
    OperationType,
    StoredOperation,
    StoreError,
)
from securestore.db.memory import MemoryStore

__all__ = [
    "AbstractStore",
    "MemoryStore",
    "NotFoundError",
    "OperationType",
    "StoredOperation",
    "StoreError",
]
