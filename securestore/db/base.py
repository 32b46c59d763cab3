"""
Underlying Store Interface
==========================

Contract SecureStore expects from the key-value engine it wraps.

The engine only ever sees storage keys (HMAC digests) and ciphertext.
Durability, ordering, atomicity of batches and locking are the engine's
responsibility. Errors it raises reach the SecureStore caller unchanged.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence


class StoreError(Exception):
    """Base class for errors raised by a key-value engine."""
    pass


class NotFoundError(StoreError):
    """Raised by get() when no record exists for the storage key."""

    def __init__(self, key: bytes) -> None:
        # Short prefix only; the full digest identifies the record
        super().__init__(f"Key not found in database [{key[:4].hex()}...]")
        self.key = key


class OperationType(Enum):
    """Kind of write in a batch."""

    PUT = "put"
    DELETE = "del"


@dataclass(frozen=True, slots=True)
class StoredOperation:
    """
    A transformed batch entry as handed to the engine.

    Attributes:
        type: PUT or DELETE
        key: Storage key
        value: Ciphertext for PUT, None for DELETE
    """

    type: OperationType
    key: bytes
    value: Optional[bytes] = None

    def __repr__(self) -> str:
        """Safe representation without key or value bytes."""
        size = None if self.value is None else len(self.value)
        return f"StoredOperation(type={self.type.value}, key_len={len(self.key)}, value_len={size})"


class AbstractStore(ABC):
    """
    Asynchronous key-value engine wrapped by SecureStore.

    Implementations must:
    - raise NotFoundError (or another StoreError) from get() for missing keys
    - apply batch() operations in the given order
    """

    @abstractmethod
    async def open(self, **options: Any) -> None:
        """Open the engine. Options are engine specific."""

    @abstractmethod
    async def close(self) -> None:
        """Close the engine and release its resources."""

    @abstractmethod
    async def get(self, key: bytes) -> bytes:
        """Return the value stored under key."""

    @abstractmethod
    async def put(self, key: bytes, value: bytes) -> None:
        """Store value under key, replacing any existing value."""

    @abstractmethod
    async def delete(self, key: bytes) -> None:
        """Remove the record stored under key."""

    @abstractmethod
    async def batch(self, operations: Sequence[StoredOperation]) -> None:
        """Apply a sequence of puts and deletes."""
