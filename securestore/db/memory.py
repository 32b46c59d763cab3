"""
In-Memory Store
===============

Dictionary-backed engine implementing AbstractStore.

Used for tests and for embedding SecureStore without a persistent engine.
Contents survive close()/open() cycles of the same instance but not the
process.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterator, Sequence

from securestore.db.base import (
    AbstractStore,
    NotFoundError,
    OperationType,
    StoredOperation,
    StoreError,
)

_log = logging.getLogger("securestore.db.memory")


class MemoryStore(AbstractStore):
    """
    Dict-backed key-value engine.

    Behavior:
    - get() of a missing key raises NotFoundError
    - delete() of a missing key is a no-op
    - batch() is all-or-nothing: entries are checked before any is applied
    """

    __slots__ = ("_data", "_lock", "_is_open")

    def __init__(self) -> None:
        self._data: dict[bytes, bytes] = {}
        self._lock = asyncio.Lock()
        self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    def _require_open(self) -> None:
        if not self._is_open:
            raise StoreError("Database is not open")

    async def open(self, **options: Any) -> None:
        if options.get("error_if_exists") and self._data:
            raise StoreError("Database exists (error_if_exists is set)")
        self._is_open = True
        _log.debug("Memory store opened with %d records", len(self._data))

    async def close(self) -> None:
        self._is_open = False

    async def get(self, key: bytes) -> bytes:
        self._require_open()
        try:
            return self._data[key]
        except KeyError:
            raise NotFoundError(key) from None

    async def put(self, key: bytes, value: bytes) -> None:
        self._require_open()
        async with self._lock:
            self._data[key] = value

    async def delete(self, key: bytes) -> None:
        self._require_open()
        async with self._lock:
            self._data.pop(key, None)

    async def batch(self, operations: Sequence[StoredOperation]) -> None:
        self._require_open()
        for operation in operations:
            if operation.type is OperationType.PUT and operation.value is None:
                raise StoreError("Batch put is missing a value")

        async with self._lock:
            for operation in operations:
                if operation.type is OperationType.PUT:
                    self._data[operation.key] = operation.value
                else:
                    self._data.pop(operation.key, None)

    # Inspection helpers (the persisted view: storage keys and ciphertext)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def items(self) -> Iterator[tuple[bytes, bytes]]:
        """Iterate over persisted (storage key, ciphertext) pairs."""
        return iter(list(self._data.items()))

    def raw_put(self, key: bytes, value: bytes) -> None:
        """Overwrite a persisted record directly, bypassing the lifecycle."""
        self._data[key] = value
