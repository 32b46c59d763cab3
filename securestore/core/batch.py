"""
Batch Coordinator
=================

Transforms a list of logical puts/deletes into storage operations.

Per operation:
    1. Resolve configuration (operation > call > instance)
    2. Hash the key → storage key
    3. Put only: derive the cipher key and encrypt the value

All operations are transformed concurrently, one task each, with no cap.
The result list is assembled from the task list, so it follows input
order regardless of which task finishes first.

Failure policy (first error wins):
    - The first failed transform aborts the batch and its error is raised
    - Nothing is forwarded to the underlying store
    - Transforms still running are left to finish; their results are dropped
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence, Union

from securestore.core.config import StoreConfig, resolve_config
from securestore.core.crypto.key_hasher import hash_key
from securestore.core.crypto.pipeline import seal_value
from securestore.core.exceptions import ValidationError
from securestore.db.base import OperationType, StoredOperation
from securestore.utils.validators import validate_key, validate_value

if TYPE_CHECKING:
    from securestore.core.secure_store import SecureStore

_log = logging.getLogger("securestore.batch")

_PUT_TYPES = frozenset({"put"})
_DELETE_TYPES = frozenset({"del", "delete"})


@dataclass(frozen=True, slots=True)
class Put:
    """
    Logical put. Key and value are normalized to bytes on construction.

    Raises:
        ValidationError: If the key is None/empty or the value is None
        ConfigurationError: If options is not a StoreConfig or mapping
    """

    key: Any
    value: Any
    options: Optional[StoreConfig] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", validate_key(self.key))
        object.__setattr__(self, "value", validate_value(self.value))
        object.__setattr__(self, "options", StoreConfig.coerce(self.options))

    def __repr__(self) -> str:
        return f"Put(key_len={len(self.key)}, value_len={len(self.value)})"


@dataclass(frozen=True, slots=True)
class Delete:
    """Logical delete. The key is normalized to bytes on construction."""

    key: Any
    options: Optional[StoreConfig] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", validate_key(self.key))
        object.__setattr__(self, "options", StoreConfig.coerce(self.options))

    def __repr__(self) -> str:
        return f"Delete(key_len={len(self.key)})"


Operation = Union[Put, Delete]
OperationLike = Union[Put, Delete, Mapping[str, Any]]


def to_operation(entry: OperationLike) -> Operation:
    """
    Convert a batch entry to a Put or Delete.

    Accepts Put/Delete instances or mappings of the form
    {"type": "put" | "del" | "delete", "key": ..., "value": ..., "options": ...}.

    Raises:
        ValidationError: If the entry is not a recognized operation
    """
    if isinstance(entry, (Put, Delete)):
        return entry
    if not isinstance(entry, Mapping):
        raise ValidationError(
            f"batch entry must be Put, Delete or a mapping, got {type(entry).__name__}"
        )

    kind = entry.get("type")
    if kind in _PUT_TYPES:
        return Put(entry.get("key"), entry.get("value"), entry.get("options"))
    if kind in _DELETE_TYPES:
        return Delete(entry.get("key"), entry.get("options"))
    raise ValidationError(f"batch entry type must be 'put' or 'del', got {kind!r}")


def to_operations(entries: Iterable[OperationLike]) -> list[Operation]:
    """Convert every batch entry, failing on the first invalid one."""
    if isinstance(entries, (str, bytes, Mapping)):
        raise ValidationError("batch() requires a sequence of operations")
    return [to_operation(entry) for entry in entries]


async def transform_operation(operation: Operation, config: StoreConfig) -> StoredOperation:
    """
    Transform one logical operation under its resolved configuration.

    Raises:
        ConfigurationError, KeyDerivationError, EncryptionError
    """
    storage_key = hash_key(operation.key, config.key_hmac)

    if isinstance(operation, Put):
        ciphertext = await seal_value(operation.key, operation.value, config)
        return StoredOperation(OperationType.PUT, storage_key, ciphertext)

    return StoredOperation(OperationType.DELETE, storage_key)


def _discard_outcome(task: asyncio.Task) -> None:
    """Consume the outcome of a transform whose batch was already abandoned."""
    if not task.cancelled():
        task.exception()


async def transform_batch(
    operations: Sequence[Operation],
    call_config: Optional[StoreConfig],
    instance_config: StoreConfig,
) -> list[StoredOperation]:
    """
    Transform a batch concurrently, preserving input order.

    Args:
        operations: Logical operations in caller order
        call_config: Per-call override (may be None)
        instance_config: Instance defaults

    Returns:
        Storage operations, one per input, in input order

    Raises:
        The first error raised by any per-operation transform
    """
    if not operations:
        return []

    tasks = [
        asyncio.ensure_future(
            transform_operation(
                operation,
                resolve_config(instance_config, call_config, operation.options),
            )
        )
        for operation in operations
    ]

    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)

    failures = [
        task for task in tasks
        if task in done and not task.cancelled() and task.exception() is not None
    ]
    if failures:
        for task in pending:
            task.add_done_callback(_discard_outcome)
        error = failures[0].exception()
        _log.warning(
            "Batch of %d operations aborted (%d still running): %s",
            len(tasks), len(pending), type(error).__name__,
        )
        raise error

    return [task.result() for task in tasks]


class ChainedBatch:
    """
    Incremental batch builder bound to a SecureStore.

    Usage:
        await (
            store.batch()
            .put("a", "1")
            .delete("b")
            .write()
        )

    Entries are validated when added. A batch can be written once.
    """

    __slots__ = ("_store", "_operations", "_written")

    def __init__(self, store: SecureStore) -> None:
        self._store = store
        self._operations: list[Operation] = []
        self._written = False

    def _check_written(self) -> None:
        if self._written:
            raise ValidationError("write() already called on this batch")

    def put(self, key: Any, value: Any, options: Any = None) -> ChainedBatch:
        self._check_written()
        self._operations.append(Put(key, value, options))
        return self

    def delete(self, key: Any, options: Any = None) -> ChainedBatch:
        self._check_written()
        self._operations.append(Delete(key, options))
        return self

    def clear(self) -> ChainedBatch:
        """Drop all queued operations."""
        self._check_written()
        self._operations.clear()
        return self

    def __len__(self) -> int:
        return len(self._operations)

    @property
    def operations(self) -> tuple[Operation, ...]:
        return tuple(self._operations)

    async def write(self, options: Any = None) -> None:
        """Transform and forward the queued operations as one batch."""
        self._check_written()
        self._written = True
        await self._store.batch(list(self._operations), options)
