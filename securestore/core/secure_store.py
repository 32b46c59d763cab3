"""
SecureStore Facade
==================

Transparent encryption in front of a key-value engine.

Every logical key is replaced by HMAC(key) and every value by ciphertext
under a per-record key derived from the logical key. The wrapped engine
never sees plaintext keys, values or derivation parameters.

Put Flow:
    key, value
        ↓ normalize to bytes
        ↓ resolve configuration (call > instance)
        ↓ derive cipher key, encrypt value
        ↓ hash key
    engine.put(storage_key, ciphertext)

Get Flow:
    key
        ↓ hash key
    engine.get(storage_key)            (engine errors pass through)
        ↓ derive cipher key, decrypt   (DecryptionError on failure)
        ↓ return bytes, or UTF-8 text on request
    value

WARNING:
    - All derivation parameters must be identical on every call, or
      records become unreachable. Nothing about them is persisted.
    - No iteration or range queries are provided.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Iterable, Mapping, Optional, Union

from securestore.core.batch import (
    ChainedBatch,
    OperationLike,
    to_operations,
    transform_batch,
)
from securestore.core.config import SecureStoreSettings, StoreConfig, resolve_config
from securestore.core.crypto.key_hasher import hash_key
from securestore.core.crypto.pipeline import open_value, seal_value
from securestore.core.exceptions import StoreNotOpenError
from securestore.core.logging import key_fingerprint
from securestore.db.base import AbstractStore
from securestore.utils.encoding import ValueEncoding
from securestore.utils.validators import validate_key, validate_value

_log = logging.getLogger("securestore.store")

ConfigLike = Union[StoreConfig, Mapping[str, Any], None]


@dataclass(frozen=True, slots=True)
class StoreCapabilities:
    """Read-only capability manifest."""

    iterators: bool = False
    binary_keys: bool = True
    binary_values: bool = True
    chained_batch: bool = True


class SecureStore:
    """
    Encrypting facade over an AbstractStore.

    Usage:
        store = SecureStore(MemoryStore(), {
            "cipher": {"algorithm": "aes-192-cbc", "iv": iv},
            "key_hmac": {"algorithm": "sha512", "secret_key": "k1"},
            "value_hmac": {"algorithm": "sha512", "secret_key": "k2"},
            "value_scrypt": {"derived_key_length": 24, "salt": "salt"},
        })

        async with store:
            await store.put("name", "value")
            assert await store.get("name") == b"value"
            assert await store.get("name", as_bytes=False) == "value"

    Status:
        new → opening → open → closing → closed
    """

    __slots__ = ("_db", "_options", "_status")

    supports = StoreCapabilities()

    def __init__(self, db: AbstractStore, options: ConfigLike = None) -> None:
        """
        Initialize the facade.

        Args:
            db: The engine to wrap
            options: Instance default configuration (StoreConfig or mapping)
        """
        self._db = db
        self._options: StoreConfig = StoreConfig.coerce(options) or StoreConfig()
        self._status = "new"

    @classmethod
    def from_settings(
        cls,
        db: AbstractStore,
        settings: SecureStoreSettings,
        options: ConfigLike = None,
    ) -> SecureStore:
        """Build a facade whose defaults are the settings overlaid with options."""
        return cls(db, settings.defaults.merged(StoreConfig.coerce(options)))

    @property
    def db(self) -> AbstractStore:
        """The wrapped engine."""
        return self._db

    @property
    def options(self) -> StoreConfig:
        """Instance default configuration (immutable)."""
        return self._options

    @property
    def status(self) -> str:
        return self._status

    # Lifecycle

    async def open(self, **options: Any) -> None:
        """Open the wrapped engine. Options are passed through to it."""
        if self._status == "open":
            return
        self._status = "opening"
        try:
            await self._db.open(**options)
        except BaseException:
            self._status = "new"
            raise
        self._status = "open"
        _log.debug("Store opened")

    async def close(self) -> None:
        """Close the wrapped engine."""
        if self._status != "open":
            return
        self._status = "closing"
        try:
            await self._db.close()
        except BaseException:
            self._status = "open"
            raise
        self._status = "closed"
        _log.debug("Store closed")

    async def __aenter__(self) -> SecureStore:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _require_open(self) -> None:
        if self._status != "open":
            raise StoreNotOpenError(f"Store is not open (status: {self._status})")

    # Data operations

    async def get(
        self,
        key: Any,
        options: ConfigLike = None,
        *,
        as_bytes: bool = True,
    ) -> Union[bytes, str]:
        """
        Read and decrypt a value.

        Args:
            key: Logical key (bytes, str, or scalar)
            options: Per-call configuration override
            as_bytes: Return bytes (default); False decodes UTF-8 text

        Returns:
            The original value as bytes, or text when as_bytes is False

        Raises:
            StoreNotOpenError: If the store is not open
            ValidationError: If the key is None or empty
            ConfigurationError, KeyDerivationError: Derivation problems
            DecryptionError: Ciphertext cannot be decrypted or decoded
            Any engine error (e.g. NotFoundError), unchanged
        """
        self._require_open()
        logical_key = validate_key(key)
        config = resolve_config(self._options, StoreConfig.coerce(options))

        storage_key = hash_key(logical_key, config.key_hmac)
        fingerprint = key_fingerprint(storage_key)
        _log.debug("get [%s]", fingerprint, extra={"key_fingerprint": fingerprint})

        ciphertext = await self._db.get(storage_key)
        plaintext = await open_value(logical_key, ciphertext, config)

        return ValueEncoding.for_flag(as_bytes).decode(plaintext)

    async def put(self, key: Any, value: Any, options: ConfigLike = None) -> None:
        """
        Encrypt and store a value.

        Raises:
            StoreNotOpenError: If the store is not open
            ValidationError: If the key is None/empty or the value is None
            ConfigurationError, KeyDerivationError, EncryptionError
            Any engine error, unchanged
        """
        self._require_open()
        logical_key = validate_key(key)
        plaintext = validate_value(value)
        config = resolve_config(self._options, StoreConfig.coerce(options))

        ciphertext = await seal_value(logical_key, plaintext, config)
        storage_key = hash_key(logical_key, config.key_hmac)
        fingerprint = key_fingerprint(storage_key)
        _log.debug(
            "put [%s] %d bytes", fingerprint, len(ciphertext),
            extra={"key_fingerprint": fingerprint},
        )

        await self._db.put(storage_key, ciphertext)

    async def delete(self, key: Any, options: ConfigLike = None) -> None:
        """
        Delete a value.

        Raises:
            StoreNotOpenError: If the store is not open
            ValidationError: If the key is None or empty
            ConfigurationError: If key_hmac is incomplete
            Any engine error, unchanged
        """
        self._require_open()
        logical_key = validate_key(key)
        config = resolve_config(self._options, StoreConfig.coerce(options))

        storage_key = hash_key(logical_key, config.key_hmac)
        fingerprint = key_fingerprint(storage_key)
        _log.debug("delete [%s]", fingerprint, extra={"key_fingerprint": fingerprint})

        await self._db.delete(storage_key)

    def batch(
        self,
        operations: Optional[Iterable[OperationLike]] = None,
        options: ConfigLike = None,
    ) -> Union[ChainedBatch, Awaitable[None]]:
        """
        Apply several puts and deletes as one engine batch.

        With operations, returns an awaitable:
            await store.batch([Put("a", "1"), Delete("b")])
            await store.batch([{"type": "put", "key": "a", "value": "1"}])

        Without operations, returns a ChainedBatch builder:
            await store.batch().put("a", "1").delete("b").write()

        Each entry may carry its own "options", which take precedence over
        the call options, which take precedence over the instance defaults.
        """
        if operations is None:
            return ChainedBatch(self)
        return self._batch(operations, options)

    async def _batch(self, operations: Iterable[OperationLike], options: ConfigLike) -> None:
        self._require_open()
        prepared = to_operations(operations)
        call_config = StoreConfig.coerce(options)

        if not prepared:
            return

        _log.debug(
            "batch of %d operations", len(prepared),
            extra={"operation_count": len(prepared)},
        )
        stored = await transform_batch(prepared, call_config, self._options)
        await self._db.batch(stored)

    def __repr__(self) -> str:
        return f"SecureStore(db={type(self._db).__name__}, status={self._status!r})"
