"""Shared fixtures for SecureStore tests."""

from __future__ import annotations

from typing import Sequence

import pytest

from securestore import MemoryStore, SecureStore, StoreConfig
from securestore.db import StoredOperation

# Cheap scrypt parameters so tests don't spend 16 MiB per derivation
FAST_SCRYPT = {"n": 1024, "r": 8, "p": 1}

FIXED_IV = bytes(range(16))


class RecordingStore(MemoryStore):
    """MemoryStore that records every batch it receives."""

    def __init__(self) -> None:
        super().__init__()
        self.batches: list[list[StoredOperation]] = []

    async def batch(self, operations: Sequence[StoredOperation]) -> None:
        self.batches.append(list(operations))
        await super().batch(operations)


@pytest.fixture
def options() -> dict:
    """Instance options mirroring a typical deployment."""
    return {
        "cipher": {"algorithm": "aes-192-cbc", "iv": FIXED_IV},
        "key_hmac": {"algorithm": "sha512", "secret_key": "keyHmac key"},
        "value_hmac": {"algorithm": "sha512", "secret_key": "valueHmac key"},
        "value_scrypt": {
            "derived_key_length": 24,
            "salt": "valueScrypt salt",
            "options": FAST_SCRYPT,
        },
    }


@pytest.fixture
def config(options) -> StoreConfig:
    return StoreConfig.from_mapping(options)


@pytest.fixture
def memory_store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def store(memory_store, config) -> SecureStore:
    """A SecureStore that still has to be opened by the test."""
    return SecureStore(memory_store, config)
