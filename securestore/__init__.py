"""
SecureStore - Transparent encryption for key-value stores
==========================================================

Wraps a key-value engine so that it only ever stores:
- HMAC digests of the logical keys
- Ciphertext of the values, under per-record scrypt-derived keys

Security Notice:
- No secrets are logged
- Fail-closed: any derivation or cipher failure aborts the operation
- Value encryption is NOT authenticated (see securestore.core.crypto)
"""

from securestore.core.batch import ChainedBatch, Delete, Put
from securestore.core.config import (
    CipherConfig,
    KeyHmacConfig,
    ScryptOptions,
    SecureStoreSettings,
    StoreConfig,
    ValueHmacConfig,
    ValueScryptConfig,
    resolve_config,
)
from securestore.core.exceptions import (
    ConfigurationError,
    CryptoOperationError,
    DecryptionError,
    EncryptionError,
    KeyDerivationError,
    SecureStoreError,
    StoreNotOpenError,
    ValidationError,
)
from securestore.core.logging import get_secure_logger
from securestore.core.secure_store import SecureStore
from securestore.db import AbstractStore, MemoryStore, NotFoundError, StoreError

__version__ = "0.1.0"

__all__ = [
    "AbstractStore",
    "ChainedBatch",
    "CipherConfig",
    "ConfigurationError",
    "CryptoOperationError",
    "DecryptionError",
    "Delete",
    "EncryptionError",
    "KeyDerivationError",
    "KeyHmacConfig",
    "MemoryStore",
    "NotFoundError",
    "Put",
    "ScryptOptions",
    "SecureStore",
    "SecureStoreError",
    "SecureStoreSettings",
    "StoreConfig",
    "StoreError",
    "StoreNotOpenError",
    "ValidationError",
    "ValueHmacConfig",
    "ValueScryptConfig",
    "get_secure_logger",
    "resolve_config",
    "__version__",
]
