"""
SecureStore Exceptions
======================

Error taxonomy for the encryption layer.

Every failure surfaced by SecureStore identifies the stage that failed:
- Configuration: missing or invalid HMAC, cipher or stretching parameters
- Validation: unusable keys, values or batch entries
- Derivation / cipher: failures inside the cryptographic pipeline

Errors raised by the underlying key-value store are NOT part of this
hierarchy. They belong to the store and pass through unchanged.
"""

from __future__ import annotations


class SecureStoreError(Exception):
    """Base class for all errors raised by SecureStore itself."""
    pass


class ConfigurationError(SecureStoreError, ValueError):
    """Raised when the resolved configuration cannot be used."""
    pass


class ValidationError(SecureStoreError, ValueError):
    """Raised when a key, value or batch entry is rejected."""
    pass


class StoreNotOpenError(SecureStoreError):
    """Raised when a data operation is issued on a store that is not open."""
    pass


class CryptoOperationError(SecureStoreError):
    """Raised when a cryptographic operation fails."""
    pass


class KeyDerivationError(CryptoOperationError):
    """Raised when the memory-hard stretching stage fails."""
    pass


class EncryptionError(CryptoOperationError):
    """Raised when a value cannot be encrypted."""
    pass


class DecryptionError(CryptoOperationError):
    """
    Raised when a stored value cannot be decrypted.

    Covers bad padding, truncated ciphertext and plaintext that does not
    decode as text. Never raised for storage failures.
    """
    pass
