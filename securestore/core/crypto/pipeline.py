"""
Record Encryption Pipeline
==========================

Combines key derivation and value encryption for one record.

Encryption Flow:
    logical_key
        ↓ HMAC(value_hmac) → password
        ↓ scrypt(value_scrypt) → cipher_key
    plaintext
        ↓ ValueCipher(cipher, cipher_key)
    ciphertext

Decryption runs the same derivation and the inverse cipher. The cipher key
is wiped as soon as the cipher step finishes, whether it succeeded or not.
"""

from __future__ import annotations

import asyncio

from securestore.core.config import StoreConfig
from securestore.core.crypto.kdf import derive_cipher_key
from securestore.core.crypto.value_cipher import ValueCipher
from securestore.core.memory.zeroization import ZeroizeContext


async def seal_value(logical_key: bytes, plaintext: bytes, config: StoreConfig) -> bytes:
    """
    Encrypt a value for storage under its logical key.

    Args:
        logical_key: The caller's key as bytes
        plaintext: The value as bytes
        config: Fully resolved configuration

    Returns:
        Ciphertext to persist

    Raises:
        ConfigurationError: Incomplete or invalid configuration
        KeyDerivationError: Invalid stretching parameters
        EncryptionError: Cipher failure
    """
    # Validate the cipher before paying for scrypt
    cipher = ValueCipher(config.cipher)
    cipher_key = await derive_cipher_key(logical_key, config.value_hmac, config.value_scrypt)

    loop = asyncio.get_running_loop()
    with ZeroizeContext(cipher_key):
        return await loop.run_in_executor(None, cipher.encrypt, plaintext, cipher_key)


async def open_value(logical_key: bytes, ciphertext: bytes, config: StoreConfig) -> bytes:
    """
    Decrypt a stored value.

    Args:
        logical_key: The caller's key as bytes
        ciphertext: Bytes read from the underlying store
        config: Fully resolved configuration

    Returns:
        Plaintext bytes

    Raises:
        ConfigurationError: Incomplete or invalid configuration
        KeyDerivationError: Invalid stretching parameters
        DecryptionError: Truncated ciphertext, bad padding or wrong key
    """
    cipher = ValueCipher(config.cipher)
    cipher_key = await derive_cipher_key(logical_key, config.value_hmac, config.value_scrypt)

    loop = asyncio.get_running_loop()
    with ZeroizeContext(cipher_key):
        return await loop.run_in_executor(None, cipher.decrypt, bytes(ciphertext), cipher_key)
