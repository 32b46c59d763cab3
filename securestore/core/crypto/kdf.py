"""
Cipher Key Derivation
=====================

Per-record symmetric key derivation from a logical key and secret material.

    password   = HMAC(value_hmac.secret_key, prefix || logical_key)
    cipher_key = scrypt(password, salt, derived_key_length, n, r, p)

Properties:
    - Deterministic: same logical key + same configuration = same key
    - Memory-hard: scrypt makes brute force of the HMAC secret expensive
    - Transient: keys are returned in a bytearray so callers can wipe them

scrypt runs in the event loop's default executor so a slow derivation
does not block other in-flight operations.
"""

from __future__ import annotations

import asyncio
import logging

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from securestore.core.config import (
    ScryptOptions,
    ValueHmacConfig,
    ValueScryptConfig,
    encode_material,
)
from securestore.core.crypto.key_hasher import compute_hmac
from securestore.core.exceptions import ConfigurationError, KeyDerivationError

_log = logging.getLogger("securestore.kdf")


def scrypt_memory_required(n: int, r: int, p: int) -> int:
    """Bytes of working memory scrypt needs for the given parameters."""
    return 128 * r * (n + 2) + 128 * r * p


def _check_scrypt_parameters(length: int, options: ScryptOptions) -> tuple[int, int, int]:
    """
    Validate stretching parameters before handing them to OpenSSL.

    Raises:
        KeyDerivationError: If any parameter is out of range
    """
    n, r, p = options.effective_n, options.effective_r, options.effective_p

    if isinstance(length, bool) or not isinstance(length, int) or length <= 0:
        raise KeyDerivationError(f"Derived key length must be a positive integer, got {length!r}")
    for name, value in (("n", n), ("r", r), ("p", p)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise KeyDerivationError(f"scrypt {name} must be an integer, got {value!r}")
    if n < 2 or n & (n - 1) != 0:
        raise KeyDerivationError(f"scrypt n must be a power of 2 greater than 1, got {n}")
    if r < 1 or p < 1:
        raise KeyDerivationError(f"scrypt r and p must be at least 1, got r={r}, p={p}")

    required = scrypt_memory_required(n, r, p)
    if required > options.effective_maxmem:
        raise KeyDerivationError(
            f"scrypt needs {required} bytes of memory, above maxmem "
            f"{options.effective_maxmem}"
        )

    return n, r, p


def derive_password(logical_key: bytes, config: ValueHmacConfig) -> bytes:
    """
    Compute the HMAC password stage.

    Raises:
        ConfigurationError: If the value_hmac configuration is incomplete
    """
    data = logical_key
    if config.prefix is not None:
        data = encode_material(config.prefix, "value_hmac.prefix") + logical_key

    return compute_hmac(data, config.algorithm, config.secret_key, "value_hmac")


def derive_cipher_key_sync(
    logical_key: bytes,
    value_hmac: ValueHmacConfig,
    value_scrypt: ValueScryptConfig,
) -> bytearray:
    """
    Derive the cipher key for a logical key (blocking).

    Args:
        logical_key: The caller's key as bytes
        value_hmac: Resolved value_hmac configuration
        value_scrypt: Resolved value_scrypt configuration

    Returns:
        The cipher key in a wipeable buffer

    Raises:
        ConfigurationError: If HMAC secret/algorithm, salt or length is missing
        KeyDerivationError: If the stretching parameters are invalid or
            the backend refuses them
    """
    if value_scrypt.derived_key_length is None:
        raise ConfigurationError("value_scrypt.derived_key_length is not configured")
    salt = encode_material(value_scrypt.salt, "value_scrypt.salt")

    n, r, p = _check_scrypt_parameters(
        value_scrypt.derived_key_length,
        value_scrypt.options or ScryptOptions(),
    )

    password = derive_password(logical_key, value_hmac)

    try:
        kdf = Scrypt(
            salt=salt,
            length=value_scrypt.derived_key_length,
            n=n,
            r=r,
            p=p,
        )
        return bytearray(kdf.derive(password))
    except (ValueError, MemoryError, UnsupportedAlgorithm) as e:
        raise KeyDerivationError(f"scrypt derivation failed: {e}") from e


async def derive_cipher_key(
    logical_key: bytes,
    value_hmac: ValueHmacConfig,
    value_scrypt: ValueScryptConfig,
) -> bytearray:
    """
    Derive the cipher key for a logical key without blocking the event loop.

    See derive_cipher_key_sync() for arguments and errors.
    """
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(
            None, derive_cipher_key_sync, logical_key, value_hmac, value_scrypt
        )
    except KeyDerivationError as e:
        _log.warning("Cipher key derivation failed: %s", e)
        raise
