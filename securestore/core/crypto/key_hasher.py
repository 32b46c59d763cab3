"""
Storage Key Hashing
===================

Deterministic one-way transform from a logical key to the key used in the
underlying store.

    storage_key = HMAC(secret_key, logical_key || suffix)

Properties:
    - Same logical key + same key_hmac configuration = same storage key
    - No inverse: the store never sees the logical key
    - Changing the algorithm, secret or suffix orphans existing records
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Final, Mapping

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, hmac

from securestore.core.config import KeyHmacConfig, Material, encode_material
from securestore.core.exceptions import ConfigurationError

# Digest names as accepted by OpenSSL / Node.js createHmac()
HMAC_ALGORITHMS: Final[Mapping[str, type[hashes.HashAlgorithm]]] = MappingProxyType({
    "md5": hashes.MD5,
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
    "sha512-224": hashes.SHA512_224,
    "sha512-256": hashes.SHA512_256,
    "sha3-224": hashes.SHA3_224,
    "sha3-256": hashes.SHA3_256,
    "sha3-384": hashes.SHA3_384,
    "sha3-512": hashes.SHA3_512,
    "sm3": hashes.SM3,
})


def get_hash_algorithm(name: Any, field_name: str) -> hashes.HashAlgorithm:
    """
    Look up a digest algorithm by name.

    Raises:
        ConfigurationError: If the name is missing or not supported
    """
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"{field_name} is not configured")
    algorithm_cls = HMAC_ALGORITHMS.get(name.lower())
    if algorithm_cls is None:
        raise ConfigurationError(f"Unsupported HMAC algorithm: {name!r}")
    return algorithm_cls()


def compute_hmac(
    data: bytes,
    algorithm: Any,
    secret_key: Material | None,
    group: str,
) -> bytes:
    """
    Compute HMAC over data with the named digest and secret.

    Args:
        data: Message bytes
        algorithm: Digest name, e.g. "sha512"
        secret_key: HMAC key (bytes or UTF-8 text)
        group: Configuration group name for error messages

    Returns:
        The raw digest

    Raises:
        ConfigurationError: If the algorithm or secret is missing/invalid
    """
    digest = get_hash_algorithm(algorithm, f"{group}.algorithm")
    key = encode_material(secret_key, f"{group}.secret_key")

    try:
        mac = hmac.HMAC(key, digest)
    except UnsupportedAlgorithm as e:
        raise ConfigurationError(
            f"HMAC algorithm {algorithm!r} is not supported by this OpenSSL build"
        ) from e
    mac.update(data)
    return mac.finalize()


def hash_key(logical_key: bytes | str, config: KeyHmacConfig) -> bytes:
    """
    Compute the storage key for a logical key.

    Args:
        logical_key: The caller's key (text is UTF-8 encoded)
        config: Resolved key_hmac configuration

    Returns:
        The storage key (HMAC digest)

    Raises:
        ConfigurationError: If the key_hmac configuration is incomplete
    """
    if isinstance(logical_key, str):
        logical_key = logical_key.encode("utf-8")

    data = logical_key
    if config.suffix is not None:
        data = logical_key + encode_material(config.suffix, "key_hmac.suffix")

    return compute_hmac(data, config.algorithm, config.secret_key, "key_hmac")
