"""
Value Encryption
================

Symmetric encryption of stored values under a per-record cipher key.

Algorithms are named the OpenSSL way:
    - aes-{128,192,256}-{cbc,ecb,ctr}
    - camellia-{128,192,256}-{cbc,ecb,ctr}
    - chacha20 (16-byte IV: 4-byte counter || 12-byte nonce)

CBC and ECB use PKCS7 padding unless the "padding" option is False.

WARNING:
    - These modes are NOT authenticated. Corruption is only detected when
      it breaks the padding; CTR/ChaCha20 detect nothing.
    - In CBC, changes outside the last two ciphertext blocks leave the
      padding intact and decrypt to altered plaintext without any error.
    - The IV comes from configuration and is reused for every record
      encrypted under it. Distinct per-record keys limit the damage, but
      (key, IV) pairs repeat when the same logical key is rewritten.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from types import MappingProxyType
from typing import Callable, Final, Mapping, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import (
    BlockCipherAlgorithm,
    Cipher,
    CipherContext,
    algorithms,
    modes,
)

try:
    from cryptography.hazmat.decrepit.ciphers.algorithms import Camellia
except ImportError:
    # Releases that predate the move still ship it with the primitives
    Camellia = algorithms.Camellia

from securestore.core.config import CipherConfig, encode_material
from securestore.core.exceptions import (
    ConfigurationError,
    DecryptionError,
    EncryptionError,
)

BytesLike = bytes | bytearray | memoryview


def _block_cipher(
    algorithm_cls: type[BlockCipherAlgorithm],
    mode_name: str,
    key: BytesLike,
    iv: Optional[bytes],
) -> Cipher:
    algorithm = algorithm_cls(key)
    if mode_name == "cbc":
        return Cipher(algorithm, modes.CBC(iv))
    if mode_name == "ctr":
        return Cipher(algorithm, modes.CTR(iv))
    return Cipher(algorithm, modes.ECB())


def _chacha20(key: BytesLike, iv: Optional[bytes]) -> Cipher:
    return Cipher(algorithms.ChaCha20(key, iv), mode=None)


@dataclass(frozen=True, slots=True)
class CipherSpec:
    """
    Static description of a supported cipher.

    Attributes:
        name: Canonical OpenSSL-style name
        key_size: Required key length in bytes
        iv_size: Required IV length in bytes (0 = no IV)
        block_size: Block size in bits for padded modes, 0 otherwise
        build: Factory returning a cryptography Cipher for (key, iv)
    """

    name: str
    key_size: int
    iv_size: int
    block_size: int
    build: Callable[[BytesLike, Optional[bytes]], Cipher]

    @property
    def is_padded(self) -> bool:
        return self.block_size > 0


def _build_registry() -> dict[str, CipherSpec]:
    registry: dict[str, CipherSpec] = {}
    families = (("aes", algorithms.AES), ("camellia", Camellia))

    for family, algorithm_cls in families:
        for bits in (128, 192, 256):
            for mode_name in ("cbc", "ecb", "ctr"):
                name = f"{family}-{bits}-{mode_name}"
                registry[name] = CipherSpec(
                    name=name,
                    key_size=bits // 8,
                    iv_size=0 if mode_name == "ecb" else 16,
                    block_size=0 if mode_name == "ctr" else 128,
                    build=partial(_block_cipher, algorithm_cls, mode_name),
                )

    registry["chacha20"] = CipherSpec(
        name="chacha20",
        key_size=32,
        iv_size=16,
        block_size=0,
        build=_chacha20,
    )
    return registry


CIPHER_ALGORITHMS: Final[Mapping[str, CipherSpec]] = MappingProxyType(_build_registry())

# Short names accepted by OpenSSL
_ALIASES: Final[Mapping[str, str]] = MappingProxyType({
    "aes128": "aes-128-cbc",
    "aes192": "aes-192-cbc",
    "aes256": "aes-256-cbc",
    "camellia128": "camellia-128-cbc",
    "camellia192": "camellia-192-cbc",
    "camellia256": "camellia-256-cbc",
})

_AUTHENTICATED_MODES: Final[tuple[str, ...]] = ("-gcm", "-ccm", "-ocb", "-siv", "poly1305")


def get_cipher_spec(name: object) -> CipherSpec:
    """
    Look up a cipher by name.

    Raises:
        ConfigurationError: If the name is missing, unknown or authenticated
    """
    if not isinstance(name, str) or not name:
        raise ConfigurationError("cipher.algorithm is not configured")

    normalized = name.lower()
    normalized = _ALIASES.get(normalized, normalized)

    spec = CIPHER_ALGORITHMS.get(normalized)
    if spec is not None:
        return spec

    if any(marker in normalized for marker in _AUTHENTICATED_MODES):
        raise ConfigurationError(
            f"Authenticated cipher {name!r} is not supported: "
            "no authentication tag is stored with the value"
        )
    raise ConfigurationError(f"Unsupported cipher algorithm: {name!r}")


class ValueCipher:
    """
    Encrypts and decrypts values for one resolved cipher configuration.

    Usage:
        cipher = ValueCipher(config.cipher)
        ciphertext = cipher.encrypt(b"value", cipher_key)
        plaintext = cipher.decrypt(ciphertext, cipher_key)

    Raises on construction:
        ConfigurationError: Unknown algorithm, bad IV, bad options
    """

    __slots__ = ("_spec", "_iv", "_padding")

    def __init__(self, config: CipherConfig) -> None:
        self._spec = get_cipher_spec(config.algorithm)

        if self._spec.iv_size:
            iv = encode_material(config.iv, "cipher.iv")
            if len(iv) != self._spec.iv_size:
                raise ConfigurationError(
                    f"cipher.iv must be {self._spec.iv_size} bytes for "
                    f"{self._spec.name}, got {len(iv)}"
                )
            self._iv: Optional[bytes] = iv
        else:
            self._iv = None

        options = config.options or {}
        use_padding = options.get("padding", True)
        if not isinstance(use_padding, bool):
            raise ConfigurationError("cipher.options.padding must be a bool")
        self._padding = use_padding and self._spec.is_padded

    @property
    def algorithm(self) -> str:
        """Canonical algorithm name."""
        return self._spec.name

    @property
    def key_size(self) -> int:
        """Required cipher key length in bytes."""
        return self._spec.key_size

    def _context(self, key: BytesLike, encrypt: bool) -> CipherContext:
        if len(key) != self._spec.key_size:
            raise ConfigurationError(
                f"Cipher key is {len(key)} bytes but {self._spec.name} needs "
                f"{self._spec.key_size}; check value_scrypt.derived_key_length"
            )
        try:
            cipher = self._spec.build(key, self._iv)
            return cipher.encryptor() if encrypt else cipher.decryptor()
        except UnsupportedAlgorithm as e:
            raise ConfigurationError(
                f"{self._spec.name} is not supported by this OpenSSL build"
            ) from e

    def encrypt(self, plaintext: bytes, key: BytesLike) -> bytes:
        """
        Encrypt a value.

        Args:
            plaintext: Value bytes (may be empty)
            key: Per-record cipher key

        Returns:
            Ciphertext (update output followed by the finalization block)

        Raises:
            ConfigurationError: If the key length does not fit the algorithm
            EncryptionError: If unpadded input is not block aligned
        """
        encryptor = self._context(key, encrypt=True)

        try:
            data = plaintext
            if self._padding:
                padder = padding.PKCS7(self._spec.block_size).padder()
                data = padder.update(plaintext) + padder.finalize()

            return encryptor.update(data) + encryptor.finalize()
        except ValueError as e:
            raise EncryptionError(f"{self._spec.name} encryption failed: {e}") from e

    def decrypt(self, ciphertext: bytes, key: BytesLike) -> bytes:
        """
        Decrypt a value.

        Args:
            ciphertext: Stored ciphertext
            key: Per-record cipher key

        Returns:
            Plaintext bytes

        Raises:
            ConfigurationError: If the key length does not fit the algorithm
            DecryptionError: On truncated ciphertext or invalid padding
        """
        decryptor = self._context(key, encrypt=False)

        try:
            data = decryptor.update(ciphertext) + decryptor.finalize()

            if self._padding:
                unpadder = padding.PKCS7(self._spec.block_size).unpadder()
                data = unpadder.update(data) + unpadder.finalize()
        except ValueError as e:
            # One message for both length and padding failures
            raise DecryptionError(f"{self._spec.name} decryption failed") from e

        return data

    def __repr__(self) -> str:
        return f"ValueCipher(algorithm={self._spec.name!r}, padding={self._padding})"
