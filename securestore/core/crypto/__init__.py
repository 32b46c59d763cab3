"""
SecureStore Cryptographic Core
==============================

Key and value transforms applied to every record.

Architecture:
    1. Key hasher: HMAC(logical key || suffix) → storage key
    2. Key deriver: scrypt(HMAC(prefix || logical key)) → cipher key
    3. Value cipher: block/stream cipher under the cipher key

Security Properties:
    - Storage keys are deterministic and irreversible
    - Cipher keys are per record, derived on demand and never persisted
    - Cipher keys are wiped after use

WARNING: Value encryption is NOT authenticated and the IV is taken from
         configuration. See value_cipher for details.
"""

from securestore.core.crypto.kdf import derive_cipher_key, derive_cipher_key_sync
from securestore.core.crypto.key_hasher import HMAC_ALGORITHMS, compute_hmac, hash_key
from securestore.core.crypto.pipeline import open_value, seal_value
from securestore.core.crypto.value_cipher import CIPHER_ALGORITHMS, CipherSpec, ValueCipher

__all__ = [
    "CIPHER_ALGORITHMS",
    "CipherSpec",
    "HMAC_ALGORITHMS",
    "ValueCipher",
    "compute_hmac",
    "derive_cipher_key",
    "derive_cipher_key_sync",
    "hash_key",
    "open_value",
    "seal_value",
]
