"""
Value Encoding
==============

Output representation selected by the caller on read.
"""

from __future__ import annotations

from enum import Enum
from typing import Union

from securestore.core.exceptions import DecryptionError


class ValueEncoding(Enum):
    """How a decrypted value is returned to the caller."""

    BYTES = "bytes"
    TEXT = "utf8"

    @classmethod
    def for_flag(cls, as_bytes: bool) -> ValueEncoding:
        return cls.BYTES if as_bytes else cls.TEXT

    def decode(self, plaintext: bytes) -> Union[bytes, str]:
        """
        Convert decrypted bytes to the selected representation.

        Raises:
            DecryptionError: If TEXT is selected and the plaintext is not UTF-8
        """
        if self is ValueEncoding.BYTES:
            return plaintext
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted value is not valid UTF-8 text") from e
