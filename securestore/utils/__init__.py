"""
Utils module - Boundary normalization helpers.
"""

from securestore.utils.encoding import ValueEncoding
from securestore.utils.validators import to_bytes, validate_key, validate_value

__all__ = [
    "ValueEncoding",
    "to_bytes",
    "validate_key",
    "validate_value",
]
