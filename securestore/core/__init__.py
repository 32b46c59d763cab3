"""
Core module - Configuration, logging, errors and the encryption pipeline.
"""

from securestore.core.config import SecureStoreSettings, StoreConfig, resolve_config
from securestore.core.logging import get_secure_logger, SecureLogFilter

__all__ = ["SecureStoreSettings", "StoreConfig", "resolve_config", "get_secure_logger", "SecureLogFilter"]
