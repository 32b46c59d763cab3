"""
Secure Configuration Module
===========================

Provides the layered, immutable configuration used by every SecureStore
operation, plus environment-aware settings for the process.

Layering:
    Each operation runs under a configuration resolved from three levels:

        per-operation override  >  per-call override  >  instance default

    Levels are merged field-by-field (and key-by-key inside option mappings).
    A field left as None at a higher level inherits the lower level's value.

Security Features:
- Immutable configuration after initialization
- Secrets, salts and IVs are never read from the environment
- Safe representations that never print key material
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final, Mapping, Optional, Union

from securestore.core.exceptions import ConfigurationError

# Secret material may be supplied as raw bytes or as UTF-8 text
Material = Union[bytes, bytearray, memoryview, str]

# scrypt defaults (same as OpenSSL / Node.js crypto.scrypt)
DEFAULT_SCRYPT_N: Final[int] = 16384
DEFAULT_SCRYPT_R: Final[int] = 8
DEFAULT_SCRYPT_P: Final[int] = 1
DEFAULT_SCRYPT_MAXMEM: Final[int] = 32 * 1024 * 1024  # 32 MiB

# Fields that must never be loaded from the environment
_SENSITIVE_FIELDS: Final[frozenset[str]] = frozenset({
    "secret_key", "salt", "iv", "prefix", "suffix",
})
_SENSITIVE_TOKENS: Final[frozenset[str]] = frozenset({
    "password", "secret", "token", "credential", "salt",
})

_FIELD_ALIASES: Final[Mapping[str, str]] = MappingProxyType({
    "key": "secret_key",
    "secretKey": "secret_key",
    "initializationVector": "iv",
    "initialization_vector": "iv",
    "algorithmOptions": "options",
    "algorithm_options": "options",
    "stretchingOptions": "options",
    "stretching_options": "options",
    "keylen": "derived_key_length",
    "derivedKeyLength": "derived_key_length",
    # scrypt option names used by OpenSSL / Node.js
    "N": "n",
    "cost": "n",
    "blockSize": "r",
    "block_size": "r",
    "parallelization": "p",
})

_GROUP_ALIASES: Final[Mapping[str, str]] = MappingProxyType({
    "keyHmac": "key_hmac",
    "valueHmac": "value_hmac",
    "valueScrypt": "value_scrypt",
})


def _is_sensitive_key(key: str) -> bool:
    """Check if a dotted configuration key names secret material."""
    field_name = key.rsplit(".", 1)[-1]
    if field_name in _SENSITIVE_FIELDS:
        return True
    return any(token in _SENSITIVE_TOKENS for token in field_name.split("_"))


def encode_material(value: Optional[Material], field_name: str) -> bytes:
    """
    Convert configured secret material to bytes.

    Args:
        value: Bytes-like or text value (text is UTF-8 encoded)
        field_name: Dotted field name used in error messages

    Returns:
        The material as immutable bytes

    Raises:
        ConfigurationError: If the value is missing or of an unusable type
    """
    if value is None:
        raise ConfigurationError(f"{field_name} is not configured")
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise ConfigurationError(
        f"{field_name} must be bytes or str, got {type(value).__name__}"
    )


def _merge_mappings(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge two option mappings; None values in override are skipped."""
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = _merge_mappings(current, value)
        else:
            merged[key] = value
    return merged


def _overlay(base: Any, override: Any) -> Any:
    """
    Overlay one configuration dataclass onto another, field by field.

    Fields that are None in the override keep the base value. Nested
    dataclasses and mappings are merged recursively.
    """
    if override is None:
        return base
    if base is None:
        return override

    changes: dict[str, Any] = {}
    for f in fields(override):
        value = getattr(override, f.name)
        if value is None:
            continue
        current = getattr(base, f.name)
        if is_dataclass(value) and is_dataclass(current):
            value = _overlay(current, value)
        elif isinstance(value, Mapping) and isinstance(current, Mapping):
            value = _merge_mappings(current, value)
        changes[f.name] = value

    return replace(base, **changes) if changes else base


def _freeze_options(instance: Any) -> None:
    """Replace a mutable options mapping with a read-only view."""
    options = instance.options
    if options is not None and not isinstance(options, MappingProxyType):
        if not isinstance(options, Mapping):
            raise ConfigurationError(
                f"options must be a mapping, got {type(options).__name__}"
            )
        object.__setattr__(instance, "options", MappingProxyType(dict(options)))


def _build_group(cls: type, data: Any, group_name: str) -> Any:
    """Build a configuration group from a mapping, resolving field aliases."""
    if data is None:
        return cls()
    if isinstance(data, cls):
        return data
    if not isinstance(data, Mapping):
        raise ConfigurationError(
            f"{group_name} must be a mapping or {cls.__name__}, "
            f"got {type(data).__name__}"
        )

    known = {f.name for f in fields(cls)}
    kwargs: dict[str, Any] = {}
    for raw_name, value in data.items():
        name = _FIELD_ALIASES.get(raw_name, raw_name)
        if name not in known:
            raise ConfigurationError(f"Unknown {group_name} option: {raw_name!r}")
        kwargs[name] = value

    if cls is ValueScryptConfig and isinstance(kwargs.get("options"), Mapping):
        kwargs["options"] = _build_group(
            ScryptOptions, kwargs["options"], f"{group_name}.options"
        )

    return cls(**kwargs)


@dataclass(frozen=True, slots=True)
class CipherConfig:
    """
    Symmetric cipher used for value encryption.

    Attributes:
        algorithm: OpenSSL-style name, e.g. "aes-256-cbc"
        iv: Initialization vector (reused for every record it applies to)
        options: Algorithm options; recognized key is "padding" (bool)
    """

    algorithm: Optional[str] = None
    iv: Optional[Material] = None
    options: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        _freeze_options(self)

    def __repr__(self) -> str:
        """Safe representation without exposing the IV."""
        iv_state = "set" if self.iv is not None else None
        return f"CipherConfig(algorithm={self.algorithm!r}, iv={iv_state})"


@dataclass(frozen=True, slots=True)
class KeyHmacConfig:
    """Keyed hash that turns a logical key into a storage key."""

    algorithm: Optional[str] = None
    secret_key: Optional[Material] = None
    suffix: Optional[Material] = None

    def __repr__(self) -> str:
        """Safe representation without exposing the secret."""
        return (
            f"KeyHmacConfig(algorithm={self.algorithm!r}, "
            f"secret_key={'set' if self.secret_key is not None else None}, "
            f"suffix={'set' if self.suffix is not None else None})"
        )


@dataclass(frozen=True, slots=True)
class ValueHmacConfig:
    """Keyed hash producing the password stage of cipher-key derivation."""

    algorithm: Optional[str] = None
    secret_key: Optional[Material] = None
    prefix: Optional[Material] = None

    def __repr__(self) -> str:
        """Safe representation without exposing the secret."""
        return (
            f"ValueHmacConfig(algorithm={self.algorithm!r}, "
            f"secret_key={'set' if self.secret_key is not None else None}, "
            f"prefix={'set' if self.prefix is not None else None})"
        )


@dataclass(frozen=True, slots=True)
class ScryptOptions:
    """scrypt cost parameters. Unset fields fall back to the defaults."""

    n: Optional[int] = None
    r: Optional[int] = None
    p: Optional[int] = None
    maxmem: Optional[int] = None

    @property
    def effective_n(self) -> int:
        return DEFAULT_SCRYPT_N if self.n is None else self.n

    @property
    def effective_r(self) -> int:
        return DEFAULT_SCRYPT_R if self.r is None else self.r

    @property
    def effective_p(self) -> int:
        return DEFAULT_SCRYPT_P if self.p is None else self.p

    @property
    def effective_maxmem(self) -> int:
        return DEFAULT_SCRYPT_MAXMEM if self.maxmem is None else self.maxmem


@dataclass(frozen=True, slots=True)
class ValueScryptConfig:
    """Memory-hard stretching stage of cipher-key derivation."""

    derived_key_length: Optional[int] = None
    salt: Optional[Material] = None
    options: Optional[ScryptOptions] = None

    def __repr__(self) -> str:
        """Safe representation without exposing the salt."""
        return (
            f"ValueScryptConfig(derived_key_length={self.derived_key_length!r}, "
            f"salt={'set' if self.salt is not None else None}, "
            f"options={self.options!r})"
        )


@dataclass(frozen=True, slots=True)
class StoreConfig:
    """
    Complete configuration for one SecureStore operation.

    The same type is used at every level (instance, call, operation);
    unset fields mean "inherit from the level below".

    Usage:
        defaults = StoreConfig.from_mapping({
            "cipher": {"algorithm": "aes-192-cbc", "iv": iv},
            "key_hmac": {"algorithm": "sha512", "secret_key": "k1"},
            "value_hmac": {"algorithm": "sha512", "secret_key": "k2"},
            "value_scrypt": {"derived_key_length": 24, "salt": "salt"},
        })
        effective = resolve_config(defaults, call_options, operation_options)
    """

    cipher: CipherConfig = field(default_factory=CipherConfig)
    key_hmac: KeyHmacConfig = field(default_factory=KeyHmacConfig)
    value_hmac: ValueHmacConfig = field(default_factory=ValueHmacConfig)
    value_scrypt: ValueScryptConfig = field(default_factory=ValueScryptConfig)

    def merged(self, override: Optional[StoreConfig]) -> StoreConfig:
        """Return a new configuration with override's set fields applied."""
        return _overlay(self, override)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> StoreConfig:
        """
        Build a configuration from nested mappings.

        Group and field names may use snake_case or camelCase (keyHmac, secretKey, ...).

        Raises:
            ConfigurationError: On unknown group or field names
        """
        groups: dict[str, Any] = {}
        for raw_name, value in data.items():
            name = _GROUP_ALIASES.get(raw_name, raw_name)
            group_cls = _GROUPS.get(name)
            if group_cls is None:
                raise ConfigurationError(f"Unknown configuration group: {raw_name!r}")
            groups[name] = _build_group(group_cls, value, name)
        return cls(**groups)

    @classmethod
    def coerce(cls, value: Union[StoreConfig, Mapping[str, Any], None]) -> Optional[StoreConfig]:
        """Accept a StoreConfig, a mapping, or None."""
        if value is None or isinstance(value, StoreConfig):
            return value
        if isinstance(value, Mapping):
            return cls.from_mapping(value)
        raise ConfigurationError(
            f"options must be a StoreConfig or mapping, got {type(value).__name__}"
        )


_GROUPS: Final[Mapping[str, type]] = MappingProxyType({
    "cipher": CipherConfig,
    "key_hmac": KeyHmacConfig,
    "value_hmac": ValueHmacConfig,
    "value_scrypt": ValueScryptConfig,
})


def resolve_config(
    instance: StoreConfig,
    call: Optional[StoreConfig] = None,
    operation: Optional[StoreConfig] = None,
) -> StoreConfig:
    """
    Resolve the effective configuration for one operation.

    Precedence: operation > call > instance. Never raises.
    """
    return instance.merged(call).merged(operation)


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Immutable logging configuration."""

    level: str = "INFO"
    log_dir: Optional[Path] = None
    max_file_size_bytes: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5
    enable_console: bool = True
    enable_file: bool = False
    enable_json: bool = False

    def __post_init__(self) -> None:
        """Validate logging settings."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            raise ConfigurationError(f"Invalid log level: {self.level}")
        if self.log_dir is not None and not Path(self.log_dir).is_absolute():
            raise ConfigurationError(f"log_dir must be an absolute path: {self.log_dir}")


class SecureStoreSettings:
    """
    Process-level settings: instance default configuration plus logging.

    Usage:
        settings = SecureStoreSettings.load()
        settings.configure_logging()
        store = SecureStore.from_settings(MemoryStore(), settings, options=secrets)

    Environment variables are prefixed with SECURESTORE_ and use double
    underscores between group and field:

        SECURESTORE_CIPHER__ALGORITHM=aes-256-cbc
        SECURESTORE_VALUE_SCRYPT__DERIVED_KEY_LENGTH=32
        SECURESTORE_VALUE_SCRYPT__N=16384
        SECURESTORE_LOGGING__LEVEL=DEBUG

    Secret material (secret keys, salts, IVs, prefixes, suffixes) is
    ignored when found in the environment.
    """

    __slots__ = ("_defaults", "_logging", "_frozen", "_config_hash")

    def __init__(
        self,
        defaults: Optional[StoreConfig] = None,
        logging: Optional[LoggingConfig] = None,
    ) -> None:
        """Initialize settings. Use SecureStoreSettings.load() for env overrides."""
        object.__setattr__(self, "_frozen", False)
        object.__setattr__(self, "_defaults", defaults or StoreConfig())
        object.__setattr__(self, "_logging", logging or LoggingConfig())
        object.__setattr__(self, "_config_hash", self._compute_hash())
        object.__setattr__(self, "_frozen", True)

    def _compute_hash(self) -> str:
        """Compute a hash of the settings for identification in logs."""
        config_str = f"{self._defaults!r}|{self._logging!r}"
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @property
    def defaults(self) -> StoreConfig:
        """Get the instance default store configuration."""
        return self._defaults

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration."""
        return self._logging

    @property
    def config_hash(self) -> str:
        """Get the settings identification hash."""
        return self._config_hash

    @classmethod
    def load(cls, env_prefix: str = "SECURESTORE") -> SecureStoreSettings:
        """
        Load settings with environment variable overrides.

        Args:
            env_prefix: Prefix for environment variables (default: SECURESTORE)

        Returns:
            Configured SecureStoreSettings instance

        Raises:
            ConfigurationError: If an override has an invalid value
        """
        env = cls._parse_env_overrides(env_prefix)

        try:
            cipher_kwargs: dict[str, Any] = {}
            if "cipher.algorithm" in env:
                cipher_kwargs["algorithm"] = env["cipher.algorithm"]
            if "cipher.padding" in env:
                cipher_kwargs["options"] = {"padding": _parse_bool(env["cipher.padding"])}

            scrypt_kwargs: dict[str, Any] = {}
            if "value_scrypt.derived_key_length" in env:
                scrypt_kwargs["derived_key_length"] = int(env["value_scrypt.derived_key_length"])
            scrypt_options = {
                name: int(env[f"value_scrypt.{name}"])
                for name in ("n", "r", "p", "maxmem")
                if f"value_scrypt.{name}" in env
            }
            if scrypt_options:
                scrypt_kwargs["options"] = ScryptOptions(**scrypt_options)

            logging_kwargs: dict[str, Any] = {}
            if "logging.level" in env:
                logging_kwargs["level"] = env["logging.level"]
            if "logging.log_dir" in env:
                logging_kwargs["log_dir"] = Path(env["logging.log_dir"])
            for flag in ("enable_console", "enable_file", "enable_json"):
                if f"logging.{flag}" in env:
                    logging_kwargs[flag] = _parse_bool(env[f"logging.{flag}"])
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment override: {e}") from e

        defaults = StoreConfig(
            cipher=CipherConfig(**cipher_kwargs),
            key_hmac=KeyHmacConfig(algorithm=env.get("key_hmac.algorithm")),
            value_hmac=ValueHmacConfig(algorithm=env.get("value_hmac.algorithm")),
            value_scrypt=ValueScryptConfig(**scrypt_kwargs),
        )

        return cls(
            defaults=defaults,
            logging=LoggingConfig(**logging_kwargs) if logging_kwargs else None,
        )

    @staticmethod
    def _parse_env_overrides(prefix: str) -> dict[str, str]:
        """Parse environment variables with the given prefix."""
        overrides: dict[str, str] = {}
        prefix_upper = f"{prefix.upper()}_"

        for key, value in os.environ.items():
            if key.startswith(prefix_upper):
                # SECURESTORE_GROUP__FIELD -> group.field
                config_key = key[len(prefix_upper):].lower().replace("__", ".")

                # SECURITY: secret material is code-only
                if _is_sensitive_key(config_key):
                    continue

                overrides[config_key] = value

        return overrides

    def configure_logging(self) -> None:
        """Configure the package logger from the logging settings."""
        from securestore.core.logging import get_secure_logger

        get_secure_logger(
            "securestore",
            log_dir=self._logging.log_dir,
            level=self._logging.level,
            enable_console=self._logging.enable_console,
            enable_file=self._logging.enable_file,
            enable_json=self._logging.enable_json,
            max_file_size=self._logging.max_file_size_bytes,
            backup_count=self._logging.backup_count,
        )

    def __repr__(self) -> str:
        """Safe string representation without sensitive data."""
        return f"SecureStoreSettings(hash={self._config_hash})"

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification after initialization."""
        if hasattr(self, "_frozen") and self._frozen:
            raise AttributeError("SecureStoreSettings is immutable after initialization")
        super().__setattr__(name, value)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"not a boolean: {value!r}")
