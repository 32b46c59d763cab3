"""Tests for layered configuration and settings."""

import os
from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from securestore.core.config import (
    DEFAULT_SCRYPT_N,
    CipherConfig,
    KeyHmacConfig,
    LoggingConfig,
    ScryptOptions,
    SecureStoreSettings,
    StoreConfig,
    ValueScryptConfig,
    encode_material,
    resolve_config,
)
from securestore.core.exceptions import ConfigurationError


class TestFromMapping:
    """Tests for building configurations from nested mappings."""

    def test_snake_case_groups(self, options):
        """Test the canonical option layout."""
        config = StoreConfig.from_mapping(options)

        assert config.cipher.algorithm == "aes-192-cbc"
        assert config.key_hmac.secret_key == "keyHmac key"
        assert config.value_scrypt.derived_key_length == 24
        assert config.value_scrypt.options == ScryptOptions(n=1024, r=8, p=1)

    def test_camel_case_aliases(self):
        """Test the camelCase option names."""
        config = StoreConfig.from_mapping({
            "cipher": {"algorithm": "aes-128-cbc", "initializationVector": b"\x00" * 16},
            "keyHmac": {"algorithm": "sha256", "key": "k"},
            "valueHmac": {"algorithm": "sha256", "secretKey": "v"},
            "valueScrypt": {"keylen": 16, "salt": "s", "stretchingOptions": {"N": 2048, "blockSize": 4}},
        })

        assert config.cipher.iv == b"\x00" * 16
        assert config.key_hmac.secret_key == "k"
        assert config.value_hmac.secret_key == "v"
        assert config.value_scrypt.derived_key_length == 16
        assert config.value_scrypt.options == ScryptOptions(n=2048, r=4)

    def test_unknown_group_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown configuration group"):
            StoreConfig.from_mapping({"ciphr": {}})

    def test_unknown_field_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown key_hmac option"):
            StoreConfig.from_mapping({"key_hmac": {"algo": "sha256"}})

    def test_group_must_be_mapping(self):
        with pytest.raises(ConfigurationError):
            StoreConfig.from_mapping({"cipher": "aes-128-cbc"})

    def test_coerce(self, config):
        """Test coerce accepts configs, mappings and None."""
        assert StoreConfig.coerce(None) is None
        assert StoreConfig.coerce(config) is config
        assert StoreConfig.coerce({"cipher": {"algorithm": "aes-128-ecb"}}).cipher.algorithm == "aes-128-ecb"
        with pytest.raises(ConfigurationError):
            StoreConfig.coerce(["not", "a", "config"])


class TestResolveConfig:
    """Tests for three-level override resolution."""

    def test_operation_beats_call_beats_instance(self):
        instance = StoreConfig(key_hmac=KeyHmacConfig(algorithm="sha256", secret_key="instance"))
        call = StoreConfig(key_hmac=KeyHmacConfig(secret_key="call"))
        operation = StoreConfig(key_hmac=KeyHmacConfig(secret_key="operation"))

        assert resolve_config(instance).key_hmac.secret_key == "instance"
        assert resolve_config(instance, call).key_hmac.secret_key == "call"
        assert resolve_config(instance, call, operation).key_hmac.secret_key == "operation"
        assert resolve_config(instance, None, operation).key_hmac.secret_key == "operation"

    def test_merge_is_field_by_field(self):
        """Test that unset override fields inherit lower levels."""
        instance = StoreConfig(key_hmac=KeyHmacConfig(algorithm="sha512", secret_key="a", suffix="s"))
        call = StoreConfig(key_hmac=KeyHmacConfig(secret_key="b"))

        resolved = resolve_config(instance, call)

        assert resolved.key_hmac == KeyHmacConfig(algorithm="sha512", secret_key="b", suffix="s")

    def test_option_mappings_merge_key_by_key(self):
        instance = StoreConfig(cipher=CipherConfig(options={"padding": True, "extra": 1}))
        call = StoreConfig(cipher=CipherConfig(options={"padding": False}))

        resolved = resolve_config(instance, call)

        assert dict(resolved.cipher.options) == {"padding": False, "extra": 1}

    def test_scrypt_options_merge_field_by_field(self):
        instance = StoreConfig(value_scrypt=ValueScryptConfig(options=ScryptOptions(n=1024)))
        operation = StoreConfig(value_scrypt=ValueScryptConfig(options=ScryptOptions(r=4)))

        resolved = resolve_config(instance, None, operation)

        assert resolved.value_scrypt.options == ScryptOptions(n=1024, r=4)

    def test_resolution_does_not_mutate_inputs(self):
        instance = StoreConfig(key_hmac=KeyHmacConfig(secret_key="a"))
        resolve_config(instance, StoreConfig(key_hmac=KeyHmacConfig(secret_key="b")))

        assert instance.key_hmac.secret_key == "a"

    def test_resolution_never_validates(self):
        """Test that nonsense values merge without raising."""
        bad = StoreConfig(value_scrypt=ValueScryptConfig(derived_key_length=-1))
        assert resolve_config(StoreConfig(), bad).value_scrypt.derived_key_length == -1


class TestImmutability:
    """Tests for immutable configuration objects."""

    def test_groups_are_frozen(self, config):
        with pytest.raises(FrozenInstanceError):
            config.cipher.algorithm = "aes-256-cbc"

    def test_options_mapping_is_read_only(self):
        source = {"padding": True}
        cipher = CipherConfig(options=source)
        source["padding"] = False

        assert cipher.options["padding"] is True
        with pytest.raises(TypeError):
            cipher.options["padding"] = False

    def test_options_must_be_mapping(self):
        with pytest.raises(ConfigurationError):
            CipherConfig(options=["padding"])

    def test_repr_hides_secrets(self, config):
        text = repr(config)
        assert "keyHmac key" not in text
        assert "valueScrypt salt" not in text
        assert "secret_key=set" in text


class TestScryptOptions:
    def test_defaults(self):
        options = ScryptOptions()
        assert options.effective_n == DEFAULT_SCRYPT_N
        assert options.effective_r == 8
        assert options.effective_p == 1
        assert options.effective_maxmem == 32 * 1024 * 1024


class TestEncodeMaterial:
    def test_text_is_utf8(self):
        assert encode_material("clé", "f") == "clé".encode("utf-8")

    def test_bytes_like(self):
        assert encode_material(bytearray(b"ab"), "f") == b"ab"
        assert encode_material(memoryview(b"cd"), "f") == b"cd"

    def test_missing(self):
        with pytest.raises(ConfigurationError, match="key_hmac.secret_key is not configured"):
            encode_material(None, "key_hmac.secret_key")

    def test_wrong_type(self):
        with pytest.raises(ConfigurationError):
            encode_material(42, "f")


class TestLoggingConfig:
    def test_invalid_level(self):
        with pytest.raises(ConfigurationError):
            LoggingConfig(level="LOUD")

    def test_relative_log_dir(self):
        with pytest.raises(ConfigurationError):
            LoggingConfig(log_dir=Path("logs"))


class TestSecureStoreSettings:
    """Tests for environment-aware settings."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for key in list(os.environ):
            if key.startswith("SECURESTORE_"):
                monkeypatch.delenv(key)

    def test_defaults(self):
        settings = SecureStoreSettings.load()

        assert settings.defaults.cipher.algorithm is None
        assert settings.logging.level == "INFO"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SECURESTORE_CIPHER__ALGORITHM", "aes-256-cbc")
        monkeypatch.setenv("SECURESTORE_CIPHER__PADDING", "false")
        monkeypatch.setenv("SECURESTORE_KEY_HMAC__ALGORITHM", "sha256")
        monkeypatch.setenv("SECURESTORE_VALUE_SCRYPT__DERIVED_KEY_LENGTH", "32")
        monkeypatch.setenv("SECURESTORE_VALUE_SCRYPT__N", "2048")
        monkeypatch.setenv("SECURESTORE_LOGGING__LEVEL", "DEBUG")

        settings = SecureStoreSettings.load()

        assert settings.defaults.cipher.algorithm == "aes-256-cbc"
        assert settings.defaults.cipher.options["padding"] is False
        assert settings.defaults.key_hmac.algorithm == "sha256"
        assert settings.defaults.value_scrypt.derived_key_length == 32
        assert settings.defaults.value_scrypt.options.n == 2048
        assert settings.logging.level == "DEBUG"

    def test_secrets_ignored_from_env(self, monkeypatch):
        monkeypatch.setenv("SECURESTORE_KEY_HMAC__SECRET_KEY", "leaked")
        monkeypatch.setenv("SECURESTORE_VALUE_SCRYPT__SALT", "leaked")
        monkeypatch.setenv("SECURESTORE_CIPHER__IV", "leaked")

        settings = SecureStoreSettings.load()

        assert settings.defaults.key_hmac.secret_key is None
        assert settings.defaults.value_scrypt.salt is None
        assert settings.defaults.cipher.iv is None

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("SECURESTORE_VALUE_SCRYPT__N", "lots")
        with pytest.raises(ConfigurationError):
            SecureStoreSettings.load()

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("VAULTKV_CIPHER__ALGORITHM", "aes-128-ctr")
        assert SecureStoreSettings.load("VAULTKV").defaults.cipher.algorithm == "aes-128-ctr"

    def test_immutable(self):
        settings = SecureStoreSettings()
        with pytest.raises(AttributeError):
            settings._defaults = StoreConfig()

    def test_hash_identifies_settings(self):
        a = SecureStoreSettings(StoreConfig(cipher=CipherConfig(algorithm="aes-128-cbc")))
        b = SecureStoreSettings(StoreConfig(cipher=CipherConfig(algorithm="aes-256-cbc")))

        assert a.config_hash != b.config_hash
        assert a.config_hash in repr(a)

    def test_configure_logging(self, tmp_path):
        import logging

        settings = SecureStoreSettings(logging=LoggingConfig(
            level="WARNING", log_dir=tmp_path, enable_console=False, enable_file=True,
        ))
        logger = logging.getLogger("securestore")
        saved = list(logger.handlers)
        for handler in saved:
            logger.removeHandler(handler)
        try:
            settings.configure_logging()
            assert logger.level == logging.WARNING
            assert len(logger.handlers) == 1
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
            for handler in saved:
                logger.addHandler(handler)
            logger.propagate = True
            logger.setLevel(logging.NOTSET)
