# tests/test_config.py
"""Configuration: key parsing, suite selection, environment loading."""

import hashlib
import logging

import pytest

from vault_protocol.config import (
    DEFAULT_CHAIN_ID,
    DEFAULT_IPFS_API_URL,
    EncryptionConfig,
    KEY_SOURCE_ENVIRONMENT,
    KEY_SOURCE_GENERATED,
    VaultConfig,
    parse_key,
)
from vault_protocol.errors import ConfigurationError, UnsupportedAlgorithmError
from vault_protocol.suites import get_suite, get_suite_by_name


HEX_KEY = "ab" * 32


# =============================================================================
# Key Parsing
# =============================================================================

def test_hex_key_used_directly():
    assert parse_key(HEX_KEY) == bytes.fromhex(HEX_KEY)


def test_passphrase_is_hashed():
    assert parse_key("correct horse") == hashlib.sha256(b"correct horse").digest()


def test_64_chars_non_hex_is_hashed():
    secret = "z" * 64
    assert parse_key(secret) == hashlib.sha256(secret.encode()).digest()


def test_empty_key_rejected():
    with pytest.raises(ConfigurationError):
        parse_key("")


def test_short_key_rejected():
    with pytest.raises(ConfigurationError):
        EncryptionConfig(key=b"short")


def test_key_not_in_repr():
    config = EncryptionConfig.from_secret(HEX_KEY)
    assert HEX_KEY not in repr(config)
    assert repr(config.key) not in repr(config)


# =============================================================================
# Suites
# =============================================================================

def test_suite_aliases():
    assert get_suite_by_name("AES-256-GCM").id == 0x01
    assert get_suite_by_name("chacha20poly1305").id == 0x02


def test_unknown_suite_name():
    with pytest.raises(ValueError):
        get_suite_by_name("rot13")


def test_unknown_suite_id():
    with pytest.raises(UnsupportedAlgorithmError):
        get_suite(0x55)


# =============================================================================
# Environment
# =============================================================================

def test_encryption_from_env():
    config = EncryptionConfig.from_env({
        "FILE_ENCRYPTION_KEY": HEX_KEY,
        "FILE_ENCRYPTION_ALGORITHM": "chacha20-poly1305",
    })
    assert config.key == bytes.fromhex(HEX_KEY)
    assert config.algorithm_id == 0x02
    assert config.key_source == KEY_SOURCE_ENVIRONMENT


def test_missing_key_generates_and_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="vault-protocol.config"):
        config = EncryptionConfig.from_env({})
    assert config.key_source == KEY_SOURCE_GENERATED
    assert len(config.key) == 32
    assert "FILE_ENCRYPTION_KEY" in caplog.text
    assert config.key.hex() not in caplog.text


def test_bad_algorithm_env():
    with pytest.raises(ConfigurationError):
        EncryptionConfig.from_env({"FILE_ENCRYPTION_KEY": HEX_KEY, "FILE_ENCRYPTION_ALGORITHM": "des"})


def test_vault_config_from_env():
    config = VaultConfig.from_env({
        "FILE_ENCRYPTION_KEY": HEX_KEY,
        "QUORUM_RPC_URL": "http://node:22000",
        "QUORUM_CHAIN_ID": "10",
        "CERTIFICATE_CONTRACT_ADDRESS": "0x" + "a" * 40,
        "ISSUER_PRIVATE_KEY": "0x" + "b" * 64,
        "IPFS_GATEWAY_URL": "https://gw.example",
        "VAULT_REQUEST_TIMEOUT": "5",
    })
    assert config.rpc_url == "http://node:22000"
    assert config.chain_id == 10
    assert config.contract_address == "0x" + "a" * 40
    assert config.ipfs_api_url == DEFAULT_IPFS_API_URL
    assert config.ipfs_gateway_url == "https://gw.example"
    assert config.request_timeout == 5.0
    assert "b" * 64 not in repr(config)
    config.require_ledger()


def test_vault_config_defaults():
    config = VaultConfig.from_env({"FILE_ENCRYPTION_KEY": HEX_KEY})
    assert config.chain_id == DEFAULT_CHAIN_ID
    assert config.contract_address is None
    with pytest.raises(ConfigurationError):
        config.require_ledger()


def test_invalid_chain_id():
    with pytest.raises(ConfigurationError):
        VaultConfig.from_env({"FILE_ENCRYPTION_KEY": HEX_KEY, "QUORUM_CHAIN_ID": "main"})
