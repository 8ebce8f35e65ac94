# vault_protocol/config.py
"""
VAULT Protocol Configuration

Immutable configuration values, built explicitly or from the environment.
Nothing here is a module-level global: callers construct a VaultConfig
once and pass it (or its EncryptionConfig) to the components that need it.

Environment:
    FILE_ENCRYPTION_KEY           64 hex chars, or any string (SHA-256 hashed).
                                  Missing: a random key is generated and a
                                  warning is logged.
    FILE_ENCRYPTION_ALGORITHM     aes-256-gcm (default) | chacha20-poly1305
    QUORUM_RPC_URL                http://127.0.0.1:8545
    QUORUM_CHAIN_ID               1337
    CERTIFICATE_CONTRACT_ADDRESS  CertificateManager address
    ISSUER_PRIVATE_KEY            Signing key for ledger writes
    IPFS_API_URL                  http://127.0.0.1:5001
    IPFS_GATEWAY_URL              http://127.0.0.1:8080
    VAULT_REQUEST_TIMEOUT         Seconds, advisory (default 30)

Usage:
    config = VaultConfig.from_env()
    codec = EnvelopeCodec(config.encryption)

Updated: 2025-02-03
Version: 1.0.0
"""

from __future__ import annotations

import hashlib
import logging
import os
import secrets
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .errors import ConfigurationError
from .suites import DEFAULT_SUITE_ID, get_suite, get_suite_by_name


logger = logging.getLogger("vault-protocol.config")


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_RPC_URL = "http://127.0.0.1:8545"
DEFAULT_CHAIN_ID = 1337
DEFAULT_IPFS_API_URL = "http://127.0.0.1:5001"
DEFAULT_IPFS_GATEWAY_URL = "http://127.0.0.1:8080"
DEFAULT_REQUEST_TIMEOUT = 30.0

KEY_SOURCE_EXPLICIT = "explicit"
KEY_SOURCE_ENVIRONMENT = "environment"
KEY_SOURCE_GENERATED = "generated"


def parse_key(secret: str) -> bytes:
    """
    Turn a configured secret into a 32-byte key.

    A 64-character hex string is used as-is; anything else is hashed with
    SHA-256 so passphrases still yield a full-size key.
    """
    if not secret:
        raise ConfigurationError("Encryption key must not be empty")
    if len(secret) == 64:
        try:
            return bytes.fromhex(secret)
        except ValueError:
            pass
    return hashlib.sha256(secret.encode("utf-8")).digest()


# =============================================================================
# EncryptionConfig
# =============================================================================

@dataclass(frozen=True)
class EncryptionConfig:
    """
    Process-wide symmetric key and default AEAD suite.

    Attributes:
        key: 32-byte secret (excluded from repr)
        algorithm_id: Suite used for new envelopes
        key_source: explicit | environment | generated
    """
    key: bytes = field(repr=False)
    algorithm_id: int = DEFAULT_SUITE_ID
    key_source: str = KEY_SOURCE_EXPLICIT

    def __post_init__(self):
        suite = get_suite(self.algorithm_id)
        if not isinstance(self.key, bytes) or len(self.key) != suite.key_size:
            raise ConfigurationError(f"Encryption key must be exactly {suite.key_size} bytes")

    @classmethod
    def generate(cls, algorithm_id: int = DEFAULT_SUITE_ID) -> EncryptionConfig:
        """Fresh random key (tests, first run)."""
        return cls(
            key=secrets.token_bytes(32),
            algorithm_id=algorithm_id,
            key_source=KEY_SOURCE_GENERATED,
        )

    @classmethod
    def from_secret(
        cls,
        secret: str,
        algorithm_id: int = DEFAULT_SUITE_ID,
        key_source: str = KEY_SOURCE_EXPLICIT,
    ) -> EncryptionConfig:
        return cls(key=parse_key(secret), algorithm_id=algorithm_id, key_source=key_source)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> EncryptionConfig:
        """Read FILE_ENCRYPTION_KEY / FILE_ENCRYPTION_ALGORITHM."""
        env = os.environ if environ is None else environ

        algorithm = env.get("FILE_ENCRYPTION_ALGORITHM")
        try:
            algorithm_id = get_suite_by_name(algorithm).id if algorithm else DEFAULT_SUITE_ID
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        secret = env.get("FILE_ENCRYPTION_KEY")
        if not secret:
            logger.warning(
                "FILE_ENCRYPTION_KEY not set; generated a random key for this process. "
                "Envelopes written now cannot be decrypted after restart. "
                "Create a persistent key with `vault-protocol keygen`."
            )
            return cls.generate(algorithm_id)

        return cls.from_secret(secret, algorithm_id, KEY_SOURCE_ENVIRONMENT)


# =============================================================================
# VaultConfig
# =============================================================================

@dataclass(frozen=True)
class VaultConfig:
    """Complete configuration for the production clients."""
    encryption: EncryptionConfig
    rpc_url: str = DEFAULT_RPC_URL
    chain_id: int = DEFAULT_CHAIN_ID
    contract_address: Optional[str] = None
    private_key: Optional[str] = field(default=None, repr=False)
    ipfs_api_url: str = DEFAULT_IPFS_API_URL
    ipfs_gateway_url: str = DEFAULT_IPFS_GATEWAY_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> VaultConfig:
        env = os.environ if environ is None else environ

        try:
            chain_id = int(env.get("QUORUM_CHAIN_ID", DEFAULT_CHAIN_ID))
            timeout = float(env.get("VAULT_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        return cls(
            encryption=EncryptionConfig.from_env(env),
            rpc_url=env.get("QUORUM_RPC_URL", DEFAULT_RPC_URL),
            chain_id=chain_id,
            contract_address=env.get("CERTIFICATE_CONTRACT_ADDRESS") or None,
            private_key=env.get("ISSUER_PRIVATE_KEY") or None,
            ipfs_api_url=env.get("IPFS_API_URL", DEFAULT_IPFS_API_URL),
            ipfs_gateway_url=env.get("IPFS_GATEWAY_URL", DEFAULT_IPFS_GATEWAY_URL),
            request_timeout=timeout,
        )

    def require_ledger(self) -> None:
        """Fail early when ledger settings are incomplete."""
        if not self.contract_address:
            raise ConfigurationError(
                "CERTIFICATE_CONTRACT_ADDRESS is not set; deploy CertificateManager first"
            )
