# vault_protocol/suites.py
"""
VAULT Protocol AEAD Suites

Defines the authenticated-encryption constructions an envelope may name
in its ``algorithm_id`` byte. The id travels inside every envelope so the
decoder never has to guess.

Suite Selection:
    - Suite 0x01: AES-256-GCM, 128-bit nonce (default)
    - Suite 0x02: ChaCha20-Poly1305, 96-bit nonce

Usage:
    from vault_protocol.suites import get_suite, DEFAULT_SUITE_ID

    suite = get_suite(DEFAULT_SUITE_ID)
    print(suite.nonce_size)  # 16

Updated: 2025-02-03
Version: 1.0.0
"""

from typing import Dict
from dataclasses import dataclass

from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .errors import UnsupportedAlgorithmError


# =============================================================================
# Suite Definitions
# =============================================================================

@dataclass(frozen=True)
class Suite:
    """AEAD suite."""
    id: int
    name: str
    key_size: int            # Bytes
    nonce_size: int          # Bytes, drawn fresh per envelope
    tag_size: int            # Bytes
    aead: type               # pyca/cryptography AEAD class

    def cipher(self, key: bytes):
        """Instantiate the AEAD primitive for ``key``."""
        return self.aead(key)


SUITES: Dict[int, Suite] = {
    0x01: Suite(
        id=0x01,
        name="AES-256-GCM",
        key_size=32,
        nonce_size=16,
        tag_size=16,
        aead=AESGCM,
    ),
    0x02: Suite(
        id=0x02,
        name="ChaCha20-Poly1305",
        key_size=32,
        nonce_size=12,
        tag_size=16,
        aead=ChaCha20Poly1305,
    ),
}

DEFAULT_SUITE_ID = 0x01

# Spellings accepted from configuration
_SUITE_ALIASES: Dict[str, int] = {
    "aes-256-gcm": 0x01,
    "aes256gcm": 0x01,
    "chacha20-poly1305": 0x02,
    "chacha20poly1305": 0x02,
}


def get_suite(suite_id: int) -> Suite:
    """
    Get suite by ID.

    Args:
        suite_id: Suite identifier (0x01, 0x02)

    Returns:
        Suite instance

    Raises:
        UnsupportedAlgorithmError: If suite_id is unknown
    """
    if suite_id not in SUITES:
        raise UnsupportedAlgorithmError(suite_id)
    return SUITES[suite_id]


def get_suite_by_name(name: str) -> Suite:
    """Resolve a suite from its configured name (case-insensitive)."""
    key = name.strip().lower()
    if key not in _SUITE_ALIASES:
        raise ValueError(f"Unknown algorithm: {name!r}. Valid: {sorted(_SUITE_ALIASES)}")
    return SUITES[_SUITE_ALIASES[key]]
