# vault_protocol/wire/codec.py
"""
VAULT Envelope Codec

Turns (file bytes, file name) into an Envelope safe to hand to an
untrusted content store, and reverses it with tamper detection.

    encode: plaintext + name ──AEAD(key, fresh nonce, aad=header||name)──▶ bytes
    decode: bytes ──parse──▶ Envelope ──verify tag with *stored* aad──▶ plaintext

Security notes:
    - Nonce drawn from os.urandom on every encode; never a counter.
    - Decode fails closed: any tag failure raises IntegrityError and no
      plaintext leaves this module.
    - The stored name is UTF-8 decoded only after the tag verified.
    - Key material is never logged or included in exceptions.

Usage:
    from vault_protocol.config import EncryptionConfig
    from vault_protocol.wire import EnvelopeCodec

    codec = EnvelopeCodec(EncryptionConfig.generate())
    blob = codec.encode(b"%PDF-1.7 ...", "diploma.pdf")
    decoded = codec.decode(blob)
    decoded.content, decoded.name, decoded.metadata

Updated: 2025-02-03
Version: 1.0.0
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict

from cryptography.exceptions import InvalidTag

from ..config import EncryptionConfig
from ..errors import IntegrityError, MalformedEnvelopeError
from ..suites import get_suite
from .envelope import Envelope, EnvelopeMetadata, TAG_SIZE


logger = logging.getLogger("vault-protocol.codec")


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class DecodedFile:
    """Authenticated plaintext recovered from an envelope."""
    content: bytes
    name: str
    metadata: EnvelopeMetadata


# =============================================================================
# EnvelopeCodec
# =============================================================================

class EnvelopeCodec:
    """
    Authenticated-encryption envelope codec.

    The codec holds one immutable EncryptionConfig and no other state, so a
    single instance is safe to share between threads.
    """

    def __init__(self, config: EncryptionConfig):
        """
        Initialize codec.

        Args:
            config: Key + default algorithm. The key length is checked
                against the suite here, once.
        """
        suite = get_suite(config.algorithm_id)
        if len(config.key) != suite.key_size:
            raise ValueError(f"Encryption key must be {suite.key_size} bytes")
        self._config = config

    @property
    def algorithm_id(self) -> int:
        return self._config.algorithm_id

    # =========================================================================
    # Encode
    # =========================================================================

    def encode(self, plaintext: bytes, name: str) -> bytes:
        """
        Encrypt a file into envelope bytes.

        Args:
            plaintext: File content (may be empty)
            name: Original file name, bound as associated data

        Returns:
            Serialized envelope
        """
        if not isinstance(plaintext, (bytes, bytearray, memoryview)):
            raise TypeError(f"plaintext must be bytes, got {type(plaintext).__name__}")
        if not name:
            raise ValueError("name must not be empty")

        plaintext = bytes(plaintext)
        suite = get_suite(self._config.algorithm_id)

        # Header fields are fixed before encryption so they can be bound
        # into the associated data.
        skeleton = Envelope(
            algorithm_id=suite.id,
            nonce=os.urandom(suite.nonce_size),
            auth_tag=bytes(TAG_SIZE),
            name_bytes=name.encode("utf-8"),
            plaintext_length=len(plaintext),
            created_at=int(time.time() * 1000),
            ciphertext=bytes(len(plaintext)),
        )

        ct_with_tag = suite.cipher(self._config.key).encrypt(
            skeleton.nonce, plaintext, skeleton.associated_data,
        )

        envelope = Envelope(
            algorithm_id=skeleton.algorithm_id,
            nonce=skeleton.nonce,
            auth_tag=ct_with_tag[-TAG_SIZE:],
            name_bytes=skeleton.name_bytes,
            plaintext_length=skeleton.plaintext_length,
            created_at=skeleton.created_at,
            ciphertext=ct_with_tag[:-TAG_SIZE],
        )
        wire = envelope.to_bytes()

        logger.debug(
            "Encrypted %s: %d bytes -> %d byte envelope (%s)",
            name, len(plaintext), len(wire), suite.name,
        )
        return wire

    # =========================================================================
    # Decode
    # =========================================================================

    def decode(self, data: bytes) -> DecodedFile:
        """
        Parse, authenticate and decrypt envelope bytes.

        Raises:
            MalformedEnvelopeError: Layout cannot be parsed
            IntegrityError: Tag did not verify (wrong key, tampering)
        """
        envelope = Envelope.from_bytes(data)
        return self.open(envelope)

    def open(self, envelope: Envelope) -> DecodedFile:
        """Authenticate and decrypt an already parsed Envelope."""
        suite = envelope.suite
        if len(self._config.key) != suite.key_size:
            raise IntegrityError(f"Key size does not fit {suite.name}")

        try:
            plaintext = suite.cipher(self._config.key).decrypt(
                envelope.nonce,
                envelope.ciphertext + envelope.auth_tag,
                envelope.associated_data,
            )
        except InvalidTag:
            logger.warning(
                "Envelope authentication failed (%s, %d byte name, %d byte ciphertext)",
                suite.name, len(envelope.name_bytes), len(envelope.ciphertext),
            )
            raise IntegrityError("Envelope authentication failed") from None

        if len(plaintext) != envelope.plaintext_length:
            raise IntegrityError(
                f"Plaintext length {len(plaintext)} != recorded {envelope.plaintext_length}"
            )

        try:
            name = envelope.name_bytes.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEnvelopeError(f"Stored name is not UTF-8: {e}") from e

        logger.debug("Decrypted %s: %d bytes", name, len(plaintext))
        return DecodedFile(content=plaintext, name=name, metadata=envelope.metadata())

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def self_test(self) -> bool:
        """Round-trip a fixed sample under the configured key."""
        sample = b"This is a test file for encryption"
        try:
            decoded = self.decode(self.encode(sample, "test.txt"))
        except (IntegrityError, MalformedEnvelopeError) as e:
            logger.error("Encryption self-test failed: %s", e)
            return False
        return decoded.content == sample and decoded.name == "test.txt"

    def info(self) -> Dict[str, Any]:
        """Describe the codec configuration without key material."""
        suite = get_suite(self._config.algorithm_id)
        return {
            "algorithm": suite.name,
            "algorithm_id": suite.id,
            "key_length": len(self._config.key),
            "nonce_length": suite.nonce_size,
            "key_source": self._config.key_source,
        }
