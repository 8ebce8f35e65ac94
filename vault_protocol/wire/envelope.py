# vault_protocol/wire/envelope.py
"""
VAULT Wire Format: Envelope v1

Self-describing authenticated-encryption container stored at a content
address. Everything needed to decrypt is inside, except the key.

Wire Format v1 (big-endian):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ Header (25B fixed)                                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │  magic "VENV" (4B) │ version (1B) │ algorithm_id (1B)               │
    │  nonce_len (1B)    │ name_len (2B)                                  │
    │  plaintext_len (8B)│ created_at ms (8B)                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │  nonce (12-16B)    ← size fixed by algorithm_id                     │
    │  tag (16B)         ← AEAD authentication tag                        │
    │  name (NB)         ← file name, UTF-8, authenticated not encrypted  │
    │  ciphertext (NB)   ← same length as the plaintext                   │
    └─────────────────────────────────────────────────────────────────────┘

Associated data = header (25B) || name. The tag therefore covers the
header, the name and the ciphertext as one unit.

Legacy format (version 0):
    Blobs written by the first VAULT service are a UTF-8 JSON document
    with base64 ``encryptedContent`` / ``iv`` / ``authTag`` fields. Their
    associated data is the file name alone. They are read, never written.

Usage:
    env = Envelope.from_bytes(blob)
    aad = env.associated_data
    wire = env.to_bytes()

Updated: 2025-02-03
Version: 1.0.0
"""

from __future__ import annotations

import base64
import binascii
import json
import struct
from dataclasses import dataclass
from typing import Any, Dict

from ..errors import MalformedEnvelopeError
from ..suites import get_suite, get_suite_by_name, DEFAULT_SUITE_ID


# =============================================================================
# Constants
# =============================================================================

MAGIC = b"VENV"
FORMAT_VERSION = 1
LEGACY_FORMAT_VERSION = 0

# magic(4) + version(1) + algorithm_id(1) + nonce_len(1) + name_len(2) +
# plaintext_len(8) + created_at(8) = 25
HEADER_FORMAT = ">4sBBBHQQ"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)

TAG_SIZE = 16
MAX_NAME_BYTES = 0xFFFF


# =============================================================================
# Metadata
# =============================================================================

@dataclass(frozen=True)
class EnvelopeMetadata:
    """Non-secret envelope facts returned alongside decoded content."""
    algorithm: str
    algorithm_id: int
    plaintext_length: int
    envelope_size: int
    created_at: int          # Unix milliseconds
    format_version: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algorithm": self.algorithm,
            "algorithm_id": self.algorithm_id,
            "plaintext_length": self.plaintext_length,
            "envelope_size": self.envelope_size,
            "created_at": self.created_at,
            "format_version": self.format_version,
        }


# =============================================================================
# Envelope
# =============================================================================

@dataclass(frozen=True)
class Envelope:
    """
    Encrypted file envelope.

    Attributes:
        algorithm_id: AEAD suite (see suites.py)
        nonce: Per-envelope random nonce
        auth_tag: AEAD tag (16B)
        name_bytes: File name as stored (UTF-8 bytes, associated data)
        plaintext_length: Original file size
        created_at: Creation time, Unix milliseconds
        ciphertext: Encrypted content
        version: Wire format version (1, or 0 for legacy JSON)
    """

    algorithm_id: int
    nonce: bytes
    auth_tag: bytes
    name_bytes: bytes
    plaintext_length: int
    created_at: int
    ciphertext: bytes
    version: int = FORMAT_VERSION

    def __post_init__(self):
        """Validate envelope fields."""
        if self.version not in (FORMAT_VERSION, LEGACY_FORMAT_VERSION):
            raise MalformedEnvelopeError(f"Unsupported envelope version: {self.version}")

        suite = get_suite(self.algorithm_id)

        if len(self.nonce) != suite.nonce_size:
            raise MalformedEnvelopeError(
                f"nonce must be {suite.nonce_size}B for {suite.name}, got {len(self.nonce)}"
            )

        if len(self.auth_tag) != TAG_SIZE:
            raise MalformedEnvelopeError(f"tag must be {TAG_SIZE}B, got {len(self.auth_tag)}")

        if not self.name_bytes:
            raise MalformedEnvelopeError("name must not be empty")

        if len(self.name_bytes) > MAX_NAME_BYTES:
            raise MalformedEnvelopeError(f"name exceeds {MAX_NAME_BYTES}B")

        if len(self.ciphertext) != self.plaintext_length:
            raise MalformedEnvelopeError(
                f"ciphertext length {len(self.ciphertext)} != plaintext length {self.plaintext_length}"
            )

        if not (0 <= self.created_at <= 0xFFFFFFFFFFFFFFFF):
            raise MalformedEnvelopeError(f"created_at must be uint64, got {self.created_at}")

    # =========================================================================
    # Associated Data
    # =========================================================================

    def header_bytes(self) -> bytes:
        """Fixed 25-byte header."""
        return struct.pack(
            HEADER_FORMAT,
            MAGIC,
            FORMAT_VERSION,
            self.algorithm_id,
            len(self.nonce),
            len(self.name_bytes),
            self.plaintext_length,
            self.created_at,
        )

    @property
    def associated_data(self) -> bytes:
        """Bytes bound into the tag: header || name (legacy: name only)."""
        if self.version == LEGACY_FORMAT_VERSION:
            return self.name_bytes
        return self.header_bytes() + self.name_bytes

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_bytes(self) -> bytes:
        """
        Serialize envelope to wire format.

        Wire: [header:25][nonce:12-16][tag:16][name:N][ciphertext:M]
        """
        if self.version == LEGACY_FORMAT_VERSION:
            return self._to_legacy_json()
        return b"".join([
            self.header_bytes(),
            self.nonce,
            self.auth_tag,
            self.name_bytes,
            self.ciphertext,
        ])

    @classmethod
    def from_bytes(cls, data: bytes) -> Envelope:
        """
        Deserialize envelope from wire format.

        Raises:
            MalformedEnvelopeError: On any layout violation
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise MalformedEnvelopeError(f"Envelope must be bytes, got {type(data).__name__}")
        data = bytes(data)

        if data[:1] == b"{":
            return cls.from_legacy_json(data)

        if len(data) < HEADER_SIZE:
            raise MalformedEnvelopeError(f"Data too short for header: {len(data)} < {HEADER_SIZE}")

        (
            magic, version, algorithm_id, nonce_len, name_len,
            plaintext_len, created_at,
        ) = struct.unpack(HEADER_FORMAT, data[:HEADER_SIZE])

        if magic != MAGIC:
            raise MalformedEnvelopeError("Bad envelope magic")

        if version != FORMAT_VERSION:
            raise MalformedEnvelopeError(f"Unsupported envelope version: {version}")

        suite = get_suite(algorithm_id)
        if nonce_len != suite.nonce_size:
            raise MalformedEnvelopeError(
                f"nonce_len {nonce_len} does not match {suite.name} ({suite.nonce_size})"
            )

        expected = HEADER_SIZE + nonce_len + TAG_SIZE + name_len + plaintext_len
        if len(data) != expected:
            raise MalformedEnvelopeError(f"Envelope size mismatch: {len(data)} != {expected}")

        offset = HEADER_SIZE

        nonce = data[offset:offset + nonce_len]
        offset += nonce_len

        tag = data[offset:offset + TAG_SIZE]
        offset += TAG_SIZE

        name_bytes = data[offset:offset + name_len]
        offset += name_len

        ciphertext = data[offset:]

        return cls(
            algorithm_id=algorithm_id,
            nonce=nonce,
            auth_tag=tag,
            name_bytes=name_bytes,
            plaintext_length=plaintext_len,
            created_at=created_at,
            ciphertext=ciphertext,
        )

    # =========================================================================
    # Legacy JSON
    # =========================================================================

    @classmethod
    def from_legacy_json(cls, data: bytes) -> Envelope:
        """Parse a version-0 JSON envelope."""
        try:
            obj = json.loads(data.decode("utf-8"))
            ciphertext = base64.b64decode(obj["encryptedContent"], validate=True)
            nonce = base64.b64decode(obj["iv"], validate=True)
            tag = base64.b64decode(obj["authTag"], validate=True)
            name = obj["fileName"]
            if not isinstance(name, str):
                raise TypeError("fileName must be a string")
            name_bytes = name.encode("utf-8")
            original_size = int(obj.get("originalSize", len(ciphertext)))
            timestamp = int(obj.get("timestamp", 0))
            algorithm = obj.get("algorithm", "aes-256-gcm")
        except (ValueError, OverflowError, KeyError, TypeError, binascii.Error) as e:
            raise MalformedEnvelopeError(f"Invalid legacy envelope: {e}") from e

        try:
            suite = get_suite_by_name(algorithm)
        except (ValueError, AttributeError):
            suite = get_suite(DEFAULT_SUITE_ID)

        return cls(
            algorithm_id=suite.id,
            nonce=nonce,
            auth_tag=tag,
            name_bytes=name_bytes,
            plaintext_length=original_size,
            created_at=timestamp,
            ciphertext=ciphertext,
            version=LEGACY_FORMAT_VERSION,
        )

    def _to_legacy_json(self) -> bytes:
        return json.dumps({
            "encryptedContent": base64.b64encode(self.ciphertext).decode("ascii"),
            "iv": base64.b64encode(self.nonce).decode("ascii"),
            "authTag": base64.b64encode(self.auth_tag).decode("ascii"),
            "algorithm": self.suite.name.lower(),
            "fileName": self.name_bytes.decode("utf-8"),
            "originalSize": self.plaintext_length,
            "encryptedSize": len(self.ciphertext),
            "timestamp": self.created_at,
        }).encode("utf-8")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def suite(self):
        """Get suite configuration."""
        return get_suite(self.algorithm_id)

    @property
    def total_size(self) -> int:
        """Total wire size in bytes."""
        if self.version == LEGACY_FORMAT_VERSION:
            return len(self._to_legacy_json())
        return HEADER_SIZE + len(self.nonce) + TAG_SIZE + len(self.name_bytes) + len(self.ciphertext)

    def metadata(self) -> EnvelopeMetadata:
        return EnvelopeMetadata(
            algorithm=self.suite.name,
            algorithm_id=self.algorithm_id,
            plaintext_length=self.plaintext_length,
            envelope_size=self.total_size,
            created_at=self.created_at,
            format_version=self.version,
        )

    def __repr__(self) -> str:
        return (
            f"Envelope(v{self.version}, {self.suite.name}, "
            f"name={len(self.name_bytes)}B, ciphertext={len(self.ciphertext)}B)"
        )
