# vault_protocol/wire/__init__.py
"""
VAULT Wire Format

Envelope layout and the codec that seals / opens it.

Modules:
    envelope: Envelope v1 binary layout (+ legacy JSON reader)
    codec: EnvelopeCodec (AEAD encode / decode)

Usage:
    from vault_protocol.wire import EnvelopeCodec, Envelope

    blob = codec.encode(content, "report.pdf")
    env = Envelope.from_bytes(blob)
    decoded = codec.decode(blob)
"""

from .envelope import (
    Envelope,
    EnvelopeMetadata,
    MAGIC,
    FORMAT_VERSION,
    LEGACY_FORMAT_VERSION,
    HEADER_SIZE,
    TAG_SIZE,
)

from .codec import (
    EnvelopeCodec,
    DecodedFile,
)

__all__ = [
    "Envelope",
    "EnvelopeMetadata",
    "MAGIC",
    "FORMAT_VERSION",
    "LEGACY_FORMAT_VERSION",
    "HEADER_SIZE",
    "TAG_SIZE",
    "EnvelopeCodec",
    "DecodedFile",
]
