# tests/test_envelope.py
"""
VAULT Envelope Wire Format Tests

Categories:
  E1. Layout (header size, field offsets, serialization)
  E2. Parsing failures (magic, version, algorithm, lengths)
  E3. Legacy JSON envelopes
"""

import base64
import json
import struct

import pytest

from vault_protocol.errors import MalformedEnvelopeError, UnsupportedAlgorithmError
from vault_protocol.wire import (
    Envelope,
    FORMAT_VERSION,
    HEADER_SIZE,
    LEGACY_FORMAT_VERSION,
    MAGIC,
    TAG_SIZE,
)


def make_envelope(**overrides) -> Envelope:
    fields = dict(
        algorithm_id=0x01,
        nonce=b"\x01" * 16,
        auth_tag=b"\x02" * TAG_SIZE,
        name_bytes=b"report.pdf",
        plaintext_length=5,
        created_at=1_700_000_000_000,
        ciphertext=b"\x03" * 5,
    )
    fields.update(overrides)
    return Envelope(**fields)


# =============================================================================
# E1. Layout
# =============================================================================

def test_header_is_25_bytes():
    assert HEADER_SIZE == 25


def test_to_bytes_layout():
    env = make_envelope()
    wire = env.to_bytes()

    assert wire[:4] == MAGIC
    assert wire[4] == FORMAT_VERSION
    assert wire[5] == 0x01
    assert wire[6] == 16
    assert struct.unpack(">H", wire[7:9])[0] == len(b"report.pdf")
    assert struct.unpack(">Q", wire[9:17])[0] == 5
    assert struct.unpack(">Q", wire[17:25])[0] == 1_700_000_000_000

    offset = HEADER_SIZE
    assert wire[offset:offset + 16] == b"\x01" * 16
    offset += 16
    assert wire[offset:offset + TAG_SIZE] == b"\x02" * TAG_SIZE
    offset += TAG_SIZE
    assert wire[offset:offset + 10] == b"report.pdf"
    assert wire[offset + 10:] == b"\x03" * 5

    assert len(wire) == env.total_size


def test_from_bytes_restores_fields():
    env = make_envelope(algorithm_id=0x02, nonce=b"\x09" * 12)
    assert Envelope.from_bytes(env.to_bytes()) == env


def test_associated_data_is_header_and_name():
    env = make_envelope()
    assert env.associated_data == env.to_bytes()[:HEADER_SIZE] + b"report.pdf"


def test_empty_plaintext_allowed():
    env = make_envelope(plaintext_length=0, ciphertext=b"")
    assert Envelope.from_bytes(env.to_bytes()).ciphertext == b""


def test_metadata():
    meta = make_envelope().metadata()
    assert meta.algorithm == "AES-256-GCM"
    assert meta.plaintext_length == 5
    assert meta.format_version == FORMAT_VERSION
    assert meta.to_dict()["envelope_size"] == meta.envelope_size


# =============================================================================
# E2. Parsing Failures
# =============================================================================

def test_construct_rejects_wrong_nonce_size():
    with pytest.raises(MalformedEnvelopeError):
        make_envelope(nonce=b"\x01" * 12)


def test_construct_rejects_empty_name():
    with pytest.raises(MalformedEnvelopeError):
        make_envelope(name_bytes=b"")


def test_construct_rejects_length_mismatch():
    with pytest.raises(MalformedEnvelopeError):
        make_envelope(plaintext_length=6)


def test_short_data():
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_bytes(MAGIC + b"\x01")


def test_bad_magic():
    wire = bytearray(make_envelope().to_bytes())
    wire[0:4] = b"XXXX"
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_bytes(bytes(wire))


def test_unknown_version():
    wire = bytearray(make_envelope().to_bytes())
    wire[4] = 9
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_bytes(bytes(wire))


def test_unknown_algorithm():
    wire = bytearray(make_envelope().to_bytes())
    wire[5] = 0x7F
    with pytest.raises(UnsupportedAlgorithmError) as exc:
        Envelope.from_bytes(bytes(wire))
    assert exc.value.algorithm_id == 0x7F


def test_truncated_body():
    wire = make_envelope().to_bytes()
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_bytes(wire[:-1])


def test_trailing_bytes():
    wire = make_envelope().to_bytes()
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_bytes(wire + b"\x00")


def test_non_bytes_input():
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_bytes("not bytes")


# =============================================================================
# E3. Legacy JSON
# =============================================================================

def legacy_document(**overrides) -> bytes:
    doc = {
        "encryptedContent": base64.b64encode(b"\x03" * 5).decode(),
        "iv": base64.b64encode(b"\x01" * 16).decode(),
        "authTag": base64.b64encode(b"\x02" * 16).decode(),
        "algorithm": "aes-256-gcm",
        "fileName": "report.pdf",
        "originalSize": 5,
        "encryptedSize": 5,
        "timestamp": 1700000000000,
    }
    doc.update(overrides)
    return json.dumps(doc).encode()


def test_legacy_json_detected():
    env = Envelope.from_bytes(legacy_document())
    assert env.version == LEGACY_FORMAT_VERSION
    assert env.name_bytes == b"report.pdf"
    assert env.created_at == 1_700_000_000_000
    assert env.associated_data == b"report.pdf"


def test_legacy_json_missing_field():
    doc = json.loads(legacy_document())
    del doc["authTag"]
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_bytes(json.dumps(doc).encode())


def test_legacy_json_bad_base64():
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_bytes(legacy_document(iv="***"))


def test_legacy_json_not_json():
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_bytes(b"{not json")


def test_legacy_json_oversized_number():
    data = legacy_document().replace(b'"originalSize": 5', b'"originalSize": 1e400')
    assert b"1e400" in data
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_bytes(data)


def test_legacy_json_unencodable_name():
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_bytes(legacy_document(fileName="\ud800"))


def test_legacy_json_non_string_name():
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_bytes(legacy_document(fileName=42))


def test_legacy_json_non_string_algorithm_falls_back():
    env = Envelope.from_bytes(legacy_document(algorithm=7))
    assert env.algorithm_id == 0x01
