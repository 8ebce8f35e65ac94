# tests/conftest.py
"""Shared fixtures: in-memory store and ledger, a fresh key per test."""

import pytest

from vault_protocol.config import EncryptionConfig
from vault_protocol.lifecycle import CertificateLifecycle
from vault_protocol.registry import MockCertificateRegistry
from vault_protocol.storage import MockContentStore
from vault_protocol.wire import EnvelopeCodec


ISSUER = "0x" + "1" * 40
OTHER = "0x" + "2" * 40

PDF = b"%PDF-1.7\n" + bytes(range(256)) * 4


@pytest.fixture
def encryption():
    return EncryptionConfig.generate()


@pytest.fixture
def codec(encryption):
    return EnvelopeCodec(encryption)


@pytest.fixture
def store():
    return MockContentStore()


@pytest.fixture
def ledger():
    return MockCertificateRegistry(account=ISSUER)


@pytest.fixture
def lifecycle(codec, store, ledger):
    return CertificateLifecycle(codec, store, ledger, gateway="http://gw.local:8080")


@pytest.fixture
def issued(lifecycle):
    return lifecycle.issue(PDF, "diploma.pdf", "a@x.com", fid="cert_1")
