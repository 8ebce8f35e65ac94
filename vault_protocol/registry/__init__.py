# vault_protocol/registry/__init__.py
"""
VAULT Registry Layer

On-chain fid -> cid pointer records (CertificateManager contract).

Components:
    CertificateLedger: Abstract ledger client contract
    CertificateRegistry: web3 client for the deployed contract
    MockCertificateRegistry: In-memory ledger for tests
"""

from .cert_store import (
    Certificate,
    CertificateState,
    CertificateLedger,
    CertificateRegistry,
    MockCertificateRegistry,
    EmailCheck,
    LedgerEvent,
    LedgerReceipt,
    REASON_OK,
    REASON_INACTIVE,
    REASON_EMAIL_MISMATCH,
    WEB3_AVAILABLE,
    build_email_index,
    map_contract_error,
    same_identity,
)

__all__ = [
    "Certificate",
    "CertificateState",
    "CertificateLedger",
    "CertificateRegistry",
    "MockCertificateRegistry",
    "EmailCheck",
    "LedgerEvent",
    "LedgerReceipt",
    "REASON_OK",
    "REASON_INACTIVE",
    "REASON_EMAIL_MISMATCH",
    "WEB3_AVAILABLE",
    "build_email_index",
    "map_contract_error",
    "same_identity",
]
