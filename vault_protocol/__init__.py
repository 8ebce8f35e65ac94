# vault_protocol/__init__.py
"""
VAULT Protocol: Encrypted Certificate Issuance

Files are sealed into authenticated envelopes, stored on IPFS, and
addressed through an on-chain fid -> cid pointer (CertificateManager).

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │  vault_protocol                                         │
    │  ├── wire/             # Envelope format + AEAD codec   │
    │  │   ├── envelope.py   # v1 binary layout, legacy JSON  │
    │  │   └── codec.py      # EnvelopeCodec                  │
    │  ├── storage/          # Content-addressed blobs        │
    │  │   └── ipfs_store.py # IPFSContentStore, Mock         │
    │  ├── registry/         # Ledger pointer records         │
    │  │   └── cert_store.py # CertificateRegistry, Mock      │
    │  ├── lifecycle.py      # issue / verify / update / ...  │
    │  ├── suites.py         # AES-256-GCM, ChaCha20-Poly1305 │
    │  ├── config.py         # EncryptionConfig, VaultConfig  │
    │  ├── urls.py           # vault://fid/cid, gateway links │
    │  └── cli.py            # vault-protocol command         │
    └─────────────────────────────────────────────────────────┘

Quick start:
    from vault_protocol import (
        CertificateLifecycle, EncryptionConfig, EnvelopeCodec,
        MockContentStore, MockCertificateRegistry,
    )

    lifecycle = CertificateLifecycle(
        EnvelopeCodec(EncryptionConfig.generate()),
        MockContentStore(),
        MockCertificateRegistry(),
    )
    issued = lifecycle.issue(b"...", "diploma.pdf", "a@x.com")
"""

__version__ = "1.0.0"

# =============================================================================
# Errors
# =============================================================================

from .errors import (
    VaultError,
    IntegrityError,
    MalformedEnvelopeError,
    UnsupportedAlgorithmError,
    NotFoundError,
    DuplicateError,
    AuthorizationError,
    InactiveError,
    AddressMismatchError,
    InvalidArgumentError,
    StoreError,
    StoreUnavailableError,
    LedgerError,
    LedgerUnavailableError,
    DependencyNotAvailableError,
    ConfigurationError,
)

# =============================================================================
# Configuration / Suites
# =============================================================================

from .suites import Suite, SUITES, DEFAULT_SUITE_ID, get_suite, get_suite_by_name
from .config import EncryptionConfig, VaultConfig, parse_key

# =============================================================================
# Wire Format
# =============================================================================

from .wire import Envelope, EnvelopeMetadata, EnvelopeCodec, DecodedFile

# =============================================================================
# Storage / Registry (optional clients guarded inside)
# =============================================================================

from .storage import (
    ContentStore,
    IPFSContentStore,
    MockContentStore,
    IPFS_AVAILABLE,
)

from .registry import (
    Certificate,
    CertificateState,
    CertificateLedger,
    CertificateRegistry,
    MockCertificateRegistry,
    EmailCheck,
    LedgerReceipt,
    WEB3_AVAILABLE,
)

# =============================================================================
# Lifecycle
# =============================================================================

from .lifecycle import (
    CertificateLifecycle,
    IssueResult,
    VerificationResult,
    UpdateResult,
    DeleteResult,
    DownloadResult,
    build_lifecycle,
)

from .urls import build_vault_url, parse_vault_url, gateway_url, generate_fid


def get_info() -> dict:
    """Package and optional-client availability."""
    return {
        "version": __version__,
        "suites": [suite.name for suite in SUITES.values()],
        "ipfs_available": IPFS_AVAILABLE,
        "web3_available": WEB3_AVAILABLE,
    }


__all__ = [
    "__version__",
    "get_info",
    # Errors
    "VaultError",
    "IntegrityError",
    "MalformedEnvelopeError",
    "UnsupportedAlgorithmError",
    "NotFoundError",
    "DuplicateError",
    "AuthorizationError",
    "InactiveError",
    "AddressMismatchError",
    "InvalidArgumentError",
    "StoreError",
    "StoreUnavailableError",
    "LedgerError",
    "LedgerUnavailableError",
    "DependencyNotAvailableError",
    "ConfigurationError",
    # Config
    "Suite",
    "SUITES",
    "DEFAULT_SUITE_ID",
    "get_suite",
    "get_suite_by_name",
    "EncryptionConfig",
    "VaultConfig",
    "parse_key",
    # Wire
    "Envelope",
    "EnvelopeMetadata",
    "EnvelopeCodec",
    "DecodedFile",
    # Storage
    "ContentStore",
    "IPFSContentStore",
    "MockContentStore",
    "IPFS_AVAILABLE",
    # Registry
    "Certificate",
    "CertificateState",
    "CertificateLedger",
    "CertificateRegistry",
    "MockCertificateRegistry",
    "EmailCheck",
    "LedgerReceipt",
    "WEB3_AVAILABLE",
    # Lifecycle
    "CertificateLifecycle",
    "IssueResult",
    "VerificationResult",
    "UpdateResult",
    "DeleteResult",
    "DownloadResult",
    "build_lifecycle",
    # URLs
    "build_vault_url",
    "parse_vault_url",
    "gateway_url",
    "generate_fid",
]
