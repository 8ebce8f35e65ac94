# vault_protocol/errors.py
"""
VAULT Protocol Errors

One exception hierarchy shared by the codec, the content store client,
the ledger client and the lifecycle orchestrator.

Every error carries a stable ``code`` so callers (CLI, HTTP front ends)
can tell "not found", "inactive", "integrity failure" and "unauthorized"
apart without string matching. The orchestrator additionally sets
``step`` to the lifecycle step that failed (e.g. ``"store.put"``).

Updated: 2025-02-03
Version: 1.0.0
"""

from __future__ import annotations

from typing import Optional


# =============================================================================
# Base
# =============================================================================

class VaultError(Exception):
    """Base VAULT error."""

    code = "vault_error"

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.step = step

    def to_dict(self) -> dict:
        """Structured form for API / CLI output."""
        out = {"error": self.code, "message": str(self)}
        if self.step:
            out["step"] = self.step
        return out


# =============================================================================
# Envelope
# =============================================================================

class IntegrityError(VaultError):
    """Authentication tag did not verify (wrong key, tampering, corruption)."""

    code = "integrity_failure"


class MalformedEnvelopeError(VaultError):
    """Envelope bytes cannot be parsed."""

    code = "malformed_envelope"


class UnsupportedAlgorithmError(MalformedEnvelopeError):
    """Envelope names an AEAD suite this build does not know."""

    code = "unsupported_algorithm"

    def __init__(self, algorithm_id: int):
        self.algorithm_id = algorithm_id
        super().__init__(f"Unsupported algorithm id: 0x{algorithm_id:02x}")


# =============================================================================
# Records / Content
# =============================================================================

class NotFoundError(VaultError):
    """Ledger record or store blob does not exist."""

    code = "not_found"

    def __init__(self, what: str, identifier: str):
        self.what = what
        self.identifier = identifier
        super().__init__(f"{what} not found: {identifier}")


class DuplicateError(VaultError):
    """A certificate with this fid already exists (active or not)."""

    code = "duplicate"

    def __init__(self, fid: str):
        self.fid = fid
        super().__init__(f"Certificate with this FID already exists: {fid}")


class AuthorizationError(VaultError):
    """Acting identity is not the certificate issuer."""

    code = "unauthorized"

    def __init__(self, fid: str, caller: str):
        self.fid = fid
        self.caller = caller
        super().__init__(f"Only issuer can modify certificate {fid}, caller: {caller}")


class InactiveError(VaultError):
    """Certificate exists but has been deactivated."""

    code = "inactive"

    def __init__(self, fid: str):
        self.fid = fid
        super().__init__(f"Certificate is not active: {fid}")


class AddressMismatchError(VaultError):
    """Caller's expected content address differs from the ledger pointer."""

    code = "address_mismatch"

    def __init__(self, fid: str, expected: str, actual: str):
        self.fid = fid
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"CID does not match certificate {fid}: expected {expected}, ledger has {actual}"
        )


class InvalidArgumentError(VaultError, ValueError):
    """Empty or otherwise invalid argument to a ledger call."""

    code = "invalid_argument"


# =============================================================================
# Transport / Environment
# =============================================================================

class StoreError(VaultError):
    """Content store call failed."""

    code = "store_error"


class StoreUnavailableError(StoreError):
    """Content store could not be reached."""

    code = "store_unavailable"


class LedgerError(VaultError):
    """Ledger call failed."""

    code = "ledger_error"


class LedgerUnavailableError(LedgerError):
    """Ledger RPC endpoint could not be reached."""

    code = "ledger_unavailable"


class DependencyNotAvailableError(VaultError):
    """Optional third-party client library is not installed."""

    code = "dependency_missing"

    def __init__(self, package: str):
        self.package = package
        super().__init__(f"{package} not available. Install with: pip install {package}")


class ConfigurationError(VaultError):
    """Required configuration is missing or invalid."""

    code = "configuration_error"
