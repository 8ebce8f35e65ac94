# vault_protocol/lifecycle.py
"""
VAULT Certificate Lifecycle

Coordinates the codec, the content store and the ledger into the
certificate operations: issue, verify, update, delete, download.

Per-fid state machine:

    absent ──issue──▶ active ──update──▶ active
                        │
                        └──delete──▶ inactive (terminal)

Ordering rules:
    - issue:  encode → store.put → ledger.create
              (a ledger failure after put leaves an orphan blob: logged,
               counted in stats, never rolled back)
    - update: ledger.read → checks → encode → store.put → ledger.update_pointer
              (the previous cid is kept; it is part of the version history)
    - delete: ledger.deactivate → store.remove (best-effort)
    - download: ledger.read → address check → store.get → decode

Every VaultError leaving this module carries ``step`` naming the failed
step ("encode", "store.put", "ledger.create", ...).

Usage:
    lifecycle = CertificateLifecycle(
        codec=EnvelopeCodec(EncryptionConfig.generate()),
        store=MockContentStore(),
        ledger=MockCertificateRegistry(),
    )
    issued = lifecycle.issue(pdf_bytes, "diploma.pdf", "a@x.com")
    lifecycle.verify(issued.fid, "a@x.com").is_valid
    lifecycle.download(issued.fid).content

    # Production clients from the environment
    lifecycle = build_lifecycle(VaultConfig.from_env())

Updated: 2025-02-03
Version: 1.0.0
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .config import VaultConfig
from .errors import (
    AddressMismatchError,
    AuthorizationError,
    InactiveError,
    IntegrityError,
    InvalidArgumentError,
    StoreError,
    VaultError,
    NotFoundError,
)
from .registry import (
    Certificate,
    CertificateLedger,
    CertificateRegistry,
    CertificateState,
    EmailCheck,
    LedgerReceipt,
    same_identity,
)
from .storage import ContentStore, IPFSContentStore
from .urls import build_vault_url, gateway_url, generate_fid, guess_content_type, parse_vault_url
from .wire import EnvelopeCodec, EnvelopeMetadata


logger = logging.getLogger("vault-protocol.lifecycle")


STAT_KEYS = (
    "issued",
    "updated",
    "deleted",
    "downloads",
    "orphaned_blobs",
    "remove_failures",
    "integrity_failures",
)


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class IssueResult:
    fid: str
    cid: str
    email: str
    name: str
    envelope_size: int
    receipt: LedgerReceipt
    gateway_url: Optional[str] = None

    @property
    def vault_url(self) -> str:
        return build_vault_url(self.fid, self.cid)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fid": self.fid,
            "cid": self.cid,
            "email": self.email,
            "name": self.name,
            "envelope_size": self.envelope_size,
            "vault_url": self.vault_url,
            "gateway_url": self.gateway_url,
            "tx_hash": self.receipt.tx_hash,
            "block_number": self.receipt.block_number,
        }


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of an email check.

    ``reason`` is ``ok``, ``inactive`` or ``email-mismatch``; an inactive
    certificate reports ``inactive`` whatever the email.
    """
    fid: str
    is_valid: bool
    reason: str
    certificate: Certificate

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fid": self.fid,
            "is_valid": self.is_valid,
            "reason": self.reason,
            "certificate": self.certificate.to_dict(),
        }


@dataclass(frozen=True)
class UpdateResult:
    fid: str
    old_cid: str
    new_cid: str
    receipt: LedgerReceipt

    @property
    def vault_url(self) -> str:
        return build_vault_url(self.fid, self.new_cid)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fid": self.fid,
            "old_cid": self.old_cid,
            "new_cid": self.new_cid,
            "vault_url": self.vault_url,
            "tx_hash": self.receipt.tx_hash,
        }


@dataclass(frozen=True)
class DeleteResult:
    fid: str
    cid: str
    receipt: LedgerReceipt
    content_removed: bool
    remove_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fid": self.fid,
            "cid": self.cid,
            "tx_hash": self.receipt.tx_hash,
            "already_inactive": self.receipt.no_op,
            "content_removed": self.content_removed,
            "remove_error": self.remove_error,
        }


@dataclass(frozen=True)
class DownloadResult:
    fid: str
    cid: str
    content: bytes
    name: str
    metadata: EnvelopeMetadata

    @property
    def content_type(self) -> str:
        return guess_content_type(self.name)

    def to_dict(self) -> Dict[str, Any]:
        """Everything but the content itself."""
        return {
            "fid": self.fid,
            "cid": self.cid,
            "name": self.name,
            "size": len(self.content),
            "content_type": self.content_type,
            "metadata": self.metadata.to_dict(),
        }


# =============================================================================
# Helpers
# =============================================================================

@contextmanager
def _step(name: str):
    """Tag VaultErrors raised inside the block with the lifecycle step."""
    try:
        yield
    except VaultError as e:
        if e.step is None:
            e.step = name
        raise


# =============================================================================
# CertificateLifecycle
# =============================================================================

class CertificateLifecycle:
    """
    Certificate operations over a codec, a content store and a ledger.

    Holds no per-certificate state; the ledger is the only authority for
    fid → cid and for issuer / active status. No lock is held across a
    remote call. Concurrent updates to one fid resolve last-writer-wins at
    the ledger.
    """

    def __init__(
        self,
        codec: EnvelopeCodec,
        store: ContentStore,
        ledger: CertificateLedger,
        gateway: Optional[str] = None,
    ):
        """
        Args:
            codec: Envelope codec (holds the key)
            store: Content-addressed blob store
            ledger: Certificate ledger client
            gateway: Public gateway base URL for links in results (optional)
        """
        self.codec = codec
        self.store = store
        self.ledger = ledger
        self.gateway = gateway

        self._stats_lock = threading.Lock()
        self._stats: Dict[str, int] = {key: 0 for key in STAT_KEYS}

    @classmethod
    def from_config(cls, config: VaultConfig) -> CertificateLifecycle:
        """Wire the IPFS store and the web3 ledger from configuration."""
        config.require_ledger()
        codec = EnvelopeCodec(config.encryption)
        store = IPFSContentStore(config.ipfs_api_url, timeout=config.request_timeout)
        ledger = CertificateRegistry(
            contract_address=config.contract_address,
            rpc_url=config.rpc_url,
            private_key=config.private_key,
            chain_id=config.chain_id,
            timeout=config.request_timeout,
        )
        return cls(codec, store, ledger, gateway=config.ipfs_gateway_url)

    # =========================================================================
    # Stats
    # =========================================================================

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    @property
    def stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self._stats)

    def _gateway_link(self, cid: str) -> Optional[str]:
        return gateway_url(self.gateway, cid) if self.gateway else None

    def _acting(self, acting_identity: Optional[str]) -> Optional[str]:
        return acting_identity if acting_identity is not None else self.ledger.account_address

    # =========================================================================
    # Issue
    # =========================================================================

    def issue(
        self,
        content: bytes,
        name: str,
        email: str,
        fid: Optional[str] = None,
    ) -> IssueResult:
        """
        Encrypt, store and record a new certificate.

        Args:
            content: File bytes
            name: Original file name
            email: Identity the certificate is issued to
            fid: Certificate id (generated if None)

        Raises:
            InvalidArgumentError: Empty email or fid (nothing is written)
            DuplicateError: fid already recorded (the blob is orphaned)
            StoreError / LedgerError: Transport failures
        """
        if fid is not None and not fid:
            raise InvalidArgumentError("FID cannot be empty", step="validate")
        if not email:
            raise InvalidArgumentError("Email cannot be empty", step="validate")
        fid = fid or generate_fid()

        with _step("encode"):
            envelope = self.codec.encode(content, name)

        with _step("store.put"):
            cid = self.store.put(envelope)

        try:
            with _step("ledger.create"):
                receipt = self.ledger.create(fid, cid, email)
        except VaultError as e:
            self._count("orphaned_blobs")
            logger.error(
                "Ledger create failed for %s; blob %s is orphaned in the store: %s",
                fid, cid, e,
            )
            raise

        self._count("issued")
        logger.info("Issued %s -> %s (%s, %d bytes)", fid, cid, name, len(envelope))
        return IssueResult(
            fid=fid,
            cid=cid,
            email=email,
            name=name,
            envelope_size=len(envelope),
            receipt=receipt,
            gateway_url=self._gateway_link(cid),
        )

    # =========================================================================
    # Verify
    # =========================================================================

    def verify(self, fid: str, email: str) -> VerificationResult:
        """
        Check whether email matches an active certificate.

        The verdict and the returned certificate come from one ledger read.
        """
        with _step("ledger.read"):
            cert = self.ledger.read(fid)
        check = EmailCheck(fid=fid, is_active=cert.is_active, email_matches=cert.email == email)

        logger.debug("Verify %s: %s", fid, check.reason)
        return VerificationResult(
            fid=fid,
            is_valid=check.is_valid,
            reason=check.reason,
            certificate=cert,
        )

    # =========================================================================
    # Update
    # =========================================================================

    def update(
        self,
        fid: str,
        content: bytes,
        name: str,
        acting_identity: Optional[str] = None,
    ) -> UpdateResult:
        """
        Replace the certificate content with a new envelope.

        Issuer and status are checked before anything is written to the
        store. The old cid stays in the store and in the version history.
        """
        caller = self._acting(acting_identity)

        with _step("ledger.read"):
            cert = self.ledger.read(fid)
            if not same_identity(cert.issuer, caller):
                raise AuthorizationError(fid, caller or "unknown")
            if not cert.is_active:
                raise InactiveError(fid)

        with _step("encode"):
            envelope = self.codec.encode(content, name)

        with _step("store.put"):
            new_cid = self.store.put(envelope)

        try:
            with _step("ledger.update"):
                receipt = self.ledger.update_pointer(fid, new_cid, caller)
        except VaultError as e:
            self._count("orphaned_blobs")
            logger.error(
                "Ledger update failed for %s; blob %s is orphaned in the store: %s",
                fid, new_cid, e,
            )
            raise

        self._count("updated")
        logger.info("Updated %s: %s -> %s", fid, cert.cid, new_cid)
        return UpdateResult(fid=fid, old_cid=cert.cid, new_cid=new_cid, receipt=receipt)

    # =========================================================================
    # Delete
    # =========================================================================

    def delete(self, fid: str, acting_identity: Optional[str] = None) -> DeleteResult:
        """
        Deactivate a certificate, then ask the store to forget its content.

        Store removal is best-effort: a failure is logged, counted and
        reported in the result. Deleting an already inactive certificate
        sends nothing and leaves the store alone.
        """
        caller = self._acting(acting_identity)

        with _step("ledger.deactivate"):
            receipt = self.ledger.deactivate(fid, caller)

        # Last-known pointer, after any update that landed before deactivation
        with _step("ledger.read"):
            cert = self.ledger.read(fid)

        if receipt.no_op:
            logger.info("Delete %s: already inactive", fid)
            return DeleteResult(fid=fid, cid=cert.cid, receipt=receipt, content_removed=False)

        self._count("deleted")

        removed = True
        remove_error = None
        try:
            self.store.remove(cert.cid)
        except NotFoundError:
            logger.info("Delete %s: content %s was already gone", fid, cert.cid)
        except StoreError as e:
            removed = False
            remove_error = str(e)
            self._count("remove_failures")
            logger.warning("Delete %s: could not remove content %s: %s", fid, cert.cid, e)

        logger.info("Deleted %s (content %s removed: %s)", fid, cert.cid, removed)
        return DeleteResult(
            fid=fid,
            cid=cert.cid,
            receipt=receipt,
            content_removed=removed,
            remove_error=remove_error,
        )

    # =========================================================================
    # Download
    # =========================================================================

    def download(self, fid: str, expected_cid: Optional[str] = None) -> DownloadResult:
        """
        Fetch and decrypt the current content of an active certificate.

        Args:
            fid: Certificate id
            expected_cid: If given, must equal the ledger pointer; checked
                before anything is fetched

        Raises:
            InactiveError, AddressMismatchError, NotFoundError,
            IntegrityError, MalformedEnvelopeError
        """
        with _step("ledger.read"):
            cert = self.ledger.read(fid)
            if not cert.is_active:
                raise InactiveError(fid)
            if expected_cid is not None and expected_cid != cert.cid:
                raise AddressMismatchError(fid, expected_cid, cert.cid)

        with _step("store.get"):
            blob = self.store.get(cert.cid)

        try:
            with _step("decode"):
                decoded = self.codec.decode(blob)
        except IntegrityError:
            self._count("integrity_failures")
            logger.warning("Integrity failure for %s (cid %s)", fid, cert.cid)
            raise

        self._count("downloads")
        return DownloadResult(
            fid=fid,
            cid=cert.cid,
            content=decoded.content,
            name=decoded.name,
            metadata=decoded.metadata,
        )

    def open_vault_url(self, url: str) -> DownloadResult:
        """Download ``vault://{fid}/{cid}``, requiring the ledger to still point at cid."""
        fid, cid = parse_vault_url(url)
        return self.download(fid, expected_cid=cid)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_certificate(self, fid: str) -> Certificate:
        with _step("ledger.read"):
            return self.ledger.read(fid)

    def certificates_for(self, email: str) -> List[Certificate]:
        with _step("ledger.read"):
            return [self.ledger.read(fid) for fid in self.ledger.get_certificates_by_email(email)]

    def history(self, fid: str) -> List[str]:
        with _step("ledger.read"):
            return self.ledger.get_version_history(fid)

    def state(self, fid: str) -> CertificateState:
        with _step("ledger.read"):
            return self.ledger.state(fid)

    def status(self) -> Dict[str, Any]:
        """Health report: ledger, store, codec self-test, counters."""
        ledger_ok = self.ledger.ping()
        store_ok = self.store.ping()
        codec_ok = self.codec.self_test()
        return {
            "healthy": ledger_ok and store_ok and codec_ok,
            "ledger": {"reachable": ledger_ok, "account": self.ledger.account_address},
            "store": {"reachable": store_ok, "gateway": self.gateway},
            "codec": {"self_test": codec_ok, **self.codec.info()},
            "stats": self.stats,
        }


def build_lifecycle(config: Optional[VaultConfig] = None) -> CertificateLifecycle:
    """Production lifecycle from explicit config or the environment."""
    return CertificateLifecycle.from_config(config or VaultConfig.from_env())
