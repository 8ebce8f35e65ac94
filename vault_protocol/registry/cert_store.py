# vault_protocol/registry/cert_store.py
"""
VAULT Registry: Certificate Ledger Clients

Python interface to the CertificateManager smart contract.
Records, reads and mutates Certificate records keyed by fid.

Contract rules mirrored by every client:
    - fid is unique forever (an inactive fid is never reissued)
    - only the issuer may change cid or deactivate
    - deactivation is one-way; inactive records reject pointer updates

Requirements:
    pip install web3

Usage:
    registry = CertificateRegistry(
        contract_address="0x...",
        rpc_url="http://127.0.0.1:8545",
        private_key="0x...",  # For write operations
    )

    receipt = registry.create(fid, cid, email)
    cert = registry.read(fid)
    registry.update_pointer(fid, new_cid, registry.account_address)
    check = registry.verify_email(fid, "a@x.com")

    # Tests / dry runs
    registry = MockCertificateRegistry()

Updated: 2025-02-03
Version: 1.0.0
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..errors import (
    AuthorizationError,
    DependencyNotAvailableError,
    DuplicateError,
    InactiveError,
    InvalidArgumentError,
    LedgerError,
    LedgerUnavailableError,
    NotFoundError,
    VaultError,
)

# Optional web3 import
try:
    from web3 import Web3
    from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
    from web3.middleware import ExtraDataToPOAMiddleware
    from eth_account import Account
    WEB3_AVAILABLE = True
except ImportError:
    WEB3_AVAILABLE = False
    Web3 = None


logger = logging.getLogger("vault-protocol.registry")


# =============================================================================
# Constants
# =============================================================================

ABI_PATH = Path(__file__).parent / "contracts" / "abi" / "CertificateManager.json"

def _load_abi() -> List[Dict]:
    """Load contract ABI from JSON file."""
    if ABI_PATH.exists():
        with open(ABI_PATH) as f:
            data = json.load(f)
            return data.get("abi", data)
    return []

CONTRACT_ABI = _load_abi()

DEFAULT_GAS_LIMIT = 1_000_000

REASON_OK = "ok"
REASON_INACTIVE = "inactive"
REASON_EMAIL_MISMATCH = "email-mismatch"

EVENT_ISSUED = "CertificateIssued"
EVENT_UPDATED = "CertificateUpdated"
EVENT_DELETED = "CertificateDeleted"


# =============================================================================
# Types
# =============================================================================

class CertificateState(Enum):
    """Per-fid lifecycle state."""
    ABSENT = "absent"
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class Certificate:
    """
    Certificate record from the ledger.

    Attributes:
        fid: Persistent logical identifier
        cid: Current content address
        email: Identity the certificate was issued to
        issuer: Account that created the record
        issued_at: Creation time (Unix seconds)
        last_modified_at: Last pointer / status change (Unix seconds)
        is_active: False once deleted (terminal)
        version_history: Every cid this record pointed to, oldest first
    """
    fid: str
    cid: str
    email: str
    issuer: str
    issued_at: int
    last_modified_at: int
    is_active: bool
    version_history: Tuple[str, ...] = ()

    @property
    def state(self) -> CertificateState:
        return CertificateState.ACTIVE if self.is_active else CertificateState.INACTIVE

    @classmethod
    def from_contract_tuple(cls, data: Tuple) -> Certificate:
        """Create from getCertificate() return tuple."""
        return cls(
            fid=data[0],
            cid=data[1],
            email=data[2],
            issued_at=int(data[3]),
            last_modified_at=int(data[4]),
            issuer=data[5],
            is_active=bool(data[6]),
            version_history=tuple(data[7]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fid": self.fid,
            "cid": self.cid,
            "email": self.email,
            "issuer": self.issuer,
            "issued_at": _iso(self.issued_at),
            "last_modified_at": _iso(self.last_modified_at),
            "is_active": self.is_active,
            "version_history": list(self.version_history),
        }


@dataclass(frozen=True)
class LedgerEvent:
    """Contract event as seen by external observers."""
    name: str
    args: Dict[str, Any]


@dataclass(frozen=True)
class LedgerReceipt:
    """Confirmation of a ledger write."""
    tx_hash: str
    fid: str
    action: str
    block_number: Optional[int] = None
    no_op: bool = False
    events: Tuple[LedgerEvent, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "fid": self.fid,
            "action": self.action,
            "block_number": self.block_number,
            "no_op": self.no_op,
        }


@dataclass(frozen=True)
class EmailCheck:
    """
    Result of verify_email.

    Inactive and email-mismatch are reported as separate flags; an
    inactive record takes precedence in ``reason``.
    """
    fid: str
    is_active: bool
    email_matches: bool

    @property
    def is_valid(self) -> bool:
        return self.is_active and self.email_matches

    @property
    def reason(self) -> str:
        if not self.is_active:
            return REASON_INACTIVE
        if not self.email_matches:
            return REASON_EMAIL_MISMATCH
        return REASON_OK


# =============================================================================
# Helper Functions
# =============================================================================

def _iso(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _require_non_empty(**fields: str) -> None:
    for name, value in fields.items():
        if not value:
            raise InvalidArgumentError(f"{name.upper()} cannot be empty")


def same_identity(a: Optional[str], b: Optional[str]) -> bool:
    """Identity comparison; EVM addresses are case-insensitive."""
    if a is None or b is None:
        return False
    if a.startswith("0x") and b.startswith("0x"):
        return a.lower() == b.lower()
    return a == b


def build_email_index(certificates: Iterable[Certificate]) -> Dict[str, List[str]]:
    """
    Rebuild the email -> [fid] lookup index from records.

    Order follows issue time, matching the append-only on-chain index.
    """
    index: Dict[str, List[str]] = {}
    for cert in sorted(certificates, key=lambda c: c.issued_at):
        index.setdefault(cert.email, []).append(cert.fid)
    return index


def map_contract_error(e: Exception, fid: str, caller: Optional[str] = None) -> VaultError:
    """
    Map a contract revert to the VAULT error taxonomy.

    Revert reasons follow CertificateManager.sol require() messages.
    """
    message = str(e)
    if "already exists" in message:
        return DuplicateError(fid)
    if "does not exist" in message:
        return NotFoundError("Certificate", fid)
    if "Only issuer" in message:
        return AuthorizationError(fid, caller or "unknown")
    if "not active" in message:
        return InactiveError(fid)
    if "cannot be empty" in message:
        return InvalidArgumentError(message)
    return LedgerError(f"Contract call failed for {fid}: {message}")


# =============================================================================
# Certificate Ledger (Abstract)
# =============================================================================

class CertificateLedger(ABC):
    """Ledger client contract shared by the web3 and in-memory clients."""

    @property
    @abstractmethod
    def account_address(self) -> Optional[str]:
        """Identity this client acts as (issuer of records it creates)."""

    @abstractmethod
    def create(self, fid: str, cid: str, email: str) -> LedgerReceipt:
        """Record a new certificate. Raises DuplicateError, InvalidArgumentError."""

    @abstractmethod
    def read(self, fid: str) -> Certificate:
        """Get a record (active or not). Raises NotFoundError."""

    @abstractmethod
    def update_pointer(self, fid: str, new_cid: str, acting_identity: Optional[str] = None) -> LedgerReceipt:
        """Point fid at a new cid. Raises NotFoundError, AuthorizationError, InactiveError."""

    @abstractmethod
    def deactivate(self, fid: str, acting_identity: Optional[str] = None) -> LedgerReceipt:
        """Mark fid inactive; idempotent on inactive records."""

    @abstractmethod
    def verify_email(self, fid: str, candidate_email: str) -> EmailCheck:
        """Compare email against the record. Raises NotFoundError."""

    @abstractmethod
    def exists(self, fid: str) -> bool:
        """True if a record was ever created for fid."""

    @abstractmethod
    def get_certificates_by_email(self, email: str) -> List[str]:
        """All fids ever issued to email."""

    @abstractmethod
    def get_version_history(self, fid: str) -> List[str]:
        """Every cid fid has pointed to."""

    def state(self, fid: str) -> CertificateState:
        try:
            return self.read(fid).state
        except NotFoundError:
            return CertificateState.ABSENT

    def ping(self) -> bool:
        return True


# =============================================================================
# CertificateRegistry (web3)
# =============================================================================

class CertificateRegistry(CertificateLedger):
    """
    CertificateManager contract interface.

    Writes are signed locally with ``private_key`` and sent as raw
    transactions. Existence, issuer and status are checked with a read
    before each write so the common failures surface without spending gas;
    the contract stays the final authority.
    """

    def __init__(
        self,
        contract_address: str,
        rpc_url: str,
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        timeout: float = 30.0,
        gas_limit: int = DEFAULT_GAS_LIMIT,
    ):
        """
        Initialize CertificateRegistry.

        Args:
            contract_address: Deployed CertificateManager address
            rpc_url: RPC endpoint URL
            private_key: Private key for write operations (optional)
            chain_id: Chain ID (auto-detected if not provided)
            timeout: HTTP and receipt wait timeout in seconds
            gas_limit: Gas limit for writes
        """
        if not WEB3_AVAILABLE:
            raise DependencyNotAvailableError("web3")

        self.contract_address = Web3.to_checksum_address(contract_address)
        self.rpc_url = rpc_url
        self._timeout = timeout
        self._gas_limit = gas_limit

        self._w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))

        # Quorum / Clique blocks carry extra data
        self._w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        self._contract = self._w3.eth.contract(
            address=self.contract_address,
            abi=CONTRACT_ABI,
        )

        self._account = Account.from_key(private_key) if private_key else None
        self._chain_id = chain_id

    @property
    def account_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self._rpc(lambda: self._w3.eth.chain_id, "chain_id")
        return self._chain_id

    # =========================================================================
    # Transport
    # =========================================================================

    def _rpc(self, fn, what: str, fid: str = "", caller: Optional[str] = None):
        """Run one RPC round trip, mapping library failures."""
        try:
            return fn()
        except ContractLogicError as e:
            raise map_contract_error(e, fid, caller) from e
        except TimeExhausted as e:
            raise LedgerError(f"Timed out waiting for {what} receipt: {e}") from e
        except Web3Exception as e:
            raise LedgerError(f"{what} failed: {e}") from e
        except OSError as e:
            raise LedgerUnavailableError(f"Ledger RPC unreachable ({self.rpc_url}): {e}") from e

    def _transact(self, call, action: str, fid: str, event_name: str) -> LedgerReceipt:
        """Build, sign, send and confirm a contract write."""
        if not self._account:
            raise LedgerError("Private key required for write operations")

        address = self._account.address

        def send():
            tx = call.build_transaction({
                "from": address,
                "chainId": self.chain_id,
                "nonce": self._w3.eth.get_transaction_count(address, "pending"),
                "gas": self._gas_limit,
                "gasPrice": self._w3.eth.gas_price,
            })
            signed = self._account.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
            return self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._timeout)

        receipt = self._rpc(send, action, fid, address)
        tx_hash = Web3.to_hex(receipt["transactionHash"])

        if receipt["status"] != 1:
            raise LedgerError(f"Transaction failed: {tx_hash}")

        logs = getattr(self._contract.events, event_name)().process_receipt(receipt)
        events = tuple(LedgerEvent(name=event_name, args=dict(log["args"])) for log in logs)

        logger.info("%s %s: tx %s (block %s)", action, fid, tx_hash, receipt.get("blockNumber"))
        return LedgerReceipt(
            tx_hash=tx_hash,
            fid=fid,
            action=action,
            block_number=receipt.get("blockNumber"),
            events=events,
        )

    def _acting(self, fid: str, acting_identity: Optional[str]) -> str:
        """Resolve the acting identity; this client can only sign as its own account."""
        signer = self.account_address
        if signer is None:
            raise LedgerError("Private key required for write operations")
        if acting_identity is not None and not same_identity(acting_identity, signer):
            raise AuthorizationError(fid, acting_identity)
        return signer

    # =========================================================================
    # Write Operations
    # =========================================================================

    def create(self, fid: str, cid: str, email: str) -> LedgerReceipt:
        _require_non_empty(fid=fid, cid=cid, email=email)
        if self.exists(fid):
            raise DuplicateError(fid)
        return self._transact(
            self._contract.functions.issueCertificate(fid, cid, email),
            "create", fid, EVENT_ISSUED,
        )

    def update_pointer(self, fid: str, new_cid: str, acting_identity: Optional[str] = None) -> LedgerReceipt:
        _require_non_empty(fid=fid, cid=new_cid)
        caller = self._acting(fid, acting_identity)

        cert = self.read(fid)
        if not same_identity(cert.issuer, caller):
            raise AuthorizationError(fid, caller)
        if not cert.is_active:
            raise InactiveError(fid)

        return self._transact(
            self._contract.functions.updateCertificate(fid, new_cid),
            "update", fid, EVENT_UPDATED,
        )

    def deactivate(self, fid: str, acting_identity: Optional[str] = None) -> LedgerReceipt:
        _require_non_empty(fid=fid)
        caller = self._acting(fid, acting_identity)

        cert = self.read(fid)
        if not same_identity(cert.issuer, caller):
            raise AuthorizationError(fid, caller)
        if not cert.is_active:
            logger.info("deactivate %s: already inactive, nothing sent", fid)
            return LedgerReceipt(tx_hash="", fid=fid, action="deactivate", no_op=True)

        return self._transact(
            self._contract.functions.deleteCertificate(fid),
            "deactivate", fid, EVENT_DELETED,
        )

    # =========================================================================
    # Read Operations
    # =========================================================================

    def read(self, fid: str) -> Certificate:
        data = self._rpc(
            lambda: self._contract.functions.getCertificate(fid).call(),
            "getCertificate", fid,
        )
        # Some deployments return a zeroed struct instead of reverting
        if not data or not data[0]:
            raise NotFoundError("Certificate", fid)
        return Certificate.from_contract_tuple(data)

    def verify_email(self, fid: str, candidate_email: str) -> EmailCheck:
        cert = self.read(fid)
        if not cert.is_active:
            # Inactive is reported as a flag, not left to the contract call
            return EmailCheck(fid=fid, is_active=False, email_matches=cert.email == candidate_email)
        matches = self._rpc(
            lambda: self._contract.functions.verifyCertificate(fid, candidate_email).call(),
            "verifyCertificate", fid,
        )
        return EmailCheck(fid=fid, is_active=True, email_matches=bool(matches))

    def exists(self, fid: str) -> bool:
        return bool(self._rpc(
            lambda: self._contract.functions.certificateExists(fid).call(),
            "certificateExists", fid,
        ))

    def get_certificates_by_email(self, email: str) -> List[str]:
        return list(self._rpc(
            lambda: self._contract.functions.getCertificatesByEmail(email).call(),
            "getCertificatesByEmail",
        ))

    def get_version_history(self, fid: str) -> List[str]:
        return list(self._rpc(
            lambda: self._contract.functions.getCertificateVersionHistory(fid).call(),
            "getCertificateVersionHistory", fid,
        ))

    # =========================================================================
    # Network
    # =========================================================================

    def ping(self) -> bool:
        try:
            block = self._w3.eth.block_number
        except (Web3Exception, OSError) as e:
            logger.error("Blockchain connection failed: %s", e)
            return False
        logger.debug("Blockchain connection ok, latest block %s", block)
        return True

    def network_info(self) -> Dict[str, Any]:
        return self._rpc(lambda: {
            "block_number": self._w3.eth.block_number,
            "chain_id": self._w3.eth.chain_id,
            "is_listening": self._w3.net.listening,
            "contract_address": self.contract_address,
            "rpc_url": self.rpc_url,
        }, "network_info")


# =============================================================================
# Mock CertificateRegistry (for testing without blockchain)
# =============================================================================

class MockCertificateRegistry(CertificateLedger):
    """
    In-memory CertificateRegistry for testing.

    No blockchain required. One mutex serializes all writes, standing in
    for the ledger's transaction ordering.
    """

    def __init__(self, account: str = "0x" + "1" * 40):
        self._certs: Dict[str, Certificate] = {}
        self._email_index: Dict[str, List[str]] = {}
        self._lock = threading.Lock()
        self._current_address = account
        self._tx_count = 0
        self.events: List[LedgerEvent] = []

    @property
    def account_address(self) -> Optional[str]:
        return self._current_address

    def set_account(self, address: str) -> None:
        """Set current account address."""
        self._current_address = address

    def _receipt(self, fid: str, action: str, event: Optional[LedgerEvent]) -> LedgerReceipt:
        self._tx_count += 1
        tx_hash = "0x" + hashlib.sha256(f"{self._tx_count}:{action}:{fid}".encode()).hexdigest()
        events: Tuple[LedgerEvent, ...] = ()
        if event is not None:
            self.events.append(event)
            events = (event,)
        return LedgerReceipt(
            tx_hash=tx_hash,
            fid=fid,
            action=action,
            block_number=self._tx_count,
            events=events,
        )

    def _get(self, fid: str) -> Certificate:
        if fid not in self._certs:
            raise NotFoundError("Certificate", fid)
        return self._certs[fid]

    def _check_mutation(self, fid: str, caller: str) -> Certificate:
        cert = self._get(fid)
        if not same_identity(cert.issuer, caller):
            raise AuthorizationError(fid, caller)
        return cert

    # =========================================================================
    # Write Operations
    # =========================================================================

    def create(self, fid: str, cid: str, email: str) -> LedgerReceipt:
        _require_non_empty(fid=fid, cid=cid, email=email)
        now = int(time.time())
        with self._lock:
            if fid in self._certs:
                raise DuplicateError(fid)
            self._certs[fid] = Certificate(
                fid=fid,
                cid=cid,
                email=email,
                issuer=self._current_address,
                issued_at=now,
                last_modified_at=now,
                is_active=True,
                version_history=(cid,),
            )
            self._email_index.setdefault(email, []).append(fid)
            return self._receipt(fid, "create", LedgerEvent(EVENT_ISSUED, {
                "fid": fid, "cid": cid, "email": email,
                "timestamp": now, "issuer": self._current_address,
            }))

    def update_pointer(self, fid: str, new_cid: str, acting_identity: Optional[str] = None) -> LedgerReceipt:
        _require_non_empty(fid=fid, cid=new_cid)
        caller = acting_identity if acting_identity is not None else self._current_address
        now = int(time.time())
        with self._lock:
            cert = self._check_mutation(fid, caller)
            if not cert.is_active:
                raise InactiveError(fid)
            self._certs[fid] = replace(
                cert,
                cid=new_cid,
                last_modified_at=now,
                version_history=cert.version_history + (new_cid,),
            )
            return self._receipt(fid, "update", LedgerEvent(EVENT_UPDATED, {
                "fid": fid, "newCid": new_cid, "timestamp": now, "updater": caller,
            }))

    def deactivate(self, fid: str, acting_identity: Optional[str] = None) -> LedgerReceipt:
        _require_non_empty(fid=fid)
        caller = acting_identity if acting_identity is not None else self._current_address
        with self._lock:
            cert = self._check_mutation(fid, caller)
            if not cert.is_active:
                return LedgerReceipt(tx_hash="", fid=fid, action="deactivate", no_op=True)
            self._certs[fid] = replace(cert, is_active=False, last_modified_at=int(time.time()))
            return self._receipt(fid, "deactivate", LedgerEvent(EVENT_DELETED, {
                "fid": fid, "deleter": caller,
            }))

    # =========================================================================
    # Read Operations
    # =========================================================================

    def read(self, fid: str) -> Certificate:
        with self._lock:
            return self._get(fid)

    def verify_email(self, fid: str, candidate_email: str) -> EmailCheck:
        cert = self.read(fid)
        return EmailCheck(
            fid=fid,
            is_active=cert.is_active,
            email_matches=cert.email == candidate_email,
        )

    def exists(self, fid: str) -> bool:
        with self._lock:
            return fid in self._certs

    def get_certificates_by_email(self, email: str) -> List[str]:
        with self._lock:
            return list(self._email_index.get(email, []))

    def get_version_history(self, fid: str) -> List[str]:
        return list(self.read(fid).version_history)

    def all_certificates(self) -> List[Certificate]:
        with self._lock:
            return list(self._certs.values())
