# vault_protocol/storage/ipfs_store.py
"""
VAULT Storage: Content Store Clients

put / get / remove over a content-addressed store. Addresses are opaque
strings returned by ``put``; the only promise is that fetching an address
returns the exact bytes stored until the store is asked to forget them.

Requirements:
    pip install ipfshttpclient

Usage:
    store = IPFSContentStore("http://127.0.0.1:5001")
    cid = store.put(envelope_bytes)
    blob = store.get(cid)
    store.remove(cid)          # unpin, best-effort

    # Tests / dry runs
    store = MockContentStore()

Updated: 2025-02-03
Version: 1.0.0
"""

from __future__ import annotations

import hashlib
import ipaddress
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from ..errors import (
    DependencyNotAvailableError,
    NotFoundError,
    StoreError,
    StoreUnavailableError,
)

# Optional ipfshttpclient import
try:
    import ipfshttpclient
    from ipfshttpclient import exceptions as ipfs_exceptions
    IPFS_AVAILABLE = True
except ImportError:
    ipfshttpclient = None
    ipfs_exceptions = None
    IPFS_AVAILABLE = False


logger = logging.getLogger("vault-protocol.storage")


# =============================================================================
# Types
# =============================================================================

@dataclass(frozen=True)
class BlobInfo:
    """Stored blob facts."""
    address: str
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "size": self.size}


# =============================================================================
# Content Store (Abstract)
# =============================================================================

class ContentStore(ABC):
    """Abstract content-addressed blob store."""

    @abstractmethod
    def put(self, blob: bytes) -> str:
        """Store bytes, return their content address."""

    @abstractmethod
    def get(self, address: str) -> bytes:
        """Fetch bytes by address. Raises NotFoundError."""

    @abstractmethod
    def remove(self, address: str) -> None:
        """Ask the store to forget an address (best-effort)."""

    @abstractmethod
    def stat(self, address: str) -> BlobInfo:
        """Blob size without fetching it. Raises NotFoundError."""

    def exists(self, address: str) -> bool:
        try:
            self.stat(address)
            return True
        except NotFoundError:
            return False

    def ping(self) -> bool:
        """Connectivity check."""
        return True


# =============================================================================
# Helpers
# =============================================================================

def to_multiaddr(api_url: str) -> str:
    """
    Convert an ``http://host:port`` API URL to the multiaddr form
    ipfshttpclient expects. Multiaddrs are returned unchanged.

        http://127.0.0.1:5001  ->  /ip4/127.0.0.1/tcp/5001/http
        https://ipfs.local     ->  /dns/ipfs.local/tcp/443/https
    """
    if api_url.startswith("/"):
        return api_url

    parts = urlsplit(api_url)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise ValueError(f"Invalid IPFS API URL: {api_url!r}")

    port = parts.port or (443 if parts.scheme == "https" else 80)
    try:
        ip = ipaddress.ip_address(parts.hostname)
        proto = "ip4" if ip.version == 4 else "ip6"
    except ValueError:
        proto = "dns"

    return f"/{proto}/{parts.hostname}/tcp/{port}/{parts.scheme}"


# =============================================================================
# IPFS
# =============================================================================

class IPFSContentStore(ContentStore):
    """
    IPFS daemon over its HTTP API.

    ``put`` adds and pins; ``remove`` unpins. Content unpinned here may
    stay reachable if other nodes hold it.
    """

    def __init__(
        self,
        api_url: str = "http://127.0.0.1:5001",
        timeout: float = 30.0,
        client: Optional[Any] = None,
    ):
        """
        Initialize IPFS store.

        Args:
            api_url: Daemon API as http URL or multiaddr
            timeout: Per-request timeout in seconds (advisory)
            client: Pre-built ipfshttpclient Client (connects lazily if None)
        """
        if client is None and not IPFS_AVAILABLE:
            raise DependencyNotAvailableError("ipfshttpclient")

        self.api_addr = to_multiaddr(api_url)
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                self._client = ipfshttpclient.connect(self.api_addr, timeout=self.timeout)
            except ipfs_exceptions.Error as e:
                raise StoreUnavailableError(f"IPFS connection failed ({self.api_addr}): {e}") from e
            logger.info("Connected to IPFS: %s", self.api_addr)
        return self._client

    def _map_error(self, e: Exception, address: Optional[str], action: str) -> Exception:
        """Translate ipfshttpclient exceptions to the store taxonomy."""
        if address is not None:
            if isinstance(e, ipfs_exceptions.TimeoutError):
                return NotFoundError("Content", address)
            if isinstance(e, ipfs_exceptions.ErrorResponse):
                message = str(e).lower()
                if "not found" in message or "invalid" in message or "not pinned" in message:
                    return NotFoundError("Content", address)
        if isinstance(e, ipfs_exceptions.ConnectionError):
            return StoreUnavailableError(f"IPFS {action} failed: {e}")
        return StoreError(f"IPFS {action} failed: {e}")

    def put(self, blob: bytes) -> str:
        try:
            cid = self.client.add_bytes(bytes(blob))
        except ipfs_exceptions.Error as e:
            raise self._map_error(e, None, "add") from e
        logger.info("IPFS add: %d bytes -> %s", len(blob), cid)
        return cid

    def get(self, address: str) -> bytes:
        try:
            data = self.client.cat(address)
        except ipfs_exceptions.Error as e:
            raise self._map_error(e, address, "cat") from e
        logger.debug("IPFS cat: %s (%d bytes)", address, len(data))
        return data

    def remove(self, address: str) -> None:
        try:
            self.client.pin.rm(address)
        except ipfs_exceptions.Error as e:
            raise self._map_error(e, address, "unpin") from e
        logger.info("IPFS unpin: %s", address)

    def stat(self, address: str) -> BlobInfo:
        try:
            stats = self.client.object.stat(address)
        except ipfs_exceptions.Error as e:
            raise self._map_error(e, address, "stat") from e
        return BlobInfo(address=address, size=int(stats.get("CumulativeSize", 0)))

    def ping(self) -> bool:
        try:
            version = self.client.version()
        except (StoreError, ipfs_exceptions.Error) as e:
            logger.error("IPFS connection failed: %s", e)
            return False
        logger.debug("IPFS version: %s", version.get("Version"))
        return True

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


# =============================================================================
# Mock Content Store (for testing without a daemon)
# =============================================================================

class MockContentStore(ContentStore):
    """
    In-memory content store.

    Addresses are ``sha256-<hex>`` of the stored bytes, so identical blobs
    share an address, as on IPFS.
    """

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}
        self._lock = threading.Lock()
        self.puts = 0
        self.gets = 0
        self.removes = 0

    @staticmethod
    def address_of(blob: bytes) -> str:
        return "sha256-" + hashlib.sha256(blob).hexdigest()

    def put(self, blob: bytes) -> str:
        blob = bytes(blob)
        address = self.address_of(blob)
        with self._lock:
            self._blobs[address] = blob
            self.puts += 1
        return address

    def get(self, address: str) -> bytes:
        with self._lock:
            self.gets += 1
            if address not in self._blobs:
                raise NotFoundError("Content", address)
            return self._blobs[address]

    def remove(self, address: str) -> None:
        with self._lock:
            self.removes += 1
            self._blobs.pop(address, None)

    def stat(self, address: str) -> BlobInfo:
        with self._lock:
            if address not in self._blobs:
                raise NotFoundError("Content", address)
            return BlobInfo(address=address, size=len(self._blobs[address]))

    def tamper(self, address: str, blob: bytes) -> None:
        """Replace stored bytes without changing the address (adversarial store)."""
        with self._lock:
            self._blobs[address] = bytes(blob)

    def __len__(self) -> int:
        return len(self._blobs)

    def __contains__(self, address: str) -> bool:
        return address in self._blobs
