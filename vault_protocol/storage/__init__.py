# vault_protocol/storage/__init__.py
"""
VAULT Storage Layer

Content-addressed blob storage for encrypted envelopes.

Components:
    ContentStore: Abstract put / get / remove contract
    IPFSContentStore: IPFS daemon via ipfshttpclient
    MockContentStore: In-memory store for tests
"""

from .ipfs_store import (
    ContentStore,
    IPFSContentStore,
    MockContentStore,
    BlobInfo,
    IPFS_AVAILABLE,
    to_multiaddr,
)

__all__ = [
    "ContentStore",
    "IPFSContentStore",
    "MockContentStore",
    "BlobInfo",
    "IPFS_AVAILABLE",
    "to_multiaddr",
]
