# tests/test_ipfs_store.py
"""Content store clients: in-memory store, IPFS client adapter, URL mapping."""

import pytest

from vault_protocol.errors import NotFoundError, StoreError, StoreUnavailableError
from vault_protocol.storage import IPFSContentStore, MockContentStore, to_multiaddr


# =============================================================================
# MockContentStore
# =============================================================================

def test_put_get():
    store = MockContentStore()
    address = store.put(b"blob")
    assert store.get(address) == b"blob"
    assert store.stat(address).size == 4
    assert store.exists(address)


def test_identical_blobs_share_address():
    store = MockContentStore()
    assert store.put(b"same") == store.put(b"same")
    assert len(store) == 1


def test_missing_address():
    store = MockContentStore()
    with pytest.raises(NotFoundError):
        store.get("sha256-00")
    assert not store.exists("sha256-00")


def test_remove_is_idempotent():
    store = MockContentStore()
    address = store.put(b"blob")
    store.remove(address)
    store.remove(address)
    assert address not in store


def test_tamper_keeps_address():
    store = MockContentStore()
    address = store.put(b"blob")
    store.tamper(address, b"evil")
    assert store.get(address) == b"evil"


# =============================================================================
# Multiaddr
# =============================================================================

@pytest.mark.parametrize("url, expected", [
    ("http://127.0.0.1:5001", "/ip4/127.0.0.1/tcp/5001/http"),
    ("https://ipfs.local", "/dns/ipfs.local/tcp/443/https"),
    ("http://[::1]:5001", "/ip6/::1/tcp/5001/http"),
    ("/dns/ipfs/tcp/5001/http", "/dns/ipfs/tcp/5001/http"),
])
def test_to_multiaddr(url, expected):
    assert to_multiaddr(url) == expected


def test_to_multiaddr_rejects_other_schemes():
    with pytest.raises(ValueError):
        to_multiaddr("ftp://ipfs.local")


# =============================================================================
# IPFSContentStore (stub client)
# =============================================================================

class StubObjectAPI:
    def __init__(self, blobs):
        self._blobs = blobs

    def stat(self, cid):
        return {"Hash": cid, "CumulativeSize": len(self._blobs[cid]) + 11}


class StubPinAPI:
    def __init__(self, blobs):
        self._blobs = blobs
        self.removed = []

    def rm(self, cid):
        self.removed.append(cid)


class StubIPFSClient:
    """Just the ipfshttpclient.Client surface the store uses."""

    def __init__(self):
        self.blobs = {}
        self.object = StubObjectAPI(self.blobs)
        self.pin = StubPinAPI(self.blobs)
        self.closed = False

    def add_bytes(self, data):
        cid = "Qm" + str(len(self.blobs))
        self.blobs[cid] = data
        return cid

    def cat(self, cid):
        return self.blobs[cid]

    def version(self):
        return {"Version": "0.7.0"}

    def close(self):
        self.closed = True


def test_ipfs_store_calls_client():
    client = StubIPFSClient()
    store = IPFSContentStore("http://127.0.0.1:5001", client=client)

    cid = store.put(b"envelope")
    assert store.get(cid) == b"envelope"
    assert store.stat(cid).size == len(b"envelope") + 11
    store.remove(cid)
    assert client.pin.removed == [cid]
    assert store.ping() is True

    store.close()
    assert client.closed


class FailingClient(StubIPFSClient):
    def __init__(self, error):
        super().__init__()
        self.error = error

    def cat(self, cid):
        raise self.error

    def add_bytes(self, data):
        raise self.error


def test_ipfs_error_mapping():
    ipfshttpclient = pytest.importorskip("ipfshttpclient")
    exceptions = ipfshttpclient.exceptions

    store = IPFSContentStore(client=FailingClient(exceptions.ErrorResponse("merkledag: not found", None)))
    with pytest.raises(NotFoundError):
        store.get("QmMissing")

    store = IPFSContentStore(client=FailingClient(exceptions.ConnectionError(OSError("refused"))))
    with pytest.raises(StoreUnavailableError):
        store.put(b"blob")
    with pytest.raises(StoreUnavailableError):
        store.get("QmAny")

    store = IPFSContentStore(client=FailingClient(exceptions.ErrorResponse("disk full", None)))
    with pytest.raises(StoreError):
        store.put(b"blob")
