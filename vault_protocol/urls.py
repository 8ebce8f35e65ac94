# vault_protocol/urls.py
"""
VAULT URL helpers

    vault://{fid}/{cid}      certificate + exact content version
    {gateway}/ipfs/{cid}     public gateway link (ciphertext only)

Also generates fresh fids and guesses content types for downloads.
"""

from __future__ import annotations

import mimetypes
import uuid
from typing import Tuple
from urllib.parse import quote, unquote

VAULT_SCHEME = "vault://"
FID_PREFIX = "cert_"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def generate_fid() -> str:
    """New random certificate id: ``cert_<uuid4>``."""
    return f"{FID_PREFIX}{uuid.uuid4()}"


def build_vault_url(fid: str, cid: str) -> str:
    if not fid or not cid:
        raise ValueError("fid and cid are required")
    return f"{VAULT_SCHEME}{quote(fid, safe='')}/{quote(cid, safe='')}"


def parse_vault_url(url: str) -> Tuple[str, str]:
    """
    Split ``vault://{fid}/{cid}`` into (fid, cid).

    Raises:
        ValueError: Wrong scheme or missing component
    """
    if not url or not url.startswith(VAULT_SCHEME):
        raise ValueError(f"Invalid vault:// URL format: {url!r}")

    parts = url[len(VAULT_SCHEME):].rstrip("/").split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(f"Invalid vault:// URL format: {url!r}")

    return unquote(parts[0]), unquote(parts[1])


def gateway_url(gateway: str, cid: str) -> str:
    return f"{gateway.rstrip('/')}/ipfs/{cid}"


def guess_content_type(name: str) -> str:
    """Content type for a stored file name, octet-stream if unknown."""
    guessed, _ = mimetypes.guess_type(name, strict=False)
    return guessed or DEFAULT_CONTENT_TYPE
