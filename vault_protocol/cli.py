# vault_protocol/cli.py
"""
VAULT Protocol Command Line

Usage:
    vault-protocol keygen
    vault-protocol issue diploma.pdf --email a@x.com [--fid cert_...]
    vault-protocol verify cert_... --email a@x.com
    vault-protocol update cert_... new.pdf
    vault-protocol delete cert_...
    vault-protocol download cert_... [--cid Qm...] [-o out.pdf]
    vault-protocol open vault://cert_.../Qm... [-o out.pdf]
    vault-protocol show cert_...
    vault-protocol list --email a@x.com
    vault-protocol history cert_...
    vault-protocol status

Settings come from the environment (see vault_protocol.config).
Results are printed as JSON on stdout; logs go to stderr.

Exit status:
    0 ok, 1 unexpected error, 2 usage / configuration, then one status per
    VaultError code (see EXIT_CODES). ``verify`` exits 0 only when valid.
"""

from __future__ import annotations

import argparse
import json
import logging
import secrets
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import __version__
from .errors import VaultError
from .lifecycle import CertificateLifecycle, build_lifecycle


logger = logging.getLogger("vault-protocol.cli")


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

EXIT_CODES: Dict[str, int] = {
    "configuration_error": 2,
    "dependency_missing": 2,
    "invalid_argument": 2,
    "not_found": 3,
    "duplicate": 4,
    "unauthorized": 5,
    "inactive": 6,
    "address_mismatch": 7,
    "integrity_failure": 8,
    "malformed_envelope": 9,
    "unsupported_algorithm": 9,
    "store_error": 10,
    "store_unavailable": 10,
    "ledger_error": 11,
    "ledger_unavailable": 11,
}

EXIT_NOT_VALID = 12


def exit_code_for(error: VaultError) -> int:
    return EXIT_CODES.get(error.code, EXIT_FAILURE)


# =============================================================================
# Output
# =============================================================================

def _emit(obj: Any) -> None:
    sys.stdout.write(json.dumps(obj, indent=2, ensure_ascii=False, default=str))
    sys.stdout.write("\n")
    sys.stdout.flush()


def _read_file(path: str) -> bytes:
    return Path(path).read_bytes()


def _write_download(result, output: Optional[str]) -> None:
    target = Path(output or Path(result.name).name)
    target.write_bytes(result.content)
    out = result.to_dict()
    out["written_to"] = str(target)
    _emit(out)


# =============================================================================
# Commands
# =============================================================================

def _cmd_keygen(args: argparse.Namespace, lifecycle: Optional[CertificateLifecycle]) -> int:
    _emit({"FILE_ENCRYPTION_KEY": secrets.token_hex(32)})
    return EXIT_OK


def _cmd_issue(args, lifecycle) -> int:
    name = args.name or Path(args.file).name
    result = lifecycle.issue(_read_file(args.file), name, args.email, fid=args.fid)
    _emit(result.to_dict())
    return EXIT_OK


def _cmd_verify(args, lifecycle) -> int:
    result = lifecycle.verify(args.fid, args.email)
    _emit(result.to_dict())
    return EXIT_OK if result.is_valid else EXIT_NOT_VALID


def _cmd_update(args, lifecycle) -> int:
    name = args.name or Path(args.file).name
    result = lifecycle.update(args.fid, _read_file(args.file), name, acting_identity=args.acting_as)
    _emit(result.to_dict())
    return EXIT_OK


def _cmd_delete(args, lifecycle) -> int:
    result = lifecycle.delete(args.fid, acting_identity=args.acting_as)
    _emit(result.to_dict())
    return EXIT_OK


def _cmd_download(args, lifecycle) -> int:
    _write_download(lifecycle.download(args.fid, expected_cid=args.cid), args.output)
    return EXIT_OK


def _cmd_open(args, lifecycle) -> int:
    try:
        result = lifecycle.open_vault_url(args.url)
    except ValueError as e:
        if isinstance(e, VaultError):
            raise
        _emit({"error": "invalid_argument", "message": str(e)})
        return EXIT_USAGE
    _write_download(result, args.output)
    return EXIT_OK


def _cmd_show(args, lifecycle) -> int:
    _emit(lifecycle.get_certificate(args.fid).to_dict())
    return EXIT_OK


def _cmd_list(args, lifecycle) -> int:
    certs = lifecycle.certificates_for(args.email)
    _emit({"email": args.email, "count": len(certs), "certificates": [c.to_dict() for c in certs]})
    return EXIT_OK


def _cmd_history(args, lifecycle) -> int:
    _emit({"fid": args.fid, "version_history": lifecycle.history(args.fid)})
    return EXIT_OK


def _cmd_status(args, lifecycle) -> int:
    report = lifecycle.status()
    _emit(report)
    return EXIT_OK if report["healthy"] else EXIT_FAILURE


COMMANDS: Dict[str, Callable[..., int]] = {
    "keygen": _cmd_keygen,
    "issue": _cmd_issue,
    "verify": _cmd_verify,
    "update": _cmd_update,
    "delete": _cmd_delete,
    "download": _cmd_download,
    "open": _cmd_open,
    "show": _cmd_show,
    "list": _cmd_list,
    "history": _cmd_history,
    "status": _cmd_status,
}


# =============================================================================
# Parser
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-protocol",
        description="Encrypted certificate issuance over IPFS and a ledger contract",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    sub.add_parser("keygen", help="print a new FILE_ENCRYPTION_KEY")

    p = sub.add_parser("issue", help="encrypt, store and record a file")
    p.add_argument("file")
    p.add_argument("--email", required=True)
    p.add_argument("--fid", help="certificate id (default: cert_<uuid4>)")
    p.add_argument("--name", help="stored file name (default: basename of FILE)")

    p = sub.add_parser("verify", help="check an email against a certificate")
    p.add_argument("fid")
    p.add_argument("--email", required=True)

    p = sub.add_parser("update", help="replace certificate content")
    p.add_argument("fid")
    p.add_argument("file")
    p.add_argument("--name")
    p.add_argument("--acting-as", help="acting identity (default: configured account)")

    p = sub.add_parser("delete", help="deactivate a certificate")
    p.add_argument("fid")
    p.add_argument("--acting-as")

    p = sub.add_parser("download", help="fetch and decrypt certificate content")
    p.add_argument("fid")
    p.add_argument("--cid", help="expected content address")
    p.add_argument("-o", "--output")

    p = sub.add_parser("open", help="download a vault://fid/cid URL")
    p.add_argument("url")
    p.add_argument("-o", "--output")

    p = sub.add_parser("show", help="print a certificate record")
    p.add_argument("fid")

    p = sub.add_parser("list", help="certificates issued to an email")
    p.add_argument("--email", required=True)

    p = sub.add_parser("history", help="content addresses a certificate has pointed to")
    p.add_argument("fid")

    sub.add_parser("status", help="ledger / store / codec health")

    return parser


# =============================================================================
# Entry Point
# =============================================================================

def main(argv: Optional[List[str]] = None, lifecycle: Optional[CertificateLifecycle] = None) -> int:
    """
    Run one command.

    Args:
        argv: Arguments (default: sys.argv[1:])
        lifecycle: Pre-built lifecycle (default: production clients from env)
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        if lifecycle is None and args.command != "keygen":
            lifecycle = build_lifecycle()
        return COMMANDS[args.command](args, lifecycle)
    except VaultError as e:
        logger.error("%s failed: %s", args.command, e)
        _emit(e.to_dict())
        return exit_code_for(e)
    except (ValueError, TypeError) as e:
        logger.error("%s failed: %s", args.command, e)
        _emit({"error": "invalid_argument", "message": str(e)})
        return EXIT_USAGE
    except OSError as e:
        logger.error("%s failed: %s", args.command, e)
        _emit({"error": "io_error", "message": str(e)})
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
