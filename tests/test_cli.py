# tests/test_cli.py
"""vault-protocol command line: JSON output and exit codes."""

import json
import re

import pytest

from vault_protocol.cli import EXIT_CODES, EXIT_NOT_VALID, EXIT_OK, EXIT_USAGE, main


def run(capsys, lifecycle, *argv):
    code = main(list(argv), lifecycle=lifecycle)
    out = capsys.readouterr().out
    return code, json.loads(out)


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "diploma.pdf"
    path.write_bytes(b"%PDF-1.7 test certificate")
    return path


def test_keygen(capsys):
    code, out = run(capsys, None, "keygen")
    assert code == EXIT_OK
    assert re.fullmatch(r"[0-9a-f]{64}", out["FILE_ENCRYPTION_KEY"])


def test_issue_verify_download(capsys, lifecycle, pdf_file, tmp_path):
    code, issued = run(capsys, lifecycle, "issue", str(pdf_file), "--email", "a@x.com", "--fid", "cert_1")
    assert code == EXIT_OK
    assert issued["fid"] == "cert_1"
    assert issued["vault_url"] == f"vault://cert_1/{issued['cid']}"

    code, verified = run(capsys, lifecycle, "verify", "cert_1", "--email", "a@x.com")
    assert code == EXIT_OK
    assert verified["is_valid"] is True

    code, _ = run(capsys, lifecycle, "verify", "cert_1", "--email", "b@x.com")
    assert code == EXIT_NOT_VALID

    target = tmp_path / "out.pdf"
    code, downloaded = run(capsys, lifecycle, "download", "cert_1", "-o", str(target))
    assert code == EXIT_OK
    assert downloaded["name"] == "diploma.pdf"
    assert target.read_bytes() == pdf_file.read_bytes()

    target = tmp_path / "opened.pdf"
    code, _ = run(capsys, lifecycle, "open", issued["vault_url"], "-o", str(target))
    assert code == EXIT_OK
    assert target.read_bytes() == pdf_file.read_bytes()


def test_update_history_list_show(capsys, lifecycle, pdf_file, tmp_path):
    run(capsys, lifecycle, "issue", str(pdf_file), "--email", "a@x.com", "--fid", "cert_1")

    v2 = tmp_path / "v2.pdf"
    v2.write_bytes(b"%PDF-1.7 corrected")
    code, updated = run(capsys, lifecycle, "update", "cert_1", str(v2))
    assert code == EXIT_OK

    code, history = run(capsys, lifecycle, "history", "cert_1")
    assert history["version_history"][-1] == updated["new_cid"]

    code, listed = run(capsys, lifecycle, "list", "--email", "a@x.com")
    assert listed["count"] == 1

    code, shown = run(capsys, lifecycle, "show", "cert_1")
    assert shown["cid"] == updated["new_cid"]


def test_delete_then_download(capsys, lifecycle, pdf_file):
    run(capsys, lifecycle, "issue", str(pdf_file), "--email", "a@x.com", "--fid", "cert_1")

    code, deleted = run(capsys, lifecycle, "delete", "cert_1")
    assert code == EXIT_OK
    assert deleted["content_removed"] is True

    code, error = run(capsys, lifecycle, "download", "cert_1")
    assert code == EXIT_CODES["inactive"]
    assert error["error"] == "inactive"
    assert error["step"] == "ledger.read"


def test_error_exit_codes(capsys, lifecycle, pdf_file):
    code, error = run(capsys, lifecycle, "show", "cert_missing")
    assert code == EXIT_CODES["not_found"]
    assert error["error"] == "not_found"

    run(capsys, lifecycle, "issue", str(pdf_file), "--email", "a@x.com", "--fid", "cert_1")
    code, error = run(capsys, lifecycle, "issue", str(pdf_file), "--email", "a@x.com", "--fid", "cert_1")
    assert code == EXIT_CODES["duplicate"]

    code, error = run(capsys, lifecycle, "delete", "cert_1", "--acting-as", "0x" + "2" * 40)
    assert code == EXIT_CODES["unauthorized"]


def test_open_invalid_url(capsys, lifecycle):
    code, error = run(capsys, lifecycle, "open", "https://example.com/x")
    assert code == EXIT_USAGE
    assert error["error"] == "invalid_argument"


def test_status(capsys, lifecycle):
    code, report = run(capsys, lifecycle, "status")
    assert code == EXIT_OK
    assert report["healthy"] is True


def test_distinct_exit_codes():
    codes = {EXIT_CODES[k] for k in ("not_found", "duplicate", "unauthorized", "inactive",
                                     "address_mismatch", "integrity_failure")}
    assert len(codes) == 6


def test_unencodable_name_is_usage_error(capsys, lifecycle, pdf_file):
    # Undecodable argv bytes arrive as lone surrogates
    code, error = run(capsys, lifecycle, "issue", str(pdf_file), "--email", "a@x.com",
                      "--name", "\udcff.pdf")
    assert code == EXIT_USAGE
    assert error["error"] == "invalid_argument"
    assert lifecycle.store.puts == 0


def test_empty_email_is_usage_error(capsys, lifecycle, pdf_file):
    code, error = run(capsys, lifecycle, "issue", str(pdf_file), "--email", "")
    assert code == EXIT_USAGE
    assert error["error"] == "invalid_argument"
    assert error["step"] == "validate"
