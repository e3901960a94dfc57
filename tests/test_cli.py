"""Tests for the Signly command line."""

import hashlib
from datetime import datetime, timedelta, timezone

import pytest
from click.testing import CliRunner
from pydantic import ValidationError

from signly.cli import main
from signly.config import SignlySettings, build_engine
from signly.engine import SigningEngine


DIGEST = "9e107d9d372bb6826bd81d3542a419d6"


def _deadline(**kwargs) -> str:
    moment = datetime.now(timezone.utc) + timedelta(**kwargs)
    return moment.strftime("%Y-%m-%d %H:%M:%S")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, tmp_path):
    def _invoke(*args, account=None):
        base = ["--data-dir", str(tmp_path)]
        if account:
            base += ["--account", account]
        return runner.invoke(main, base + list(args))

    return _invoke


@pytest.fixture
def stored(tmp_path):
    """Engine reading the same data directory as the CLI."""
    return build_engine(SignlySettings(data_dir=tmp_path, backend="file"))


@pytest.fixture
def doc_id(invoke):
    result = invoke(
        "create",
        "--digest", DIGEST,
        "--title", "Lease",
        "--deadline", _deadline(days=1),
        "--signer", "alice",
        "--signer", "bob",
        account="alice",
    )
    assert result.exit_code == 0, result.output
    return SigningEngine.derive_document_id("alice", DIGEST)


class TestCreate:
    def test_create(self, doc_id, stored):
        doc = stored.get_document(doc_id)
        assert doc.title == "Lease"
        assert [s.account for s in doc.signers] == ["alice", "bob"]

    def test_create_from_file(self, invoke, tmp_path, stored):
        pdf = tmp_path / "lease.pdf"
        pdf.write_bytes(b"%PDF-1.4 lease")
        result = invoke(
            "create",
            "--file", str(pdf),
            "--title", "Lease",
            "--deadline", _deadline(days=2),
            "--signer", "bob",
            account="alice",
        )
        assert result.exit_code == 0, result.output
        digest = hashlib.sha256(b"%PDF-1.4 lease").hexdigest()
        doc = stored.get_document(SigningEngine.derive_document_id("alice", digest))
        assert doc.content_digest == digest

    def test_needs_account(self, invoke):
        result = invoke(
            "create", "--digest", DIGEST, "--title", "x",
            "--deadline", _deadline(days=1), "--signer", "bob",
        )
        assert result.exit_code == 1
        assert "account" in result.output

    def test_deadline_too_far(self, invoke):
        result = invoke(
            "create", "--digest", DIGEST, "--title", "x",
            "--deadline", _deadline(days=240), "--signer", "bob",
            account="alice",
        )
        assert result.exit_code == 1
        assert "InvalidDeadline" in result.output

    def test_duplicate(self, invoke, doc_id):
        result = invoke(
            "create", "--digest", DIGEST, "--title", "Again",
            "--deadline", _deadline(days=1), "--signer", "bob",
            account="alice",
        )
        assert result.exit_code == 1
        assert "DuplicateDocument" in result.output


class TestSignFlow:
    def test_sign_until_complete(self, invoke, doc_id, stored):
        assert invoke("sign", doc_id, account="alice").exit_code == 0
        assert stored.get_document(doc_id).completed_at is None

        assert invoke("sign", doc_id, account="bob").exit_code == 0
        assert stored.get_document(doc_id).completed_at is not None

        result = invoke("sign", doc_id, account="alice")
        assert result.exit_code == 1
        assert "AlreadySigned" in result.output

    def test_stranger(self, invoke, doc_id):
        result = invoke("sign", doc_id, account="mallory")
        assert result.exit_code == 1
        assert "NotARequiredSigner" in result.output


class TestOwnerCommands:
    def test_cancel(self, invoke, doc_id, stored):
        result = invoke("cancel", doc_id, "--yes", account="alice")
        assert result.exit_code == 0, result.output
        assert stored.get_document(doc_id).cancelled_at is not None

    def test_cancel_by_other(self, invoke, doc_id):
        result = invoke("cancel", doc_id, "--yes", account="bob")
        assert result.exit_code == 1
        assert "NotFound" in result.output

    def test_delete(self, invoke, doc_id, stored):
        result = invoke("delete", doc_id, "--yes", account="alice")
        assert result.exit_code == 0, result.output
        assert not stored.documents.contains(doc_id)
        assert invoke("show", doc_id).exit_code == 1


class TestReadCommands:
    def test_show(self, invoke, doc_id):
        result = invoke("show", doc_id)
        assert result.exit_code == 0
        assert "Lease" in result.output

    def test_list(self, invoke, doc_id):
        result = invoke("list", account="alice")
        assert result.exit_code == 0
        assert "Lease" in result.output

    def test_list_other_creator(self, invoke, doc_id):
        result = invoke("list", "--creator", "alice", account="bob")
        assert result.exit_code == 0
        assert "Lease" in result.output

    @pytest.mark.parametrize("args,account", [((), " "), (("--creator", " "), "alice")])
    def test_list_blank_account(self, invoke, args, account):
        result = invoke("list", *args, account=account)
        assert result.exit_code == 1
        assert "blank" in result.output or "No account given" in result.output
        assert not isinstance(result.exception, ValidationError)

    def test_list_nothing(self, invoke):
        result = invoke("list", account="bob")
        assert result.exit_code == 1
        assert "NoDocumentsForCreator" in result.output

    def test_audit(self, invoke, doc_id):
        invoke("sign", doc_id, account="bob")
        result = invoke("audit", doc_id)
        assert result.exit_code == 0
        assert "created" in result.output
        assert "signed" in result.output

    def test_digest(self, invoke, tmp_path):
        f = tmp_path / "x.bin"
        f.write_bytes(b"abc")
        result = invoke("digest", str(f))
        assert result.output.strip() == hashlib.sha256(b"abc").hexdigest()
