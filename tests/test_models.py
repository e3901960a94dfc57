"""Tests for Signly Pydantic models."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from signly.errors import (
    AlreadySigned,
    DeadlinePassed,
    DocumentCancelled,
    NotARequiredSigner,
)
from signly.models import Document, DocumentStatus, Identity, Signer

from conftest import NOW


def _doc(*accounts: str) -> Document:
    return Document(
        document_id="abc123",
        content_digest="d41d8cd98f00b204e9800998ecf8427e",
        title="NDA",
        signing_deadline=NOW + timedelta(days=1),
        created_at=NOW,
        signers=[Signer(account=a) for a in accounts],
    )


class TestIdentity:
    """Identity is a plain account string, never blank."""

    def test_strips_whitespace(self):
        assert Identity(account="  alice ").account == "alice"

    def test_blank_rejected(self):
        with pytest.raises(ValidationError):
            Identity(account="   ")

    def test_frozen_and_hashable(self):
        a = Identity(account="alice")
        assert a == Identity(account="alice")
        assert len({a, Identity(account="alice")}) == 1
        assert str(a) == "alice"


class TestDocumentValidation:
    """Signer set is non-empty and unique."""

    def test_no_signers(self):
        with pytest.raises(ValidationError):
            _doc()

    def test_duplicate_signer(self):
        with pytest.raises(ValidationError):
            _doc("alice", "alice")

    def test_json_roundtrip_keeps_timestamps(self):
        doc = _doc("alice")
        doc.add_signature("alice", NOW)
        restored = Document.model_validate_json(doc.model_dump_json())
        assert restored.signers[0].signed_at == NOW
        assert restored.completed_at == NOW


class TestSigning:
    """add_signature drives the lifecycle."""

    def test_partial_then_complete(self):
        doc = _doc("alice", "bob")
        assert doc.status(NOW) == DocumentStatus.PENDING

        doc.add_signature("alice", NOW)
        assert doc.completed_at is None
        assert doc.signed_by == ["alice"]
        assert doc.status(NOW) == DocumentStatus.PARTIALLY_SIGNED

        later = NOW + timedelta(hours=1)
        doc.add_signature("bob", later)
        assert doc.completed_at == later
        assert doc.is_complete
        assert doc.pending_signers == []
        assert doc.status(later) == DocumentStatus.COMPLETED

    def test_signing_order_does_not_matter(self):
        doc = _doc("alice", "bob")
        doc.add_signature("bob", NOW)
        assert doc.completed_at is None
        doc.add_signature("alice", NOW)
        assert doc.completed_at == NOW
        assert doc.signed_by == ["alice", "bob"]

    def test_stranger_cannot_sign(self):
        with pytest.raises(NotARequiredSigner):
            _doc("alice").add_signature("mallory", NOW)

    def test_double_sign(self):
        doc = _doc("alice", "bob")
        doc.add_signature("alice", NOW)
        with pytest.raises(AlreadySigned):
            doc.add_signature("alice", NOW + timedelta(minutes=5))

    def test_at_deadline(self):
        doc = _doc("alice")
        with pytest.raises(DeadlinePassed):
            doc.add_signature("alice", doc.signing_deadline)

    def test_cancelled_checked_before_signer(self):
        doc = _doc("alice")
        doc.cancel(NOW)
        with pytest.raises(DocumentCancelled):
            doc.add_signature("mallory", NOW)


class TestCancel:
    def test_cancel_stamps_once(self):
        doc = _doc("alice")
        doc.cancel(NOW)
        assert doc.cancelled_at == NOW
        assert doc.status(NOW) == DocumentStatus.CANCELLED

        with pytest.raises(DocumentCancelled):
            doc.cancel(NOW + timedelta(hours=1))
        assert doc.cancelled_at == NOW

    def test_expired_status(self):
        doc = _doc("alice")
        assert doc.status(doc.signing_deadline) == DocumentStatus.EXPIRED
        assert doc.is_expired(doc.signing_deadline)
