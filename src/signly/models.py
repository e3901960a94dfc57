"""Core data models for Signly multi-party document signing.

A Document is registered by a creator account, names the accounts that
must countersign it, and carries a signing deadline. Signatures are
identity-based: the caller's account is the signature. The lifecycle
(pending → partially signed → completed, or cancelled) lives on the
Document itself so every transport enforces the same rules.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .errors import (
    AlreadySigned,
    DeadlinePassed,
    DocumentCancelled,
    NotARequiredSigner,
)


def utcnow() -> datetime:
    """Current wall-clock time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class DocumentStatus(str, Enum):
    """Lifecycle states for a signing document.

    Status is derived from the timestamps on the Document, never stored.
    """

    PENDING = "pending"
    PARTIALLY_SIGNED = "partially_signed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class AuditAction(str, Enum):
    """Actions recorded in the audit trail."""

    CREATED = "created"
    SIGNED = "signed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DELETED = "deleted"


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class Identity(BaseModel):
    """The account on whose behalf an operation runs.

    Transports resolve this from whatever authentication they use
    (a header, a CLI option, an MCP argument) and pass it explicitly
    into every engine call.
    """

    account: str

    model_config = {"frozen": True}

    @field_validator("account")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("account must not be blank")
        return value

    def __str__(self) -> str:
        return self.account


# ---------------------------------------------------------------------------
# Signer
# ---------------------------------------------------------------------------

class Signer(BaseModel):
    """A party who must countersign the document.

    Attributes:
        account: Opaque identity string of the signer.
        signed_at: When the signer signed; None until then.
    """

    account: str
    signed_at: Optional[datetime] = None

    @property
    def is_signed(self) -> bool:
        return self.signed_at is not None


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------

class AuditEntry(BaseModel):
    """Append-only log entry for a document state change.

    Attributes:
        document_id: Related document.
        action: What happened.
        actor: Account that caused it (None for system events).
        timestamp: When it happened.
        details: Free-form description.
    """

    document_id: str
    action: AuditAction
    actor: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    details: str = ""


# ---------------------------------------------------------------------------
# Document (the main entity)
# ---------------------------------------------------------------------------

class Document(BaseModel):
    """A document awaiting multi-party signature.

    The signer set is fixed at creation. ``completed_at`` is stamped once,
    by the signature that leaves no signer pending. ``cancelled_at`` makes
    the document permanently inert.

    Attributes:
        document_id: Unique identifier within the store.
        content_digest: Caller-supplied fingerprint of the external file.
        title: Display label.
        signing_deadline: No signature is accepted at or after this instant.
        created_at: Creation timestamp.
        created_by: Account that registered the document.
        completed_at: When the last required signer signed.
        cancelled_at: When the creator cancelled the document.
        signers: Parties who must sign, in the order given at creation.
    """

    document_id: str
    content_digest: str
    title: str
    signing_deadline: datetime
    created_at: datetime = Field(default_factory=utcnow)
    created_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    signers: list[Signer]

    @field_validator("signers")
    @classmethod
    def _signers_unique(cls, signers: list[Signer]) -> list[Signer]:
        if not signers:
            raise ValueError("a document needs at least one signer")
        accounts = [s.account for s in signers]
        if len(set(accounts)) != len(accounts):
            raise ValueError("signer accounts must be unique")
        return signers

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def is_complete(self) -> bool:
        """All signers have signed."""
        return all(s.is_signed for s in self.signers)

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None

    @property
    def signed_by(self) -> list[str]:
        """Accounts that have signed, in signer order."""
        return [s.account for s in self.signers if s.is_signed]

    @property
    def pending_signers(self) -> list[Signer]:
        """Signers who haven't signed yet."""
        return [s for s in self.signers if not s.is_signed]

    def is_expired(self, now: datetime) -> bool:
        return now >= self.signing_deadline

    def status(self, now: datetime) -> DocumentStatus:
        """Lifecycle status as of ``now``."""
        if self.is_cancelled:
            return DocumentStatus.CANCELLED
        if self.completed_at is not None:
            return DocumentStatus.COMPLETED
        if self.is_expired(now):
            return DocumentStatus.EXPIRED
        if self.signed_by:
            return DocumentStatus.PARTIALLY_SIGNED
        return DocumentStatus.PENDING

    def get_signer(self, account: str) -> Optional[Signer]:
        for s in self.signers:
            if s.account == account:
                return s
        return None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def add_signature(self, account: str, now: datetime) -> Signer:
        """Record ``account``'s signature at ``now``.

        Returns:
            The Signer entry that was stamped.

        Raises:
            DocumentCancelled: The document was cancelled.
            DeadlinePassed: ``now`` is at or after the signing deadline.
            NotARequiredSigner: ``account`` is not among the signers.
            AlreadySigned: ``account`` signed before.
        """
        if self.is_cancelled:
            raise DocumentCancelled(f"Document {self.title!r} has been cancelled")
        if self.is_expired(now):
            raise DeadlinePassed(
                f"The signing deadline for {self.title!r} has passed"
            )

        signer = self.get_signer(account)
        if signer is None:
            raise NotARequiredSigner(
                f"Document {self.title!r} does not require a signature from {account}"
            )
        if signer.is_signed:
            raise AlreadySigned(
                f"{account} has already signed document {self.title!r}"
            )

        signer.signed_at = now
        if self.completed_at is None and self.is_complete:
            self.completed_at = now
        return signer

    def cancel(self, now: datetime) -> None:
        """Stamp ``cancelled_at``.

        Raises:
            DocumentCancelled: The document is already cancelled.
        """
        if self.is_cancelled:
            raise DocumentCancelled(
                f"Document {self.title!r} was already cancelled"
            )
        self.cancelled_at = now
