"""Signly signing engine: the document lifecycle operations.

The engine owns no state of its own: documents, the creator index and the
audit trail live in repositories injected at construction. Every
operation reads, checks, and then writes inside a single backend
transaction, so the document record, its index entry and its audit
entries change together.

"Now" always comes from the engine's clock, never from the caller.
"""

import base64
import hashlib
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Union

from .deadlines import DEFAULT_HORIZON_MONTHS, parse_deadline, validate_deadline
from .errors import (
    DuplicateDocument,
    InvalidSigners,
    MissingCreator,
    NoDocumentsForCreator,
    NotFound,
)
from .fees import FeeCheck, NoFeeCheck
from .models import (
    AuditAction,
    AuditEntry,
    Document,
    Identity,
    Signer,
    utcnow,
)
from .store import AuditLog, CreatorIndex, DocumentRepository, MemoryBackend

logger = logging.getLogger("signly.engine")

DEFAULT_ID_LENGTH = 12

Clock = Callable[[], datetime]


class SigningEngine:
    """Create, sign, cancel and delete documents.

    Args:
        documents: Document repository.
        creators: Creator index; must share the documents' backend.
        audit: Audit log; defaults to one on the same backend.
        fee_check: Fee capability consulted on creation.
        clock: Source of "now" (timezone-aware UTC).
        derive_ids: Derive ids from (creator, digest); when False the
            digest itself is the id.
        id_length: Length of derived ids.
        horizon_months: Maximum distance of a deadline from creation.
    """

    def __init__(
        self,
        documents: DocumentRepository,
        creators: CreatorIndex,
        audit: Optional[AuditLog] = None,
        fee_check: Optional[FeeCheck] = None,
        clock: Optional[Clock] = None,
        derive_ids: bool = True,
        id_length: int = DEFAULT_ID_LENGTH,
        horizon_months: int = DEFAULT_HORIZON_MONTHS,
    ) -> None:
        if creators.backend is not documents.backend:
            raise ValueError("documents and creators must share one backend")
        self.documents = documents
        self.creators = creators
        self.audit = audit or AuditLog(documents.backend)
        self.fee_check = fee_check or NoFeeCheck()
        self.clock = clock or utcnow
        self.derive_ids = derive_ids
        self.id_length = id_length
        self.horizon_months = horizon_months
        self._backend = documents.backend

    @classmethod
    def in_memory(cls, **kwargs: Any) -> "SigningEngine":
        """Engine over a fresh MemoryBackend."""
        backend = MemoryBackend()
        return cls(DocumentRepository(backend), CreatorIndex(backend), **kwargs)

    # ------------------------------------------------------------------
    # Hashing
    # ------------------------------------------------------------------

    @staticmethod
    def hash_file(path: Path) -> str:
        """Compute SHA-256 hash of a file.

        Args:
            path: Path to the file.

        Returns:
            Hex-encoded SHA-256 digest.

        Raises:
            FileNotFoundError: If the file doesn't exist.
        """
        h = hashlib.sha256()
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                h.update(chunk)
        return h.hexdigest()

    @staticmethod
    def derive_document_id(
        creator: str, content_digest: str, length: int = DEFAULT_ID_LENGTH
    ) -> str:
        """First ``length`` base64 characters of sha256(creator + digest).

        The same creator registering the same content always gets the
        same id, which is how re-submissions are caught as duplicates.
        """
        digest = hashlib.sha256(f"{creator}{content_digest}".encode("utf-8")).digest()
        return base64.b64encode(digest).decode("ascii")[:length]

    def document_id_for(self, creator: Identity, content_digest: str) -> str:
        if self.derive_ids:
            return self.derive_document_id(
                creator.account, content_digest, self.id_length
            )
        return content_digest

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_document(
        self,
        content_digest: str,
        title: str,
        deadline: Union[str, datetime],
        signers: list[str],
        caller: Identity,
        fee_proof: Any = None,
    ) -> Document:
        """Register a document for signature.

        Args:
            content_digest: Fingerprint of the external file (MD5/SHA).
            title: Display label, e.g. "Lease agreement".
            deadline: Signing deadline, ISO 8601 or ``YYYY-MM-DD HH:mm:ss``.
            signers: Accounts that must sign.
            caller: Creator of the document.
            fee_proof: Whatever the configured FeeCheck expects.

        Returns:
            The stored Document.

        Raises:
            InsufficientFee: The fee check rejected ``fee_proof``.
            DuplicateDocument: The id is already tracked.
            InvalidDeadline: Unparseable, passed, or beyond the horizon.
            InvalidSigners: Empty, blank or repeated signer accounts.
        """
        self.fee_check.check(caller, fee_proof)

        document_id = self.document_id_for(caller, content_digest)
        now = self.clock()

        with self._backend.transaction():
            if self.creators.owns(caller.account, document_id):
                raise DuplicateDocument(
                    f"Document {title!r} was already registered for signature"
                )
            if self.documents.contains(document_id):
                raise DuplicateDocument(
                    f"A document with id {document_id} already exists"
                )

            signing_deadline = validate_deadline(
                parse_deadline(deadline), now, self.horizon_months
            )

            document = Document(
                document_id=document_id,
                content_digest=content_digest,
                title=title,
                signing_deadline=signing_deadline,
                created_at=now,
                created_by=caller.account,
                signers=[Signer(account=a) for a in self._check_signers(signers)],
            )

            self.documents.save(document)
            self.creators.add_id(caller.account, document_id)
            self.audit.append(
                AuditEntry(
                    document_id=document_id,
                    action=AuditAction.CREATED,
                    actor=caller.account,
                    timestamp=now,
                    details=f"Document created: {title}",
                )
            )

        logger.info(
            "Document %s created by %s (digest %s)",
            document_id,
            caller,
            content_digest,
        )
        return document

    def get_document(self, document_id: str) -> Document:
        """Look up a document and its signatures.

        Raises:
            NotFound: No such document.
        """
        document = self.documents.get(document_id)
        if document is None:
            raise NotFound(f"Document {document_id} not found")
        return document

    def get_documents(
        self,
        creator: Optional[Identity] = None,
        caller: Optional[Identity] = None,
    ) -> list[Document]:
        """Documents registered by ``creator`` (default: the caller).

        Ids the index lists but the store no longer holds are skipped.

        Raises:
            MissingCreator: Neither creator nor caller was given.
            NoDocumentsForCreator: The creator never registered anything.
        """
        owner = creator or caller
        if owner is None:
            raise MissingCreator("Specify which account's documents to list")

        ids = self.creators.get(owner.account)
        if ids is None:
            raise NoDocumentsForCreator(f"No documents were created by {owner}")

        results: list[Document] = []
        for document_id in ids:
            document = self.documents.get(document_id)
            if document is None:
                logger.warning(
                    "Creator index of %s lists missing document %s",
                    owner,
                    document_id,
                )
                continue
            results.append(document)
        return results

    def add_sign(self, document_id: str, caller: Identity) -> Document:
        """Add the caller's signature to a document.

        Raises:
            NotFound: No such document.
            DocumentCancelled: The document was cancelled.
            DeadlinePassed: The signing deadline is reached.
            NotARequiredSigner: The caller is not a signer.
            AlreadySigned: The caller signed before.
        """
        now = self.clock()
        with self._backend.transaction():
            document = self.get_document(document_id)
            signer = document.add_signature(caller.account, now)
            completed = document.completed_at == signer.signed_at

            self.documents.save(document)
            self.audit.append(
                AuditEntry(
                    document_id=document_id,
                    action=AuditAction.SIGNED,
                    actor=caller.account,
                    timestamp=now,
                    details=f"Signed by {caller}",
                )
            )
            if completed:
                self.audit.append(
                    AuditEntry(
                        document_id=document_id,
                        action=AuditAction.COMPLETED,
                        timestamp=now,
                        details="All signers have signed.",
                    )
                )

        logger.info("Document %s signed by %s", document_id, caller)
        if completed:
            logger.info("Document %s completed", document_id)
        return document

    def cancel_document(self, document_id: str, caller: Identity) -> Document:
        """Cancel one of the caller's documents. Irrevocable.

        Raises:
            NotFound: The caller doesn't own the document, or it's gone.
            DocumentCancelled: It was already cancelled.
        """
        now = self.clock()
        with self._backend.transaction():
            document = self._owned_document(document_id, caller)
            document.cancel(now)

            self.documents.save(document)
            self.audit.append(
                AuditEntry(
                    document_id=document_id,
                    action=AuditAction.CANCELLED,
                    actor=caller.account,
                    timestamp=now,
                    details=f"Cancelled by {caller}",
                )
            )

        logger.info("Document %s cancelled by %s", document_id, caller)
        return document

    def delete_document(self, document_id: str, caller: Identity) -> Document:
        """Remove one of the caller's documents entirely.

        This is a hard delete meant for testing and operations; use
        ``cancel_document`` in normal workflows. The audit trail is kept.

        Returns:
            The removed Document.

        Raises:
            NotFound: The caller doesn't own the document, or it's gone.
        """
        now = self.clock()
        with self._backend.transaction():
            document = self._owned_document(document_id, caller)

            self.creators.remove_id(caller.account, document_id)
            self.documents.delete(document_id)
            self.audit.append(
                AuditEntry(
                    document_id=document_id,
                    action=AuditAction.DELETED,
                    actor=caller.account,
                    timestamp=now,
                    details=f"Deleted by {caller}",
                )
            )

        logger.info("Document %s deleted by %s", document_id, caller)
        return document

    def get_audit_trail(self, document_id: str) -> list[AuditEntry]:
        return self.audit.get_trail(document_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _owned_document(self, document_id: str, caller: Identity) -> Document:
        """Resolve a document through the caller's index entry."""
        ids = self.creators.get(caller.account)
        if ids is None:
            raise NotFound(f"{caller} has not created any documents")
        if document_id not in ids:
            raise NotFound(f"Document {document_id} is not among {caller}'s documents")

        document = self.documents.get(document_id)
        if document is None:
            logger.error(
                "Creator index of %s lists missing document %s", caller, document_id
            )
            raise NotFound(f"Document {document_id} not found")
        return document

    @staticmethod
    def _check_signers(signers: list[str]) -> list[str]:
        accounts = [s.strip() for s in signers]
        if not accounts:
            raise InvalidSigners("A document needs at least one signer")
        if any(not a for a in accounts):
            raise InvalidSigners("Signer accounts must not be blank")
        if len(set(accounts)) != len(accounts):
            raise InvalidSigners("Each signer may appear only once")
        return accounts
