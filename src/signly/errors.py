"""Typed rejections raised by the Signly engine.

Every failure an operation can report is a subclass of :class:`SignlyError`.
The engine raises them; the REST API, CLI and MCP server translate them at
the edge using ``kind`` and ``status_code``.
"""


class SignlyError(Exception):
    """Base class for caller-visible rejections.

    Attributes:
        kind: Stable error name exposed over every transport.
        status_code: HTTP status the REST API answers with.
    """

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def kind(self) -> str:
        return type(self).__name__


class NotFound(SignlyError):
    """Document does not exist or is not owned by the caller."""

    status_code = 404


class NoDocumentsForCreator(SignlyError):
    """The creator has never registered a document."""

    status_code = 404


class MissingCreator(SignlyError):
    """Listing was requested without a creator or a caller."""

    status_code = 422


class DuplicateDocument(SignlyError):
    """The same content was already registered."""

    status_code = 409


class InvalidDeadline(SignlyError):
    """Deadline is unparseable, already passed, or beyond the horizon."""

    status_code = 422


class InvalidSigners(SignlyError):
    """Signer list is empty, has blanks, or repeats an account."""

    status_code = 422


class InsufficientFee(SignlyError):
    status_code = 402


class DocumentCancelled(SignlyError):
    status_code = 409


class DeadlinePassed(SignlyError):
    status_code = 409


class NotARequiredSigner(SignlyError):
    status_code = 403


class AlreadySigned(SignlyError):
    status_code = 409
