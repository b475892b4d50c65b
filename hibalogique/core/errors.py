# hibalogique/core/errors.py
from __future__ import annotations


class QuoteError(Exception):
    """
    Base for every error the session controller turns into a user notice.

    `message` is the short text shown to the user; `code` is a stable
    identifier for logs and tests.
    """

    code = "QUOTE_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(QuoteError):
    """A required field is blank or an edited value is not acceptable."""

    code = "VALIDATION_ERROR"


class EmptyReferenceError(ValidationError):
    code = "EMPTY_REFERENCE"


class DuplicateReferenceError(QuoteError):
    code = "DUPLICATE_REFERENCE"


class NotFoundError(QuoteError):
    code = "NOT_FOUND"


class CorruptDataError(QuoteError):
    """Persisted or imported content could not be parsed."""

    code = "CORRUPT_DATA"


class InvalidFormatError(QuoteError):
    """Import bundle parsed fine but has no `history` collection."""

    code = "INVALID_FORMAT"


class PersistenceError(QuoteError):
    """The key-value collaborator refused a write; memory was left as it was."""

    code = "PERSISTENCE_FAILED"
