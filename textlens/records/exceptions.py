class RecordError(Exception):
    """Base exception for document record operations."""


class DocumentNotFoundError(RecordError):
    """Raised when a document cannot be found in the database."""


class RecordStateError(RecordError):
    """Raised when a lifecycle transition is not allowed from the record's current state."""
