"""
Error taxonomy for the intake flow.

None of these are fatal. Field and upload problems surface as inline
messages; collaborator failures are caught at the boundary and turned into
tagged results; export failures abort only the export.
"""
from __future__ import annotations


class IntakeError(Exception):
    """Base class for intake errors."""


class FieldValidationError(IntakeError):
    """Raised when a value fails its field rule."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class UploadError(IntakeError):
    """A single file could not be uploaded."""


class UploadTimeout(IntakeError):
    """In-flight uploads did not settle before the wait deadline."""


class RemoteOperationFailure(IntakeError):
    """A persistence or storage collaborator failed."""


class StorageError(RemoteOperationFailure):
    """Raised by blob storage backends on transport errors."""


class PreviewGenerationFailure(IntakeError):
    """Rendering a submission to an image or PDF failed."""
