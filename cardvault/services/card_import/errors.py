"""Exceptions raised by the card import pipeline."""

from typing import Optional


class CardImportError(Exception):
    """
    Base exception for import failures.

    Carries the file being imported and the pipeline stage that failed
    (detect, parse, process or persist) so callers can report it.
    """

    stage = "import"

    def __init__(self, message: str, filename: Optional[str] = None, stage: Optional[str] = None):
        self.message = message
        self.filename = filename
        if stage is not None:
            self.stage = stage
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        where = f" ({self.filename})" if self.filename else ""
        return f"[{self.stage}]{where} {self.message}"

    def with_filename(self, filename: Optional[str]) -> "CardImportError":
        """Attach the file name if the raiser did not know it."""
        if filename and not self.filename:
            self.filename = filename
            self.args = (self._format_message(),)
        return self


class UnsupportedFormatError(CardImportError):
    """Input could not be classified as any known card format."""
    stage = "detect"


class MalformedContainerError(CardImportError):
    """PNG, ZIP or package structure is invalid."""
    stage = "parse"


class MissingEmbeddedDataError(CardImportError):
    """PNG has no recognized card metadata chunk."""
    stage = "parse"


class UnrecognizedSchemaError(CardImportError):
    """JSON does not match any card or lorebook shape."""
    stage = "parse"


class ValidationFailedError(CardImportError):
    """Processed card or collection failed validation."""
    stage = "process"


class StorageWriteFailedError(CardImportError):
    """A storage adapter call failed while persisting an entity."""
    stage = "persist"

    def __init__(self, message: str, operation: str, filename: Optional[str] = None):
        self.operation = operation
        super().__init__(message, filename=filename)
