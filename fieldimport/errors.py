"""
Exceptions that cross module boundaries.

Only "hard" failures get a type here. Low yield, unusable OCR and missing
fields are routing signals, not exceptions.
"""


class FieldImportError(Exception):
    """Base class for pipeline failures."""


class OCREngineUnavailable(FieldImportError):
    """The local OCR engine could not be started (binary or language missing)."""


class OCRServiceError(FieldImportError):
    """The external OCR text service failed or answered without text."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status
