from enum import StrEnum

from textlens.assembly.exceptions import AssemblyError
from textlens.imaging.exceptions import PreprocessError
from textlens.recognition.exceptions import NoTextDetectedError, RecognitionError
from textlens.storage.exceptions import ImageStoreError


class ProcessorError(Exception):
    """Base exception for all processor-related errors."""


class InvalidInputError(ProcessorError):
    """Raised when a scan request is rejected before any work starts."""


class ErrorCategory(StrEnum):
    IO_FAILURE = "io_failure"
    PREPROCESS_FAILURE = "preprocess_failure"
    RECOGNITION_FAILURE = "recognition_failure"
    NO_TEXT_DETECTED = "no_text_detected"
    ASSEMBLY_FAILURE = "assembly_failure"
    INVALID_INPUT = "invalid_input"
    INTERNAL_ERROR = "internal_error"
    CANCELLED = "cancelled"


USER_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.IO_FAILURE: "Failed to store the uploaded image.",
    ErrorCategory.PREPROCESS_FAILURE: (
        "The image could not be read. Please upload a JPEG, PNG, WebP, TIFF or BMP image."
    ),
    ErrorCategory.RECOGNITION_FAILURE: "Text recognition failed. Please try again later.",
    ErrorCategory.NO_TEXT_DETECTED: (
        "No text could be detected in the image. Please try with a clearer image."
    ),
    ErrorCategory.ASSEMBLY_FAILURE: "Failed to generate the PDF document.",
    ErrorCategory.INVALID_INPUT: "The request did not contain a valid image.",
    ErrorCategory.INTERNAL_ERROR: "Failed to process image.",
    ErrorCategory.CANCELLED: "Processing was cancelled.",
}

# most specific first: NoTextDetectedError is a RecognitionError
_CATEGORY_BY_TYPE: tuple[tuple[type[Exception], ErrorCategory], ...] = (
    (InvalidInputError, ErrorCategory.INVALID_INPUT),
    (ImageStoreError, ErrorCategory.IO_FAILURE),
    (PreprocessError, ErrorCategory.PREPROCESS_FAILURE),
    (NoTextDetectedError, ErrorCategory.NO_TEXT_DETECTED),
    (RecognitionError, ErrorCategory.RECOGNITION_FAILURE),
    (AssemblyError, ErrorCategory.ASSEMBLY_FAILURE),
)


def categorize(exc: BaseException) -> ErrorCategory:
    """Map an exception raised during a pipeline run to its error category."""
    for exc_type, category in _CATEGORY_BY_TYPE:
        if isinstance(exc, exc_type):
            return category
    return ErrorCategory.INTERNAL_ERROR
