class RecognitionError(Exception):
    """Raised when text recognition fails for one image."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class RecognitionNetworkError(RecognitionError):
    """Raised when the recognition provider is unreachable, times out, or rejects the call."""


class NoTextDetectedError(RecognitionError):
    """Raised when recognition succeeded but produced no usable text."""
