from abc import ABC, abstractmethod

from textlens.recognition.models import RecognitionResponse


class BaseRecognitionClient(ABC):
    """Contract for provider-specific text recognition adapters."""

    @abstractmethod
    async def recognize(
        self,
        image_bytes: bytes,
        *,
        mime_type: str,
        language: str,
        detect_orientation: bool,
        scale: bool,
    ) -> RecognitionResponse:
        """Extract text from one encoded image.

        Args:
            image_bytes: Encoded image payload.
            mime_type: MIME type of ``image_bytes``.
            language: Language hint (ISO 639-2, e.g. "eng").
            detect_orientation: Ask the provider to auto-rotate the image.
            scale: Ask the provider to upscale low-resolution input.

        Returns:
            RecognitionResponse with the raw text and optional confidence.

        Raises:
            RecognitionNetworkError: on transport or API failure.
            RecognitionError: when the provider reports a processing error.
        """

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""
