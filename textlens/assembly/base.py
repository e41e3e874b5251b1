from abc import ABC, abstractmethod
from pathlib import Path


class BaseDocumentEngine(ABC):
    """Contract for all PDF generation adapters."""

    @abstractmethod
    def render(
        self,
        text: str,
        title: str,
        output_path: Path,
        source_image: Path | None = None,
    ) -> None:
        """Write a PDF containing ``text`` to ``output_path``.

        Args:
            text: Recognized text, already merged across pages.
            title: Document title shown at the top of the first page.
            output_path: Destination file; must not exist yet.
            source_image: Optional scan to embed above the text.

        Raises:
            AssemblyError: if generation fails for any reason.
        """
