import asyncio
import threading
import uuid
from pathlib import Path

from textlens.assembly.base import BaseDocumentEngine
from textlens.assembly.exceptions import AssemblyError
from textlens.assembly.models import Artifact
from textlens.logging.logger import Log
from textlens.processor.external import call_external
from textlens.storage.image_store import StoredImage


class _OutputClaim:
    """Arbitrates the final output path between the render thread and the caller.

    Either the thread publishes the finished file, or the caller abandons the
    call first; never both.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._abandoned = False

    def publish(self, partial: Path) -> None:
        with self._lock:
            if self._abandoned:
                raise AssemblyError("PDF generation abandoned by caller")
            partial.replace(self.path)

    def abandon(self) -> None:
        with self._lock:
            self._abandoned = True
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            Log.error("Failed to remove abandoned artifact", file=self.path.name, error=exc)


class DocumentAssembler:
    """Produces exactly one uniquely named PDF per call.

    The engine runs in a worker thread and renders to a ``.part`` file that is
    renamed into place only once complete, so a failed or abandoned call never
    leaves a partial artifact behind.
    """

    def __init__(
        self,
        *,
        engine: BaseDocumentEngine,
        output_dir: Path,
        timeout_seconds: float = 60.0,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._engine = engine
        self._output_dir = output_dir
        self._timeout_seconds = timeout_seconds

    async def assemble(
        self,
        text: str,
        title: str,
        source_image: StoredImage | None = None,
    ) -> Artifact:
        """Generate the output PDF.

        Pass ``source_image`` for single-page documents to embed the scan.

        Raises:
            AssemblyError: on engine failure, timeout, or unwritable output directory.
        """
        if not text.strip():
            raise AssemblyError("Cannot assemble a document without text")
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise AssemblyError(f"Artifact directory is not writable: {exc}") from exc

        claim = _OutputClaim(self._output_dir / f"{uuid.uuid4()}.pdf")
        source_path = source_image.path if source_image is not None else None
        try:
            artifact = await call_external(
                asyncio.to_thread(self._render, text, title, claim, source_path),
                self._timeout_seconds,
                on_discard=self.discard,
            )
        except TimeoutError as exc:
            claim.abandon()
            raise AssemblyError(
                f"PDF generation did not finish within {self._timeout_seconds:g}s"
            ) from exc
        except asyncio.CancelledError:
            claim.abandon()
            raise
        Log.info("PDF generated", file=artifact.file_name, size_bytes=artifact.size_bytes)
        return artifact

    def discard(self, artifact: Artifact) -> None:
        """Delete an artifact that will not be referenced by any record."""
        try:
            artifact.path.unlink(missing_ok=True)
        except OSError as exc:
            Log.error("Failed to discard artifact", file=artifact.file_name, error=exc)

    def _render(
        self,
        text: str,
        title: str,
        claim: _OutputClaim,
        source_path: Path | None,
    ) -> Artifact:
        path = claim.path
        partial = path.with_name(path.name + ".part")
        try:
            self._engine.render(text, title, partial, source_path)
            claim.publish(partial)
        except AssemblyError:
            partial.unlink(missing_ok=True)
            raise
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise AssemblyError(f"Failed to write PDF: {exc}") from exc
        return Artifact(path=path, file_name=path.name, size_bytes=path.stat().st_size)
