from textlens.assembly.assembler import DocumentAssembler
from textlens.assembly.base import BaseDocumentEngine
from textlens.assembly.pymupdf_adapter import PyMuPdfAdapter
from textlens.assembly.reportlab_adapter import ReportLabAdapter
from textlens.config.settings import Settings


class AssemblerFactory:
    """Creates the correct PDF engine based on settings."""

    ENGINES: dict[str, type[BaseDocumentEngine]] = {
        "reportlab": ReportLabAdapter,
        "pymupdf": PyMuPdfAdapter,
    }

    @classmethod
    def create_engine(cls, settings: Settings) -> BaseDocumentEngine:
        engine = settings.assembly_engine.lower()
        engine_cls = cls.ENGINES.get(engine)
        if engine_cls is None:
            raise ValueError(
                f"Unknown assembly engine '{engine}'. Choose from: {list(cls.ENGINES)}"
            )
        return engine_cls()

    @classmethod
    def create(cls, settings: Settings) -> DocumentAssembler:
        return DocumentAssembler(
            engine=cls.create_engine(settings),
            output_dir=settings.artifacts_dir,
            timeout_seconds=settings.assembly_timeout_seconds,
        )
