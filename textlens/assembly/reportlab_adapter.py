from pathlib import Path
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Flowable, Image as RLImage, Paragraph, SimpleDocTemplate, Spacer

from textlens.assembly.base import BaseDocumentEngine
from textlens.assembly.exceptions import AssemblyError


class ReportLabAdapter(BaseDocumentEngine):
    """Generates PDFs with ReportLab's platypus layout engine."""

    def render(
        self,
        text: str,
        title: str,
        output_path: Path,
        source_image: Path | None = None,
    ) -> None:
        try:
            doc = SimpleDocTemplate(
                str(output_path),
                pagesize=A4,
                leftMargin=50,
                rightMargin=50,
                topMargin=45,
                bottomMargin=45,
                title=title,
            )
            styles = getSampleStyleSheet()
            story: list[Flowable] = [Paragraph(escape(title), styles["Title"]), Spacer(1, 12)]
            if source_image is not None:
                story.append(_scaled_image(source_image, doc.width, doc.height / 2))
                story.append(Spacer(1, 12))
            for line in text.splitlines():
                if line.strip():
                    story.append(Paragraph(escape(line), styles["BodyText"]))
                else:
                    story.append(Spacer(1, 8))
            doc.build(story)
        except AssemblyError:
            raise
        except Exception as exc:
            raise AssemblyError(f"reportlab generation failed: {exc}") from exc


def _scaled_image(path: Path, max_width: float, max_height: float) -> RLImage:
    width, height = ImageReader(str(path)).getSize()
    if width <= 0 or height <= 0:
        raise AssemblyError(f"Source image has no size: {path.name}")
    ratio = min(max_width / width, max_height / height, 1.0)
    return RLImage(str(path), width=width * ratio, height=height * ratio)
