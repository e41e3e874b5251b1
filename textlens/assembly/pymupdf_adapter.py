import textwrap
from pathlib import Path

import pymupdf

from textlens.assembly.base import BaseDocumentEngine
from textlens.assembly.exceptions import AssemblyError

_MARGIN = 50
_TITLE_SIZE = 18
_FONT_SIZE = 11
_LINE_HEIGHT = 15
_WRAP_COLUMNS = 90


class PyMuPdfAdapter(BaseDocumentEngine):
    """Generates PDFs with PyMuPDF, one wrapped text line at a time."""

    def render(
        self,
        text: str,
        title: str,
        output_path: Path,
        source_image: Path | None = None,
    ) -> None:
        try:
            width, height = pymupdf.paper_size("a4")
            with pymupdf.open() as doc:  # type: ignore[no-untyped-call]
                doc.set_metadata({"title": title})
                page = doc.new_page(width=width, height=height)
                y = _MARGIN + _TITLE_SIZE
                page.insert_text((_MARGIN, y), title, fontsize=_TITLE_SIZE, fontname="hebo")
                y += _LINE_HEIGHT

                if source_image is not None:
                    rect = pymupdf.Rect(_MARGIN, y, width - _MARGIN, y + (height - 2 * _MARGIN) / 2)
                    page.insert_image(rect, filename=str(source_image), keep_proportion=True)
                    y = rect.y1 + _LINE_HEIGHT

                for line in _wrap(text):
                    if y + _LINE_HEIGHT > height - _MARGIN:
                        page = doc.new_page(width=width, height=height)
                        y = _MARGIN
                    y += _LINE_HEIGHT
                    if line:
                        page.insert_text((_MARGIN, y), line, fontsize=_FONT_SIZE, fontname="helv")
                doc.save(str(output_path))
        except AssemblyError:
            raise
        except Exception as exc:
            raise AssemblyError(f"pymupdf generation failed: {exc}") from exc


def _wrap(text: str) -> list[str]:
    lines: list[str] = []
    for raw in text.splitlines():
        lines.extend(textwrap.wrap(raw, _WRAP_COLUMNS) or [""])
    return lines
