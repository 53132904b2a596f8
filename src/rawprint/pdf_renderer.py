"""PDF to PostScript renderer for the raw print pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List

import fitz

from .errors import RenderError

logger = logging.getLogger(__name__)

_COLOR_MODES = {"color", "grayscale"}


def normalize_color_mode(value: str | None) -> str:
    mode = (value or "grayscale").strip().lower()
    return mode if mode in _COLOR_MODES else "grayscale"


@dataclass(slots=True)
class RenderedPage:
    """PostScript payload of one page."""

    page_index: int
    postscript: bytes


class PDFRenderer:
    """
    Page-at-a-time PDF rasterizer producing PostScript.

    Every page becomes a self-contained PostScript program ending in
    ``showpage``; the job is the concatenation of those programs.
    """

    def __init__(self, dpi: int = 300, color_mode: str = "grayscale"):
        self.dpi = max(72, int(dpi))
        self.color_mode = normalize_color_mode(color_mode)

    @staticmethod
    def open_document(pdf_bytes: bytes) -> fitz.Document:
        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as exc:
            raise RenderError(f"Failed to open PDF document: {exc}") from exc
        if doc.needs_pass:
            doc.close()
            raise RenderError("PDF document is encrypted.")
        if len(doc) == 0:
            doc.close()
            raise RenderError("PDF document has no pages.")
        return doc

    def _colorspace(self) -> fitz.Colorspace:
        return fitz.csRGB if self.color_mode == "color" else fitz.csGRAY

    def iter_page_postscript(
        self,
        doc: fitz.Document,
        page_indices: List[int],
    ) -> Iterator[RenderedPage]:
        """Stream PostScript pages in requested order."""
        zoom = float(self.dpi) / 72.0
        matrix = fitz.Matrix(zoom, zoom)
        colorspace = self._colorspace()
        try:
            for page_index in page_indices:
                if page_index < 0 or page_index >= len(doc):
                    raise RenderError(
                        f"Invalid page index {page_index} for doc with {len(doc)} pages."
                    )
                pix = doc[page_index].get_pixmap(matrix=matrix, colorspace=colorspace, alpha=False)
                pix.set_dpi(self.dpi, self.dpi)
                yield RenderedPage(page_index=page_index, postscript=pix.tobytes("ps"))
        except Exception as exc:
            if isinstance(exc, RenderError):
                raise
            raise RenderError(f"Failed to render PDF pages: {exc}") from exc

    def render_postscript(self, doc: fitz.Document, page_indices: List[int]) -> bytes:
        chunks = [page.postscript for page in self.iter_page_postscript(doc, page_indices)]
        logger.debug("Rendered %d page(s) to PostScript at %d dpi", len(chunks), self.dpi)
        return b"".join(chunks)

    @staticmethod
    def page_indices_for_range(first: int, last: int, total_pages: int) -> List[int]:
        """Turn a 1-based inclusive range into 0-based indices clipped to the document."""
        if total_pages <= 0:
            return []
        first = max(1, int(first))
        last = min(total_pages, int(last))
        return list(range(first - 1, last))
