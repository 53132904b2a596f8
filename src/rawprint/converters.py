"""Source format converters feeding the raw print dispatcher."""

from __future__ import annotations

import io
import logging
from typing import Dict, Iterable, List, Optional

import fitz

from .base import DocumentConverter, DocumentHandle, PrintAttributes
from .errors import RenderError, UnsupportedFormatError
from .layout import DEFAULT_PAPER_SIZE, content_rect, paper_rect
from .pdf_renderer import PDFRenderer

logger = logging.getLogger(__name__)

_FORMAT_ALIASES = {"htm": "html"}


def normalize_source_format(value: str | None) -> str:
    fmt = (value or "").strip().lower().lstrip(".")
    return _FORMAT_ALIASES.get(fmt, fmt)


class PdfDocumentHandle(DocumentHandle):
    """Open PyMuPDF document."""

    def __init__(self, doc: fitz.Document):
        self.doc: Optional[fitz.Document] = doc

    @property
    def page_count(self) -> int:
        if self.doc is None:
            raise RenderError("Document handle already closed.")
        return len(self.doc)

    def close(self) -> None:
        doc, self.doc = self.doc, None
        if doc is not None:
            doc.close()


class PdfConverter(DocumentConverter):
    """Renders PDF pages to PostScript through PyMuPDF."""

    def __init__(self, renderer: Optional[PDFRenderer] = None):
        self.renderer = renderer or PDFRenderer()

    @property
    def source_format(self) -> str:
        return "pdf"

    def open(self, source: bytes) -> DocumentHandle:
        return PdfDocumentHandle(self.renderer.open_document(source))

    def render(self, handle: DocumentHandle, attributes: PrintAttributes) -> bytes:
        if not isinstance(handle, PdfDocumentHandle) or handle.doc is None:
            raise RenderError("PdfConverter can only render its own open handles.")
        total = handle.page_count
        first, last = attributes.page_range or (1, total)
        page_indices = self.renderer.page_indices_for_range(first, last, total)
        if not page_indices:
            raise RenderError(f"Page range {first}-{last} selects no pages of {total}.")
        return self.renderer.render_postscript(handle.doc, page_indices)


def html_to_pdf(html: str, paper_size: str = DEFAULT_PAPER_SIZE, margin: float = 36.0) -> bytes:
    """Lay self-contained HTML out on fixed-size pages and return PDF bytes."""
    mediabox = paper_rect(paper_size)
    where = content_rect(paper_size, margin)
    buffer = io.BytesIO()
    try:
        story = fitz.Story(html=html)
        writer = fitz.DocumentWriter(buffer)
        more = True
        pages = 0
        try:
            while more:
                device = writer.begin_page(mediabox)
                more, _ = story.place(where)
                story.draw(device)
                writer.end_page()
                pages += 1
        finally:
            writer.close()
    except Exception as exc:
        raise RenderError(f"Failed to lay out HTML document: {exc}") from exc
    logger.debug("Laid out HTML on %d page(s)", pages)
    return buffer.getvalue()


class HtmlConverter(DocumentConverter):
    """HTML -> PDF via fitz.Story, then PDF -> PostScript."""

    def __init__(
        self,
        pdf_converter: Optional[PdfConverter] = None,
        paper_size: str = DEFAULT_PAPER_SIZE,
        encoding: str = "utf-8",
    ):
        self.pdf_converter = pdf_converter or PdfConverter()
        self.paper_size = paper_size
        self.encoding = encoding

    @property
    def source_format(self) -> str:
        return "html"

    def is_available(self) -> bool:
        return hasattr(fitz, "Story") and self.pdf_converter.is_available()

    def open(self, source: bytes) -> DocumentHandle:
        try:
            html = bytes(source).decode(self.encoding)
        except (LookupError, UnicodeDecodeError) as exc:
            raise RenderError(f"Cannot decode HTML as {self.encoding}: {exc}") from exc
        return self.pdf_converter.open(html_to_pdf(html, self.paper_size))

    def render(self, handle: DocumentHandle, attributes: PrintAttributes) -> bytes:
        return self.pdf_converter.render(handle, attributes)


class ConverterRegistry:
    """Source format -> converter lookup owned by a dispatcher."""

    def __init__(self, converters: Iterable[DocumentConverter] = ()):
        self._converters: Dict[str, DocumentConverter] = {}
        for converter in converters:
            self.register(converter)

    @classmethod
    def default(cls, renderer: Optional[PDFRenderer] = None) -> "ConverterRegistry":
        pdf = PdfConverter(renderer)
        return cls([pdf, HtmlConverter(pdf)])

    def register(self, converter: DocumentConverter) -> None:
        self._converters[normalize_source_format(converter.source_format)] = converter

    def formats(self) -> List[str]:
        return sorted(self._converters)

    def get(self, source_format: str) -> DocumentConverter:
        key = normalize_source_format(source_format)
        try:
            return self._converters[key]
        except KeyError:
            raise UnsupportedFormatError(
                f"No converter registered for source format {source_format!r}; "
                f"available: {', '.join(self.formats()) or 'none'}"
            ) from None
