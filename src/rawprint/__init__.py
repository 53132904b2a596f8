"""Raw network printing (port 9100) entrypoints."""

from .base import (
    RAW_PRINT_PORT,
    DocumentConverter,
    DocumentHandle,
    PrintAttributes,
    PrintJob,
    PrintStream,
    PrintStreamProvider,
    Transport,
)
from .converters import ConverterRegistry, HtmlConverter, PdfConverter
from .dispatcher import RawPrintDispatcher
from .errors import (
    CapabilityUnavailableError,
    EncodingError,
    InvalidArgumentError,
    PrinterConnectionError,
    PrintingError,
    RenderError,
    UnsupportedFormatError,
)
from .pdf_renderer import PDFRenderer
from .streams import PjlStreamProvider, PostScriptStreamProvider, RawStreamProvider
from .transport import RawSocketTransport

__all__ = [
    "RAW_PRINT_PORT",
    "RawPrintDispatcher",
    "PrintAttributes",
    "PrintJob",
    "Transport",
    "PrintStream",
    "PrintStreamProvider",
    "DocumentConverter",
    "DocumentHandle",
    "ConverterRegistry",
    "PdfConverter",
    "HtmlConverter",
    "PDFRenderer",
    "RawStreamProvider",
    "PjlStreamProvider",
    "PostScriptStreamProvider",
    "RawSocketTransport",
    "PrintingError",
    "InvalidArgumentError",
    "CapabilityUnavailableError",
    "PrinterConnectionError",
    "EncodingError",
    "UnsupportedFormatError",
    "RenderError",
]
