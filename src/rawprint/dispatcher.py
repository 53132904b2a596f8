"""Raw network print dispatcher."""

from __future__ import annotations

import base64
import binascii
import codecs
import logging
from typing import Optional

from .base import PrintAttributes, PrintJob, PrintStreamProvider
from .converters import ConverterRegistry
from .errors import (
    CapabilityUnavailableError,
    EncodingError,
    InvalidArgumentError,
    PrinterConnectionError,
    RenderError,
)
from .streams import (
    PostScriptStreamProvider,
    detect_printer_language,
    normalize_pjl_language,
)
from .transport import TransportFactory, open_socket_transport

logger = logging.getLogger(__name__)

DEFAULT_TEXT_ENCODING = "utf-8"


def encode_text(text: str, encoding: Optional[str] = None) -> bytes:
    encoding = encoding or DEFAULT_TEXT_ENCODING
    try:
        codecs.lookup(encoding)
    except LookupError as exc:
        raise EncodingError(f"Unknown text encoding: {encoding!r}") from exc
    try:
        return text.encode(encoding)
    except UnicodeEncodeError as exc:
        raise EncodingError(f"Text cannot be encoded as {encoding}: {exc}") from exc


class RawPrintDispatcher:
    """
    Sends documents to a printer's raw TCP listener (port 9100).

    Every call opens its own connection and closes it before returning,
    so one dispatcher can serve concurrent callers.
    """

    def __init__(
        self,
        stream_provider: Optional[PrintStreamProvider] = None,
        converters: Optional[ConverterRegistry] = None,
        transport_factory: Optional[TransportFactory] = None,
        timeout: Optional[float] = None,
    ):
        self.stream_provider = stream_provider or PostScriptStreamProvider()
        self.converters = converters or ConverterRegistry.default()
        self.transport_factory = transport_factory or open_socket_transport
        self.timeout = timeout

    def _require_capability(self) -> None:
        if not self.stream_provider.is_available():
            raise CapabilityUnavailableError(
                f"Print stream provider '{self.stream_provider.name}' is not available "
                "in this environment."
            )

    @staticmethod
    def _require_address(printer_address: str) -> None:
        if not (printer_address or "").strip():
            raise InvalidArgumentError("Printer address is empty.")

    def _transmit(self, job: PrintJob) -> None:
        job.validate()
        self._require_capability()

        host = job.printer_address.strip()
        language = normalize_pjl_language(job.language)
        if job.attributes is not None and language is None:
            language = detect_printer_language(job.payload)

        try:
            transport = self.transport_factory(host, job.printer_port, self.timeout)
        except OSError as exc:
            if isinstance(exc, PrinterConnectionError):
                raise
            raise PrinterConnectionError(
                f"Cannot connect to printer {host}:{job.printer_port}: {exc}"
            ) from exc
        try:
            stream = self.stream_provider.open_stream(transport, job.attributes, language)
            stream.write(job.payload)
            stream.finish()
        except OSError as exc:
            if isinstance(exc, PrinterConnectionError):
                raise
            raise PrinterConnectionError(
                f"Sending to printer {host}:{job.printer_port} failed: {exc}"
            ) from exc
        finally:
            transport.close()
        logger.debug(
            "Dispatched %d bytes to %s:%s via %s",
            len(job.payload),
            host,
            job.printer_port,
            self.stream_provider.name,
        )

    def send_text(
        self,
        text: str,
        printer_address: str,
        encoding: Optional[str] = DEFAULT_TEXT_ENCODING,
    ) -> None:
        """Print text as-is; the printer interprets the bytes directly."""
        self._require_address(printer_address)
        if not text:
            raise InvalidArgumentError("Nothing to print: text is empty.")
        payload = encode_text(text, encoding)
        self._transmit(PrintJob(payload=payload, printer_address=printer_address))

    def send_rendered_document(
        self,
        document: bytes,
        printer_address: str,
        attributes: PrintAttributes,
        language: Optional[str] = None,
    ) -> None:
        """
        Send a print-ready stream with the given job attributes.

        ``language`` is the PJL interpreter name; when omitted it is guessed
        from the stream's first bytes.
        """
        self._transmit(
            PrintJob(
                payload=document,
                printer_address=printer_address,
                attributes=attributes,
                language=language,
            )
        )

    def send_converted_document(
        self,
        source: bytes,
        source_format: str,
        printer_address: str,
    ) -> None:
        """Convert a PDF/HTML source into a printable stream and send all pages."""
        PrintJob(payload=source, printer_address=printer_address).validate()
        self._require_capability()

        converter = self.converters.get(source_format)
        if not converter.is_available():
            raise CapabilityUnavailableError(
                f"Converter for {converter.source_format!r} is not available in this environment."
            )

        try:
            handle = converter.open(source)
        except Exception as exc:
            if isinstance(exc, RenderError):
                raise
            raise RenderError(f"Opening {converter.source_format} document failed: {exc}") from exc

        try:
            try:
                attributes = PrintAttributes.for_page_count(handle.page_count)
                document = converter.render(handle, attributes)
            except Exception as exc:
                if isinstance(exc, RenderError):
                    raise
                raise RenderError(
                    f"Converting {converter.source_format} document failed: {exc}"
                ) from exc
            self.send_rendered_document(
                document, printer_address, attributes, converter.output_language
            )
        finally:
            handle.close()

    def dispatch_raw(self, payload: bytes, printer_address: str, copies: int = 1) -> None:
        """Send already print-ready bytes, ``copies`` printouts, A4 duplex."""
        self._transmit(
            PrintJob(
                payload=payload,
                printer_address=printer_address,
                attributes=PrintAttributes.for_copies(copies),
            )
        )

    def send_pdf(self, pdf: bytes, printer_address: str) -> None:
        self.send_converted_document(pdf, "pdf", printer_address)

    def send_pdf_base64(self, encoded: str | bytes, printer_address: str) -> None:
        if not encoded:
            raise InvalidArgumentError("Nothing to print: encoded document is empty.")
        try:
            pdf = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidArgumentError(f"Document is not valid base64: {exc}") from exc
        self.send_pdf(pdf, printer_address)

    def send_html(self, html: str, printer_address: str) -> None:
        """Print a self-contained HTML page (inline images and styles)."""
        if not html:
            raise InvalidArgumentError("Nothing to print: HTML is empty.")
        self.send_converted_document(html.encode("utf-8"), "html", printer_address)
