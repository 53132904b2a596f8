"""Dispatcher behaviour against fake transports and collaborators."""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import List, Optional

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.rawprint import (
    CapabilityUnavailableError,
    ConverterRegistry,
    DocumentConverter,
    DocumentHandle,
    EncodingError,
    InvalidArgumentError,
    PrintAttributes,
    PrinterConnectionError,
    PrintStreamProvider,
    RawPrintDispatcher,
    RawStreamProvider,
    RenderError,
    Transport,
    UnsupportedFormatError,
)
from src.rawprint.streams import UEL, PjlStreamProvider


class FakeTransport(Transport):
    def __init__(self, fail_after: Optional[int] = None):
        self.written = bytearray()
        self.close_calls = 0
        self.fail_after = fail_after

    def write(self, data: bytes) -> None:
        if self.fail_after is not None and len(self.written) + len(data) > self.fail_after:
            self.written += data[: self.fail_after - len(self.written)]
            raise PrinterConnectionError("connection reset by peer")
        self.written += data

    def close(self) -> None:
        self.close_calls += 1


class FakeTransportFactory:
    def __init__(self, transport: Optional[FakeTransport] = None):
        self.transport = transport or FakeTransport()
        self.opened: List[tuple] = []

    def __call__(self, host: str, port: int, timeout: Optional[float]) -> Transport:
        self.opened.append((host, port, timeout))
        return self.transport


class UnavailableProvider(RawStreamProvider):
    @property
    def name(self) -> str:
        return "missing_postscript"

    def is_available(self) -> bool:
        return False


class RecordingProvider(RawStreamProvider):
    def __init__(self):
        self.attributes: List[Optional[PrintAttributes]] = []
        self.languages: List[Optional[str]] = []

    def open_stream(self, transport, attributes, language=None):
        self.attributes.append(attributes)
        self.languages.append(language)
        return super().open_stream(transport, attributes, language)


class FakeHandle(DocumentHandle):
    def __init__(self, pages: int):
        self._pages = pages
        self.close_calls = 0

    @property
    def page_count(self) -> int:
        return self._pages

    def close(self) -> None:
        self.close_calls += 1


class FakeConverter(DocumentConverter):
    def __init__(
        self,
        fmt: str = "pdf",
        pages: int = 5,
        fail: bool = False,
        available: bool = True,
    ):
        self._fmt = fmt
        self.pages = pages
        self.fail = fail
        self.available = available
        self.handles: List[FakeHandle] = []

    @property
    def source_format(self) -> str:
        return self._fmt

    def is_available(self) -> bool:
        return self.available

    def open(self, source: bytes) -> DocumentHandle:
        handle = FakeHandle(self.pages)
        self.handles.append(handle)
        return handle

    def render(self, handle: DocumentHandle, attributes: PrintAttributes) -> bytes:
        if self.fail:
            raise ValueError("broken xref table")
        return b"%!PS rendered " + str(handle.page_count).encode()


def _dispatcher(factory, provider: Optional[PrintStreamProvider] = None, converters=None):
    return RawPrintDispatcher(
        stream_provider=provider or RawStreamProvider(),
        converters=converters or ConverterRegistry([FakeConverter()]),
        transport_factory=factory,
    )


def test_dispatch_raw_writes_exact_bytes_and_closes_once():
    factory = FakeTransportFactory()
    payload = b"%!PS-Adobe-3.0\n/Helvetica findfont\nshowpage\n"
    _dispatcher(factory).dispatch_raw(payload, "printer.lab.local", copies=2)

    assert factory.opened == [("printer.lab.local", 9100, None)]
    assert bytes(factory.transport.written) == payload
    assert factory.transport.close_calls == 1


def test_send_text_encodes_utf8():
    factory = FakeTransportFactory()
    _dispatcher(factory).send_text("ABC", "10.0.0.7", "UTF-8")
    assert bytes(factory.transport.written) == b"ABC"


def test_send_text_defaults_to_utf8():
    factory = FakeTransportFactory()
    _dispatcher(factory).send_text("Grüße", "10.0.0.7")
    assert bytes(factory.transport.written) == "Grüße".encode("utf-8")


def test_send_text_is_not_framed_by_pjl_provider():
    factory = FakeTransportFactory()
    _dispatcher(factory, provider=PjlStreamProvider()).send_text("hello\n", "10.0.0.7", None)
    assert bytes(factory.transport.written) == b"hello\n"


@pytest.mark.parametrize("encoding", ["URF-8", "no-such-codec"])
def test_send_text_unknown_encoding(encoding):
    factory = FakeTransportFactory()
    with pytest.raises(EncodingError):
        _dispatcher(factory).send_text("ABC", "10.0.0.7", encoding)
    assert factory.opened == []


def test_send_text_unencodable_characters():
    factory = FakeTransportFactory()
    with pytest.raises(EncodingError):
        _dispatcher(factory).send_text("€uro", "10.0.0.7", "ascii")
    assert factory.opened == []


@pytest.mark.parametrize(
    "call",
    [
        lambda d: d.send_text("", "10.0.0.7"),
        lambda d: d.send_rendered_document(b"", "10.0.0.7", PrintAttributes.for_copies(1)),
        lambda d: d.send_converted_document(b"", "pdf", "10.0.0.7"),
        lambda d: d.dispatch_raw(b"", "10.0.0.7"),
        lambda d: d.send_pdf_base64("", "10.0.0.7"),
        lambda d: d.send_html("", "10.0.0.7"),
        lambda d: d.dispatch_raw(b"data", "   "),
    ],
)
def test_empty_input_fails_before_connecting(call):
    factory = FakeTransportFactory()
    with pytest.raises(InvalidArgumentError):
        call(_dispatcher(factory))
    assert factory.opened == []


@pytest.mark.parametrize(
    "call",
    [
        lambda d: d.send_text("ABC", "10.0.0.7"),
        lambda d: d.send_rendered_document(b"%!PS", "10.0.0.7", PrintAttributes.for_copies(1)),
        lambda d: d.send_converted_document(b"%PDF-1.7", "pdf", "10.0.0.7"),
        lambda d: d.dispatch_raw(b"%!PS", "10.0.0.7"),
    ],
)
def test_missing_capability_fails_without_connecting(call):
    factory = FakeTransportFactory()
    converter = FakeConverter()
    dispatcher = _dispatcher(factory, UnavailableProvider(), ConverterRegistry([converter]))
    with pytest.raises(CapabilityUnavailableError):
        call(dispatcher)
    assert factory.opened == []
    assert converter.handles == []


def test_converted_document_uses_full_page_range_and_duplex():
    factory = FakeTransportFactory()
    provider = RecordingProvider()
    converter = FakeConverter(pages=5)
    _dispatcher(factory, provider, ConverterRegistry([converter])).send_converted_document(
        b"%PDF-1.7 ...", "PDF", "10.0.0.7"
    )

    (attributes,) = provider.attributes
    assert provider.languages == ["POSTSCRIPT"]
    assert attributes.page_range == (1, 5)
    assert attributes.duplex is True
    assert attributes.paper_size == "a4"
    assert bytes(factory.transport.written) == b"%!PS rendered 5"
    assert converter.handles[0].close_calls == 1


def test_unsupported_format():
    factory = FakeTransportFactory()
    with pytest.raises(UnsupportedFormatError):
        _dispatcher(factory).send_converted_document(b"{\\rtf1}", "rtf", "10.0.0.7")
    assert factory.opened == []


def test_render_failure_surfaces_as_render_error_and_releases_handle():
    factory = FakeTransportFactory()
    converter = FakeConverter(fail=True)
    with pytest.raises(RenderError) as excinfo:
        _dispatcher(factory, converters=ConverterRegistry([converter])).send_converted_document(
            b"%PDF-1.7", "pdf", "10.0.0.7"
        )
    assert isinstance(excinfo.value.__cause__, ValueError)
    assert converter.handles[0].close_calls == 1
    assert factory.opened == []


def test_write_failure_closes_once_and_raises_connection_error():
    factory = FakeTransportFactory(FakeTransport(fail_after=4))
    with pytest.raises(ConnectionError) as excinfo:
        _dispatcher(factory).dispatch_raw(b"0123456789", "10.0.0.7")
    assert isinstance(excinfo.value, PrinterConnectionError)
    assert factory.transport.close_calls == 1
    assert bytes(factory.transport.written) == b"0123"


def test_connect_failure_propagates():
    def refuse(host, port, timeout):
        raise PrinterConnectionError(f"Cannot connect to printer {host}:{port}")

    dispatcher = _dispatcher(refuse)
    with pytest.raises(PrinterConnectionError):
        dispatcher.dispatch_raw(b"%!PS", "10.0.0.7")


def test_send_pdf_base64_rejects_garbage():
    factory = FakeTransportFactory()
    with pytest.raises(InvalidArgumentError):
        _dispatcher(factory).send_pdf_base64("not*base64!", "10.0.0.7")
    assert factory.opened == []


def test_send_pdf_base64_decodes_before_converting():
    factory = FakeTransportFactory()
    converter = FakeConverter(pages=2)
    _dispatcher(factory, converters=ConverterRegistry([converter])).send_pdf_base64(
        "JVBERi0xLjcK", "10.0.0.7"
    )
    assert bytes(factory.transport.written) == b"%!PS rendered 2"


def test_timeout_is_passed_to_transport_factory():
    factory = FakeTransportFactory()
    dispatcher = RawPrintDispatcher(
        stream_provider=RawStreamProvider(),
        transport_factory=factory,
        timeout=2.5,
    )
    dispatcher.dispatch_raw(b"x", "printer")
    assert factory.opened == [("printer", 9100, 2.5)]


def test_pjl_provider_frames_raw_dispatch():
    factory = FakeTransportFactory()
    _dispatcher(factory, provider=PjlStreamProvider()).dispatch_raw(b"%!PS\nshowpage\n", "10.0.0.7")
    written = bytes(factory.transport.written)
    assert written.startswith(UEL + b"@PJL\r\n")
    assert b"@PJL SET COPIES=1\r\n" in written
    assert b"@PJL ENTER LANGUAGE=POSTSCRIPT\r\n%!PS\nshowpage\n" in written
    assert written.endswith(UEL)


def test_concurrent_calls_use_independent_transports():
    transports = {"printer-a": FakeTransport(), "printer-b": FakeTransport()}
    barrier = threading.Barrier(2)

    def factory(host, port, timeout):
        barrier.wait(timeout=5)
        return transports[host]

    dispatcher = _dispatcher(factory)
    payloads = {"printer-a": b"A" * 4096, "printer-b": b"B" * 8192}
    errors: List[BaseException] = []

    def worker(host):
        try:
            dispatcher.dispatch_raw(payloads[host], host)
        except BaseException as exc:  # surfaced through the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(host,)) for host in payloads]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert errors == []
    for host, transport in transports.items():
        assert bytes(transport.written) == payloads[host]
        assert transport.close_calls == 1


def test_pcl_payload_is_not_sent_to_postscript_interpreter():
    factory = FakeTransportFactory()
    pcl = b"\x1bE\x1b&l26A hello pcl\x1bE"
    _dispatcher(factory, provider=PjlStreamProvider()).dispatch_raw(pcl, "printer")
    written = bytes(factory.transport.written)
    assert b"LANGUAGE=POSTSCRIPT" not in written
    assert b"@PJL ENTER LANGUAGE=PCL\r\n" + pcl in written


def test_unknown_payload_leaves_interpreter_choice_to_printer():
    factory = FakeTransportFactory()
    _dispatcher(factory, provider=PjlStreamProvider()).dispatch_raw(b"plain bytes", "printer")
    written = bytes(factory.transport.written)
    assert b"ENTER LANGUAGE" not in written
    assert b"@PJL SET COPIES=1\r\nplain bytes" in written


def test_rendered_document_language_override():
    factory = FakeTransportFactory()
    provider = RecordingProvider()
    _dispatcher(factory, provider).send_rendered_document(
        b"\x00\x01 vendor data", "printer", PrintAttributes.for_copies(1), language="pcl"
    )
    assert provider.languages == ["PCL"]


def test_rendered_document_rejects_unknown_language_before_connecting():
    factory = FakeTransportFactory()
    with pytest.raises(InvalidArgumentError):
        _dispatcher(factory).send_rendered_document(
            b"%!PS", "printer", PrintAttributes.for_copies(1), language="ESC/P"
        )
    assert factory.opened == []


def test_unavailable_converter_fails_without_opening_document():
    factory = FakeTransportFactory()
    converter = FakeConverter(available=False)
    with pytest.raises(CapabilityUnavailableError):
        _dispatcher(factory, converters=ConverterRegistry([converter])).send_converted_document(
            b"%PDF-1.7", "pdf", "10.0.0.7"
        )
    assert converter.handles == []
    assert factory.opened == []


def test_refused_connection_after_conversion_releases_handle():
    def refuse(host, port, timeout):
        raise PrinterConnectionError(f"Cannot connect to printer {host}:{port}")

    converter = FakeConverter(pages=3)
    with pytest.raises(PrinterConnectionError):
        _dispatcher(refuse, converters=ConverterRegistry([converter])).send_converted_document(
            b"%PDF-1.7", "pdf", "10.0.0.7"
        )
    assert converter.handles[0].close_calls == 1


def test_write_failure_after_conversion_releases_handle_and_connection():
    factory = FakeTransportFactory(FakeTransport(fail_after=3))
    converter = FakeConverter(pages=3)
    with pytest.raises(PrinterConnectionError):
        _dispatcher(factory, converters=ConverterRegistry([converter])).send_converted_document(
            b"%PDF-1.7", "pdf", "10.0.0.7"
        )
    assert converter.handles[0].close_calls == 1
    assert factory.transport.close_calls == 1


class BrokenPipeTransport(FakeTransport):
    def write(self, data: bytes) -> None:
        raise BrokenPipeError(32, "Broken pipe")


def test_plain_os_errors_from_transport_are_wrapped():
    factory = FakeTransportFactory(BrokenPipeTransport())
    with pytest.raises(PrinterConnectionError) as excinfo:
        _dispatcher(factory).dispatch_raw(b"%!PS", "10.0.0.7")
    assert isinstance(excinfo.value.__cause__, BrokenPipeError)
    assert factory.transport.close_calls == 1


def test_plain_os_errors_from_transport_factory_are_wrapped():
    def unreachable(host, port, timeout):
        raise TimeoutError("timed out")

    with pytest.raises(PrinterConnectionError) as excinfo:
        _dispatcher(unreachable).dispatch_raw(b"%!PS", "10.0.0.7")
    assert isinstance(excinfo.value.__cause__, TimeoutError)


def test_empty_document_from_converter_is_render_error():
    factory = FakeTransportFactory()
    converter = FakeConverter(pages=0)
    with pytest.raises(RenderError):
        _dispatcher(factory, converters=ConverterRegistry([converter])).send_converted_document(
            b"%PDF-1.7", "pdf", "10.0.0.7"
        )
    assert converter.handles[0].close_calls == 1
    assert factory.opened == []
