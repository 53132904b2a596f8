"""Print stream providers: raw pass-through and PJL-framed jobs."""

from __future__ import annotations

import functools
import logging
from typing import List, Optional

import fitz

from .base import PrintAttributes, PrintStream, PrintStreamProvider, Transport
from .errors import InvalidArgumentError
from .layout import pjl_paper_name

logger = logging.getLogger(__name__)

# Universal Exit Language: resets the printer's interpreter between jobs.
UEL = b"\x1b%-12345X"

_PJL_LANGUAGES = {"POSTSCRIPT", "PCL", "PDF"}

# ^D and blank lines often precede a PostScript prolog.
_LEADING_NOISE = b"\x04\r\n\t "
_PCL_PREFIXES = (b"\x1bE", b"\x1b&", b"\x1b*", b"\x1b(")


def normalize_pjl_language(value: str | None) -> Optional[str]:
    language = (value or "").strip().upper()
    if not language:
        return None
    if language not in _PJL_LANGUAGES:
        raise InvalidArgumentError(f"Unsupported PJL language: {value!r}")
    return language


def detect_printer_language(payload: bytes) -> Optional[str]:
    """Guess the interpreter a print-ready payload is written for.

    Returns None for unknown content and for payloads that carry their own
    UEL/PJL envelope; the printer then picks the interpreter itself.
    """
    head = bytes(payload[:64])
    if head.startswith(UEL):
        return None
    head = head.lstrip(_LEADING_NOISE)
    if head.startswith(b"%!"):
        return "POSTSCRIPT"
    if head.startswith(b"%PDF-"):
        return "PDF"
    if head.startswith(_PCL_PREFIXES):
        return "PCL"
    return None


def build_pjl_header(
    attributes: PrintAttributes,
    language: Optional[str],
    job_name: str,
) -> bytes:
    lines: List[str] = [
        "@PJL",
        f'@PJL JOB NAME="{job_name}"',
        f"@PJL SET PAPER={pjl_paper_name(attributes.paper_size)}",
    ]
    if attributes.duplex:
        lines.append("@PJL SET DUPLEX=ON")
        lines.append("@PJL SET BINDING=LONGEDGE")
    else:
        lines.append("@PJL SET DUPLEX=OFF")
    if attributes.copies is not None:
        lines.append(f"@PJL SET COPIES={attributes.copies}")
    language = normalize_pjl_language(language)
    if language is not None:
        lines.append(f"@PJL ENTER LANGUAGE={language}")
    return UEL + "".join(line + "\r\n" for line in lines).encode("ascii")


def build_pjl_trailer(job_name: str) -> bytes:
    return UEL + f'@PJL EOJ NAME="{job_name}"\r\n'.encode("ascii") + UEL


class _FramedStream(PrintStream):
    """Writes an optional header before the first chunk and a trailer on finish."""

    def __init__(self, transport: Transport, header: bytes = b"", trailer: bytes = b""):
        self._transport = transport
        self._header = header
        self._trailer = trailer
        self._started = False
        self._finished = False

    def _start(self) -> None:
        if not self._started:
            self._started = True
            if self._header:
                self._transport.write(self._header)

    def write(self, data: bytes) -> None:
        if self._finished:
            raise ValueError("Print stream already finished.")
        self._start()
        self._transport.write(bytes(data))

    def finish(self) -> None:
        if self._finished:
            return
        self._start()
        self._finished = True
        if self._trailer:
            self._transport.write(self._trailer)


class RawStreamProvider(PrintStreamProvider):
    """Hands bytes to the printer exactly as given."""

    @property
    def name(self) -> str:
        return "raw"

    def is_available(self) -> bool:
        return True

    def open_stream(
        self,
        transport: Transport,
        attributes: Optional[PrintAttributes],
        language: Optional[str] = None,
    ) -> PrintStream:
        return _FramedStream(transport)


class PjlStreamProvider(PrintStreamProvider):
    """
    Wraps each job in a PJL envelope carrying paper, duplex and copies.

    The job's own language wins; ``language`` is only the fallback for
    jobs whose content gives no hint. Without either, ENTER LANGUAGE is
    left out and the printer auto-selects its interpreter.
    """

    def __init__(self, language: Optional[str] = None, job_name: str = "rawprint_job"):
        job_name = (job_name or "rawprint_job").replace('"', "'").strip()
        if not job_name.isascii():
            raise InvalidArgumentError(f"PJL job name must be ASCII: {job_name!r}")
        self.language = normalize_pjl_language(language)
        self.job_name = job_name

    @property
    def name(self) -> str:
        return f"pjl_{self.language.lower()}" if self.language else "pjl"

    def is_available(self) -> bool:
        return True

    def open_stream(
        self,
        transport: Transport,
        attributes: Optional[PrintAttributes],
        language: Optional[str] = None,
    ) -> PrintStream:
        if attributes is None:
            # Plain text jobs go out unframed.
            return _FramedStream(transport)
        return _FramedStream(
            transport,
            header=build_pjl_header(attributes, language or self.language, self.job_name),
            trailer=build_pjl_trailer(self.job_name),
        )


@functools.lru_cache(maxsize=1)
def postscript_output_supported() -> bool:
    """Probe whether the installed PyMuPDF can write PostScript pixmaps."""
    try:
        pix = fitz.Pixmap(fitz.csGRAY, fitz.IRect(0, 0, 1, 1), False)
        data = pix.tobytes("ps")
    except (ValueError, RuntimeError) as exc:
        logger.debug("PostScript output unavailable: %s", exc)
        return False
    return data.startswith(b"%!PS")


class PostScriptStreamProvider(PjlStreamProvider):
    """PJL provider that requires PyMuPDF's PostScript output."""

    def __init__(self, job_name: str = "rawprint_job"):
        super().__init__(language=None, job_name=job_name)

    @property
    def name(self) -> str:
        return "postscript"

    def is_available(self) -> bool:
        return postscript_output_supported()
