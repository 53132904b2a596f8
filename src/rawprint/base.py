"""Shared print job models and collaborator contracts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import InvalidArgumentError
from .layout import DEFAULT_PAPER_SIZE, normalize_paper_size

RAW_PRINT_PORT = 9100


@dataclass(frozen=True, slots=True)
class PrintAttributes:
    """Immutable job attributes handed to the print stream."""

    paper_size: str = DEFAULT_PAPER_SIZE
    duplex: bool = True
    page_range: Optional[Tuple[int, int]] = None
    copies: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "paper_size", normalize_paper_size(self.paper_size))
        object.__setattr__(self, "duplex", bool(self.duplex))
        if self.page_range is not None:
            try:
                first, last = (int(v) for v in self.page_range)
            except (TypeError, ValueError) as exc:
                raise InvalidArgumentError(f"Invalid page range: {self.page_range!r}") from exc
            if first < 1 or last < first:
                raise InvalidArgumentError(f"Invalid page range: {self.page_range!r}")
            object.__setattr__(self, "page_range", (first, last))
        if self.copies is not None:
            try:
                copies = int(self.copies)
            except (TypeError, ValueError) as exc:
                raise InvalidArgumentError(f"Invalid copy count: {self.copies!r}") from exc
            if copies < 1:
                raise InvalidArgumentError(f"Copy count must be at least 1, got {self.copies!r}")
            object.__setattr__(self, "copies", copies)

    @classmethod
    def for_page_count(cls, page_count: int) -> "PrintAttributes":
        """A4, double sided, pages 1..page_count."""
        return cls(page_range=(1, page_count))

    @classmethod
    def for_copies(cls, copies: int = 1) -> "PrintAttributes":
        """A4, double sided, ``copies`` printouts."""
        return cls(copies=copies)


@dataclass(frozen=True, slots=True)
class PrintJob:
    """A single transmission to a raw network printer."""

    payload: bytes
    printer_address: str
    attributes: Optional[PrintAttributes] = None
    language: Optional[str] = None
    printer_port: int = RAW_PRINT_PORT

    def validate(self) -> "PrintJob":
        if not isinstance(self.payload, (bytes, bytearray, memoryview)):
            raise InvalidArgumentError(
                f"Payload must be bytes, got {type(self.payload).__name__}"
            )
        if not self.payload:
            raise InvalidArgumentError("Nothing to print: payload is empty.")
        if not (self.printer_address or "").strip():
            raise InvalidArgumentError("Printer address is empty.")
        return self


class Transport(ABC):
    """Connected byte sink towards the printer."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write all of ``data`` or raise PrinterConnectionError."""

    @abstractmethod
    def close(self) -> None:
        """Release the connection."""


class PrintStream(ABC):
    """Job-scoped writer layered over a transport."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write document bytes."""

    @abstractmethod
    def finish(self) -> None:
        """Complete the job framing; does not close the transport."""


class PrintStreamProvider(ABC):
    """Source of print streams for a particular printer language."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider display name."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether this provider can produce streams in this environment."""

    @abstractmethod
    def open_stream(
        self,
        transport: Transport,
        attributes: Optional[PrintAttributes],
        language: Optional[str] = None,
    ) -> PrintStream:
        """Start a job on ``transport``; ``language`` names the payload's interpreter if known."""


class DocumentHandle(ABC):
    """Parsed source document owned by a converter."""

    @property
    @abstractmethod
    def page_count(self) -> int:
        """Number of pages in the document."""

    @abstractmethod
    def close(self) -> None:
        """Release parser resources."""


class DocumentConverter(ABC):
    """Turns a non-printable source format into a printable stream."""

    @property
    @abstractmethod
    def source_format(self) -> str:
        """Lowercase format key, e.g. ``pdf``."""

    @property
    def output_language(self) -> str:
        """PJL language of the rendered stream."""
        return "POSTSCRIPT"

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def open(self, source: bytes) -> DocumentHandle:
        """Parse ``source``; raises RenderError on failure."""

    @abstractmethod
    def render(self, handle: DocumentHandle, attributes: PrintAttributes) -> bytes:
        """Render the handle's pages selected by ``attributes``."""
