"""Raw printing exceptions."""


class PrintingError(RuntimeError):
    """Base error for raw network printing."""


class InvalidArgumentError(PrintingError, ValueError):
    """Raised when a payload, address or attribute value is unusable."""


class CapabilityUnavailableError(PrintingError):
    """Raised when no suitable print stream output exists in this environment."""


class PrinterConnectionError(PrintingError, ConnectionError):
    """Raised when opening or writing the printer socket fails."""


class EncodingError(PrintingError, LookupError):
    """Raised when text cannot be encoded with the requested encoding."""


class UnsupportedFormatError(PrintingError):
    """Raised when no converter is registered for a source format."""


class RenderError(PrintingError):
    """Raised when a document cannot be converted into a printable stream."""
