import argparse
import logging
import sys
from pathlib import Path

from src.rawprint import (
    ConverterRegistry,
    PDFRenderer,
    PjlStreamProvider,
    PostScriptStreamProvider,
    PrintingError,
    RawPrintDispatcher,
    RawStreamProvider,
)

logger = logging.getLogger("rawprint")

_STREAM_PROVIDERS = {
    "postscript": PostScriptStreamProvider,
    "pjl": PjlStreamProvider,
    "raw": RawStreamProvider,
}


def _read_input(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    return Path(source).expanduser().read_bytes()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send documents straight to a network printer's raw port (9100)."
    )
    parser.add_argument("--printer", required=True, help="printer host name or IP")
    parser.add_argument("--timeout", type=float, default=None, help="connect/write timeout in seconds")
    parser.add_argument("--stream", choices=sorted(_STREAM_PROVIDERS), default="postscript")
    parser.add_argument("--dpi", type=int, default=300, help="render resolution for PDF/HTML")
    parser.add_argument("--grayscale", action="store_true", help="render PDF/HTML pages in gray")
    parser.add_argument("-v", "--verbose", action="store_true")

    commands = parser.add_subparsers(dest="command", required=True)
    text = commands.add_parser("text", help="print plain text")
    text.add_argument("--encoding", default="utf-8")
    text.add_argument("source", help="file path or '-' for stdin")
    for name in ("pdf", "pdf-base64", "html"):
        commands.add_parser(name, help=f"print a {name} document").add_argument("source")
    raw = commands.add_parser("raw", help="send print-ready bytes (PostScript/PCL)")
    raw.add_argument("--copies", type=int, default=1)
    raw.add_argument("source")
    return parser


def run(args: argparse.Namespace) -> None:
    renderer = PDFRenderer(dpi=args.dpi, color_mode="grayscale" if args.grayscale else "color")
    dispatcher = RawPrintDispatcher(
        stream_provider=_STREAM_PROVIDERS[args.stream](),
        converters=ConverterRegistry.default(renderer),
        timeout=args.timeout,
    )
    data = _read_input(args.source)

    if args.command == "text":
        dispatcher.send_text(data.decode(args.encoding), args.printer, args.encoding)
    elif args.command == "pdf":
        dispatcher.send_pdf(data, args.printer)
    elif args.command == "pdf-base64":
        dispatcher.send_pdf_base64(b"".join(data.split()), args.printer)
    elif args.command == "html":
        dispatcher.send_html(data.decode("utf-8"), args.printer)
    else:
        dispatcher.dispatch_raw(data, args.printer, copies=args.copies)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    try:
        run(args)
    except (PrintingError, OSError, UnicodeDecodeError, LookupError) as exc:
        logger.error("Printing %s to %s failed: %s", args.source, args.printer, exc)
        return 1
    logger.info("Sent %s to %s", args.source, args.printer)
    return 0


if __name__ == "__main__":
    sys.exit(main())
