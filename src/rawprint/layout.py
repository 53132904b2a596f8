"""Paper size helpers shared by attribute framing and HTML layout."""

from __future__ import annotations

from typing import Tuple

import fitz

from .errors import InvalidArgumentError

PAPER_SIZE_POINTS = {
    "a4": (595.0, 842.0),
    "a5": (420.0, 595.0),
    "letter": (612.0, 792.0),
    "legal": (612.0, 1008.0),
}

# Names understood by "@PJL SET PAPER=".
_PJL_PAPER_NAMES = {
    "a4": "A4",
    "a5": "A5",
    "letter": "LETTER",
    "legal": "LEGAL",
}

DEFAULT_PAPER_SIZE = "a4"


def normalize_paper_size(value: str | None) -> str:
    paper = (value or DEFAULT_PAPER_SIZE).strip().lower()
    if paper not in PAPER_SIZE_POINTS:
        raise InvalidArgumentError(f"Unsupported paper size: {value!r}")
    return paper


def pjl_paper_name(paper_size: str) -> str:
    return _PJL_PAPER_NAMES[normalize_paper_size(paper_size)]


def resolve_paper_size_points(paper_size: str | None) -> Tuple[float, float]:
    return PAPER_SIZE_POINTS[normalize_paper_size(paper_size)]


def paper_rect(paper_size: str | None) -> fitz.Rect:
    width, height = resolve_paper_size_points(paper_size)
    return fitz.Rect(0, 0, width, height)


def content_rect(paper_size: str | None, margin: float = 36.0) -> fitz.Rect:
    """Return the page area inside a uniform margin."""
    rect = paper_rect(paper_size)
    margin = max(0.0, min(float(margin), rect.width / 4.0, rect.height / 4.0))
    return rect + (margin, margin, -margin, -margin)
