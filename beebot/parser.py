"""Extract a measurement from a chat message."""

import math
import re

from .errors import ParseError

# Optional sign, digits with optional fraction (or a bare fraction), optional exponent.
_DECIMAL_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def parse_value(body: str) -> float:
    """Parse a message body as a decimal number.

    Surrounding whitespace is ignored. Anything else that is not part of a
    plain decimal literal (words, ``inf``/``nan``, digit separators) is
    rejected, as is a value too large to represent.

    Raises:
        ParseError: The body is not a finite decimal number.
    """
    text = body.strip()
    if not _DECIMAL_RE.fullmatch(text):
        raise ParseError(f"Not a number: {text[:40]!r}")

    value = float(text)
    if not math.isfinite(value):
        raise ParseError(f"Number out of range: {text[:40]!r}")
    return value
