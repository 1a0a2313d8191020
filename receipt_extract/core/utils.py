"""
Utility functions and constants for receipt extraction.
"""

import base64
import binascii
import datetime as dt
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

# Media types accepted at the pipeline boundary
IMAGE_MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}
DEFAULT_MEDIA_TYPE = "image/jpeg"

# Pattern constants for parsing
CURRENCY_CODES = ("USD", "EUR", "GBP", "CAD", "AUD", "INR", "JPY", "CHF", "CNY", "RMB")
CURRENCY_SYMBOLS = "$€£¥₹"

AMOUNT_PATTERN = re.compile(
    r"(?:(?:" + "|".join(CURRENCY_CODES) + r")\s*)?[" + CURRENCY_SYMBOLS + r"]?\s*"
    r"([0-9]{1,3}(?:[., ][0-9]{3})*[.,][0-9]{2}|[0-9]+[.,][0-9]{2})(?![0-9]|[.,][0-9])"
)

# Totals above this in the keyword-less fallback are almost always
# reference numbers or phone numbers that OCR read with a decimal point.
AMOUNT_SANITY_CEILING = Decimal("10000")

MERCHANT_MIN_LEN = 2
MERCHANT_MAX_LEN = 60

_DECORATIVE_RE = re.compile(r"[*#@=~_|<>\[\]{}^`]+")
_EDGE_PUNCT_RE = re.compile(r"^[\s\-.:,;'\"!/\\]+|[\s\-.:,;'\"!/\\]+$")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATA_URI_RE = re.compile(r"^data:(?P<media>[\w.+-]+/[\w.+-]+)?(?:;[\w=.+-]+)*;base64,(?P<data>.*)$", re.S)


def normalize_amount(s: str) -> Optional[Decimal]:
    """
    Normalize an amount string written in either separator convention.

    "1,234.56" and "1.234,56" both give Decimal("1234.56"); "12,34" gives
    Decimal("12.34") and "1,234" gives Decimal("1234"). Returns None when the
    text is not numeric after normalization, so callers can tell an
    unparseable value apart from zero.
    """
    if not s:
        return None
    s = s.strip()
    for code in CURRENCY_CODES:
        s = s.replace(code, "")
    s = re.sub(r"[\s" + CURRENCY_SYMBOLS + r"]", "", s)

    has_comma = "," in s
    has_dot = "." in s
    if has_comma and has_dot:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif has_comma:
        head, _, tail = s.rpartition(",")
        if len(tail) == 2 and tail.isdigit():
            s = head.replace(",", "") + "." + tail
        else:
            s = s.replace(",", "")

    if not re.fullmatch(r"[+-]?(\d+(\.\d*)?|\.\d+)", s):
        return None
    try:
        return Decimal(s)
    except InvalidOperation:
        return None


def clean_merchant(line: str) -> str:
    """Strip decorative punctuation and collapse internal whitespace."""
    line = _DECORATIVE_RE.sub(" ", line)
    line = re.sub(r"\s+", " ", line)
    return _EDGE_PUNCT_RE.sub("", line)


def is_valid_merchant(name: Optional[str]) -> bool:
    """Merchant invariant: 2-60 characters with at least one letter."""
    if not name:
        return False
    return MERCHANT_MIN_LEN <= len(name) <= MERCHANT_MAX_LEN and any(c.isalpha() for c in name)


def is_iso_date(value: Optional[str]) -> bool:
    """True for a valid calendar date written as YYYY-MM-DD."""
    if not value or not _ISO_DATE_RE.match(value):
        return False
    try:
        dt.date.fromisoformat(value)
    except ValueError:
        return False
    return True


def find_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} substring of text, or None.

    Braces inside JSON string literals are ignored so a merchant such as
    "Cafe {Nord}" does not end the object early.
    """
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:idx + 1]
    return None


def to_data_uri(data: bytes, media_type: str) -> str:
    """Encode bytes as a base64 data URI."""
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def parse_data_uri(uri: str) -> tuple:
    """
    Decode a base64 data URI into (bytes, media_type).

    Raises ValueError when the string is not a base64 data URI.
    """
    m = _DATA_URI_RE.match(uri.strip())
    if not m:
        raise ValueError("not a base64 data URI")
    try:
        data = base64.b64decode(m.group("data"), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"invalid base64 payload: {e}") from e
    return data, m.group("media") or DEFAULT_MEDIA_TYPE


def sniff_media_type(data: bytes) -> str:
    """Guess the media type from the image magic bytes."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return DEFAULT_MEDIA_TYPE
