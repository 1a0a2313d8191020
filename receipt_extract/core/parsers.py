"""
Parsers for extracting information from receipt text.
"""

import re
import datetime as dt
from decimal import Decimal
from typing import Iterable, List, Optional

from .utils import (AMOUNT_PATTERN, AMOUNT_SANITY_CEILING, clean_merchant,
                    is_valid_merchant, normalize_amount)

MERCHANT_SCAN_LINES = 8

# Earlier keywords win when different lines match different keywords
TOTAL_KEYWORDS = [
    "amount",
    "total",
    "grand total",
    "total due",
    "amount due",
    "balance due",
    "invoice total",
    "final total",
]
_SUBTOTAL_RE = re.compile(r"\bsub[\s-]*total\b", re.IGNORECASE)

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH_RE = (r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?|"
             r"sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\b\.?")

NUMERIC_DATE_PATTERN = re.compile(r"(?<!\d)(\d{1,4})[/-](\d{1,4})[/-](\d{1,4})(?!\d)")
MONTH_NAME_PATTERNS = [
    # Jan 5, 2024 / January 5 2024 / Jan 5th, 24
    (re.compile(r"\b" + _MONTH_RE + r"\s+(\d{1,2})(?:st|nd|rd|th)?(?:,\s*|\s+)(\d{4}|\d{2})\b", re.IGNORECASE),
     ("month", "day", "year")),
    # 5 Jan 2024 / 05 January, 2024
    (re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)?\s+" + _MONTH_RE + r",?\s+(\d{4}|\d{2})\b", re.IGNORECASE),
     ("day", "month", "year")),
]

# Lines that are never the merchant name
MERCHANT_SKIP_PATTERNS = [
    re.compile(r"^(receipt|invoice|bill\b|tax\b|date|time\b|order|table|server|cashier|"
               r"check\s*#|guest|thank|welcome\s+back|sub\s*total|total|amount|balance|"
               r"change\b|cash\b|card\b)", re.IGNORECASE),
    re.compile(r"(https?://|www\.|\.(com|net|org|co|io)\b|@\w+\.)", re.IGNORECASE),  # URL / email
    re.compile(r"^(tel|phone|ph|fax)\b", re.IGNORECASE),
    re.compile(r"(\+?\d{1,3}[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}"),  # phone number
    re.compile(r"^[\d\s.,:;/$€£%#()+-]+$"),  # pure numeric
    re.compile(r"\b[A-Z]{2}\s+\d{5}(-\d{4})?\b"),  # "CA 94103"
]
_STREET_RE = re.compile(
    r"\b(street|st|road|rd|avenue|ave|boulevard|blvd|suite|ste|floor|fl|lane|ln|drive|dr|"
    r"highway|hwy|way|plaza|p\.?o\.? box|zip)\b\.?",
    re.IGNORECASE,
)


def _is_address(line: str) -> bool:
    return bool(_STREET_RE.search(line)) and any(c.isdigit() for c in line)


def parse_merchant(text: str) -> Optional[str]:
    """
    Extract the merchant name: the first non-boilerplate line near the top.

    Only the first MERCHANT_SCAN_LINES non-empty lines are considered.
    """
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    for ln in lines[:MERCHANT_SCAN_LINES]:
        if any(p.search(ln) for p in MERCHANT_SKIP_PATTERNS):
            continue
        if _is_address(ln):
            continue
        name = clean_merchant(ln)
        if is_valid_merchant(name):
            return name
    return None


def _amounts_in(line: str) -> List[Decimal]:
    values = []
    for m in AMOUNT_PATTERN.finditer(line):
        val = normalize_amount(m.group(1))
        if val is not None:
            values.append(val)
    return values


def _rightmost_positive(line: str) -> Optional[Decimal]:
    values = _amounts_in(line)
    if values and values[-1] > 0:
        return values[-1]
    return None


def parse_amount(text: str) -> Optional[Decimal]:
    """
    Extract the total amount from receipt text.

    Keyword lines are tried in TOTAL_KEYWORDS order; on a hit the right-most
    amount on that line, then on the next line, is taken. Without a usable
    keyword hit, the largest plausible amount anywhere in the text is used.
    """
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]

    for kw in TOTAL_KEYWORDS:
        kw_re = re.compile(r"\b" + r"\s+".join(map(re.escape, kw.split())) + r"\b", re.IGNORECASE)
        for idx, ln in enumerate(lines):
            if not kw_re.search(ln) or _SUBTOTAL_RE.search(ln):
                continue
            val = _rightmost_positive(ln)
            if val is None and idx + 1 < len(lines):
                val = _rightmost_positive(lines[idx + 1])
            if val is not None:
                return val

    candidates = [v for v in _amounts_in(text) if Decimal(0) < v < AMOUNT_SANITY_CEILING]
    return max(candidates) if candidates else None


def _to_year(raw: str) -> Optional[int]:
    if len(raw) == 2:
        return int(raw) + 2000
    if len(raw) == 4:
        return int(raw)
    return None


def _numeric_candidates(text: str) -> Iterable[dt.date]:
    for m in NUMERIC_DATE_PATTERN.finditer(text):
        a, b, c = m.groups()
        try:
            if len(a) == 4:
                # 2024-05-13 / 2024/05/13
                yield dt.date(int(a), int(b), int(c))
                continue
            year = _to_year(c)
            if year is None:
                continue
            first, second = int(a), int(b)
            if first > 12:
                day, month = first, second
            elif second > 12:
                month, day = first, second
            else:
                # Ambiguous (both <= 12): month-first
                month, day = first, second
            yield dt.date(year, month, day)
        except ValueError:
            continue


def _month_name_candidates(text: str) -> Iterable[dt.date]:
    for pattern, order in MONTH_NAME_PATTERNS:
        for m in pattern.finditer(text):
            parts = dict(zip(order, m.groups()))
            try:
                year = _to_year(parts["year"])
                if year is None:
                    continue
                month = MONTHS[parts["month"][:3].lower()]
                yield dt.date(year, month, int(parts["day"]))
            except (KeyError, ValueError):
                continue


def parse_date(text: str) -> Optional[str]:
    """
    Extract a date from receipt text as YYYY-MM-DD.

    Numeric dates are tried before month-name dates; candidates that are not
    real calendar dates are skipped.
    """
    for candidate in _numeric_candidates(text):
        return candidate.isoformat()
    for candidate in _month_name_candidates(text):
        return candidate.isoformat()
    return None
