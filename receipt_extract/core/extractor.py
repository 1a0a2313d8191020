"""
Turn raw recognized text into a ParsedInvoice.

extract_fields is pure: the same text always yields the same invoice.
"""

from typing import Optional

from .categorization import Rules, categorize
from .models import ParsedInvoice
from .parsers import parse_amount, parse_date, parse_merchant


def extract_fields(raw_text: str, rules: Optional[Rules] = None) -> ParsedInvoice:
    """Extract merchant, total, date and category; each field independently."""
    text = raw_text or ""
    merchant = parse_merchant(text)
    return ParsedInvoice(
        merchant=merchant,
        total=parse_amount(text),
        date=parse_date(text),
        category=categorize(merchant, text, rules),
        raw_text=raw_text,
    )
