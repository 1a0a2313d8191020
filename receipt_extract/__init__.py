"""
Receipt Extract

Turns a receipt photo into a structured invoice record (merchant, total,
date, category) using a remote vision model with local Tesseract fallback.
"""

__version__ = "1.0.0"
__author__ = "Receipt Extract Contributors"

from receipt_extract.core.config import PipelineConfig
from receipt_extract.core.extractor import extract_fields
from receipt_extract.core.models import ExtractionOutcome, ExtractionTier, ParsedInvoice, RawImage
from receipt_extract.core.processor import ReceiptExtractor, extract_invoice, extract_invoice_sync

__all__ = [
    "ExtractionOutcome",
    "ExtractionTier",
    "ParsedInvoice",
    "PipelineConfig",
    "RawImage",
    "ReceiptExtractor",
    "extract_fields",
    "extract_invoice",
    "extract_invoice_sync",
]
