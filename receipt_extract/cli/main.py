#!/usr/bin/env python3
"""
Main CLI entrypoint for receipt extraction.
"""

import argparse
import asyncio
import json
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from loguru import logger

from receipt_extract.core.categorization import load_rules
from receipt_extract.core.config import PipelineConfig
from receipt_extract.core.extractor import extract_fields
from receipt_extract.core.llm import PROVIDER_CHOICES
from receipt_extract.core.models import ExtractionOutcome, ParsedInvoice
from receipt_extract.core.processor import ReceiptExtractor

NOT_DETECTED = "Not detected"


def setup_logging(verbose: bool = False):
    """Send pipeline logs to stderr; DEBUG when verbose, otherwise warnings only."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def print_invoice(invoice: ParsedInvoice, show_text: bool = False):
    """Print extracted fields in a readable block."""
    total = f"{invoice.total:.2f}" if invoice.total is not None else NOT_DETECTED
    print(f"  Merchant: {invoice.merchant or NOT_DETECTED}")
    print(f"  Total:    {total}")
    print(f"  Date:     {invoice.date or NOT_DETECTED}")
    print(f"  Category: {invoice.category or NOT_DETECTED}")
    if show_text:
        print("  Raw text:")
        for line in (invoice.raw_text or "").splitlines():
            print(f"    {line}")


def print_outcome(path: str, outcome: ExtractionOutcome, as_json: bool, show_text: bool):
    if as_json:
        print(json.dumps(outcome.invoice.to_dict()))
        return
    print(f"[INFO] {path}")
    print_invoice(outcome.invoice, show_text=show_text)
    print(f"  Source:   {outcome.tier.value}")
    if outcome.rate_limited:
        print("[WARN] Cloud extraction rate limited, used local OCR instead")
    if outcome.quota_exceeded:
        print("[WARN] Cloud extraction quota exhausted, used local OCR instead")
    if not outcome.invoice.has_fields():
        print("[WARN] No data could be extracted from this image")


async def _extract_all(extractor: ReceiptExtractor, images: List[str], timeout: Optional[float]):
    results = []
    for path in images:
        results.append((path, await extractor.extract(path, timeout=timeout)))
    return results


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="Extract merchant, total, date and category from receipt images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Extract one receipt with the default provider and local OCR fallback
  receipt-extract receipt.jpg

  # Local OCR only, JSON output
  receipt-extract --no-llm --json receipt.jpg

  # Debug the text parsers on OCR output saved to a file
  receipt-extract --text ocr_output.txt
        """
    )
    parser.add_argument("images", nargs="*",
                        help="Receipt image files (JPEG, PNG or WebP)")
    parser.add_argument("--text", metavar="FILE",
                        help="Run only the text field extractor on a text file")
    parser.add_argument("--json", action="store_true",
                        help="Print each result as a JSON object")
    parser.add_argument("--show-text", action="store_true",
                        help="Print the raw recognized text")
    parser.add_argument("--rules",
                        help="JSON file with ordered category keyword rules")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show pipeline debug logging")

    # LLM configuration
    parser.add_argument("--llm-provider", choices=PROVIDER_CHOICES,
                        help="Remote provider to use (default: openai, or LLM_PROVIDER env var)")
    parser.add_argument("--llm-model",
                        help="Model to use (uses provider default if not specified, or LLM_MODEL env var)")
    parser.add_argument("--no-llm", action="store_true",
                        help="Disable remote extraction, use only local OCR")
    parser.add_argument("--timeout", type=float,
                        help="Remote call timeout in seconds (default: 30, or RECEIPT_REMOTE_TIMEOUT env var)")
    parser.add_argument("--lang",
                        help="Tesseract language (default: eng, or OCR_LANGUAGE env var)")

    args = parser.parse_args(argv)
    if not args.images and not args.text:
        parser.error("give at least one image or --text FILE")

    setup_logging(args.verbose)

    rules = None
    if args.rules:
        try:
            rules = load_rules(Path(args.rules))
        except ValueError as e:
            print(f"[ERROR] {e}")
            return 1

    if args.text:
        try:
            text = Path(args.text).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            print(f"[ERROR] Could not read {args.text}: {e}")
            return 1
        invoice = extract_fields(text, rules)
        if args.json:
            print(json.dumps(invoice.to_dict()))
        else:
            print(f"[INFO] {args.text}")
            print_invoice(invoice, show_text=args.show_text)
        if not args.images:
            return 0

    config = PipelineConfig.from_env()
    if args.llm_provider:
        config = replace(config, llm_provider=args.llm_provider)
    if config.llm_provider not in PROVIDER_CHOICES:
        print(f"[ERROR] Invalid LLM provider: {config.llm_provider}")
        print(f"[ERROR] Must be one of: {', '.join(PROVIDER_CHOICES)}")
        return 1
    if args.llm_model:
        config = replace(config, llm_model=args.llm_model)
    if args.no_llm:
        config = replace(config, use_llm=False)
    if args.lang:
        config = replace(config, ocr_language=args.lang)

    if config.use_llm and not args.json:
        model_info = config.llm_model or "default"
        env_source = " [from LLM_PROVIDER env]" if not args.llm_provider and os.getenv("LLM_PROVIDER") else ""
        print(f"[INFO] LLM: {config.llm_provider} ({model_info}){env_source}")

    extractor = ReceiptExtractor(config, rules=rules)
    for path, outcome in asyncio.run(_extract_all(extractor, args.images, args.timeout)):
        print_outcome(path, outcome, as_json=args.json, show_text=args.show_text)

    return 0


if __name__ == "__main__":
    sys.exit(main())
