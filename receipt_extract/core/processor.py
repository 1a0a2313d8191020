"""
Main receipt extraction orchestration.

The fallback chain is an ordered list of tiers: remote inference, then local
OCR with the primary segmentation mode, then local OCR with the alternate
mode. Each tier is tried in turn until one produces a useful result.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

from .categorization import Rules
from .config import PipelineConfig
from .errors import (LocalEngineError, RemoteError, RemoteQuotaExceeded,
                     RemoteRateLimited)
from .extractor import extract_fields
from .llm import extract_with_llm
from .models import ExtractionOutcome, ExtractionTier, ParsedInvoice, RawImage
from .ocr import recognize_text, set_tesseract_cmd
from .preprocess import preprocess_image

ImageInput = Union[RawImage, bytes, str, Path]


@dataclass
class _RunState:
    """Per-invocation state shared by the tiers of one extract() call."""
    image: RawImage
    timeout: float
    preprocessed: Optional[RawImage] = None
    last_local: Optional[ParsedInvoice] = None
    rate_limited: bool = False
    quota_exceeded: bool = False


class _Tier:
    tier = ExtractionTier.NONE
    # Local passes count a category-only result as useful; remote does not
    category_counts = True

    def applies(self, state: _RunState) -> bool:
        return True

    def is_useful(self, result: ParsedInvoice) -> bool:
        return result.has_fields(include_category=self.category_counts)

    async def run(self, state: _RunState) -> Optional[ParsedInvoice]:
        raise NotImplementedError


class _RemoteTier(_Tier):
    tier = ExtractionTier.REMOTE
    category_counts = False

    def __init__(self, config: PipelineConfig, client=None):
        self.config = config
        self.client = client

    def applies(self, state: _RunState) -> bool:
        return self.config.use_llm

    async def run(self, state: _RunState) -> Optional[ParsedInvoice]:
        try:
            result = await extract_with_llm(
                state.image,
                provider=self.config.llm_provider,
                model=self.config.llm_model,
                timeout=state.timeout,
                endpoint_url=self.config.endpoint_url,
                endpoint_api_key=self.config.endpoint_api_key,
                client=self.client,
            )
        except RemoteRateLimited as e:
            state.rate_limited = True
            logger.warning(f"Remote extraction rate limited, falling back to local OCR: {e}")
            return None
        except RemoteQuotaExceeded as e:
            state.quota_exceeded = True
            logger.warning(f"Remote extraction quota exceeded, falling back to local OCR: {e}")
            return None
        except RemoteError as e:
            logger.warning(f"Remote extraction failed ({type(e).__name__}), falling back to local OCR: {e}")
            return None

        if not self.is_useful(result):
            logger.info("Remote extraction returned no merchant, total or date; falling back to local OCR")
            return None
        return result


class _LocalTier(_Tier):
    def __init__(self, config: PipelineConfig, tier: ExtractionTier, psm: int,
                 rules: Optional[Rules] = None):
        self.config = config
        self.tier = tier
        self.psm = psm
        self.rules = rules

    def applies(self, state: _RunState) -> bool:
        if self.tier == ExtractionTier.LOCAL_PRIMARY:
            return True
        # The retry pass only runs when the first pass read text but found nothing in it
        last = state.last_local
        return bool(last is not None and last.raw_text and last.raw_text.strip()
                    and not last.has_fields())

    async def run(self, state: _RunState) -> Optional[ParsedInvoice]:
        if state.preprocessed is None:
            state.preprocessed = await asyncio.to_thread(
                preprocess_image, state.image, self.config.max_side)

        try:
            text = await asyncio.to_thread(
                recognize_text,
                state.preprocessed,
                psm=self.psm,
                language=self.config.ocr_language,
                dpi=self.config.ocr_dpi,
            )
        except LocalEngineError as e:
            logger.warning(f"Local OCR failed ({self.tier.value}): {e}")
            result = ParsedInvoice()
        else:
            logger.debug(f"Local OCR ({self.tier.value}, psm {self.psm}) read {len(text)} chars")
            result = extract_fields(text, self.rules)

        state.last_local = result
        return result


class ReceiptExtractor:
    """Runs the remote → local → local-retry fallback chain for receipt images."""

    def __init__(self, config: Optional[PipelineConfig] = None,
                 rules: Optional[Rules] = None,
                 remote_client=None):
        """
        Initialize receipt extractor.

        Args:
            config: Pipeline settings (defaults to PipelineConfig.from_env())
            rules: Ordered category rules (defaults to the built-in rules)
            remote_client: Pre-built SDK or httpx client for the remote tier (optional)
        """
        self.config = config or PipelineConfig.from_env()
        self.rules = rules
        set_tesseract_cmd(self.config.tesseract_cmd)
        self.tiers: List[_Tier] = [
            _RemoteTier(self.config, client=remote_client),
            _LocalTier(self.config, ExtractionTier.LOCAL_PRIMARY, self.config.primary_psm, rules),
            _LocalTier(self.config, ExtractionTier.LOCAL_ALTERNATE, self.config.alternate_psm, rules),
        ]

    async def extract(self, image: ImageInput, timeout: Optional[float] = None) -> ExtractionOutcome:
        """
        Extract a ParsedInvoice from an image. Never raises on pipeline errors.

        Args:
            image: RawImage, encoded bytes, data URI or path to an image file
            timeout: Remote call limit in seconds (overrides config.remote_timeout)

        Returns:
            ExtractionOutcome with the invoice (possibly empty), the producing
            tier and advisory rate-limit / quota flags
        """
        try:
            raw = RawImage.coerce(image)
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Could not read image input: {e}")
            return ExtractionOutcome(invoice=ParsedInvoice())

        state = _RunState(image=raw, timeout=timeout if timeout is not None else self.config.remote_timeout)
        best = ParsedInvoice()
        best_tier = ExtractionTier.NONE

        for tier in self.tiers:
            if not tier.applies(state):
                continue
            logger.debug(f"Trying tier {tier.tier.value}")
            try:
                result = await tier.run(state)
            except Exception:
                logger.exception(f"Unexpected failure in tier {tier.tier.value}")
                continue
            if result is None:
                continue
            if tier.is_useful(result):
                return self._outcome(result, tier.tier, state)
            # Best effort: keep the latest pass that actually read text
            if best_tier == ExtractionTier.NONE or (result.raw_text and result.raw_text.strip()):
                best, best_tier = result, tier.tier

        if not best.has_fields():
            logger.info("No fields could be extracted from this image")
        return self._outcome(best, best_tier, state)

    @staticmethod
    def _outcome(invoice: ParsedInvoice, tier: ExtractionTier, state: _RunState) -> ExtractionOutcome:
        return ExtractionOutcome(
            invoice=invoice,
            tier=tier,
            rate_limited=state.rate_limited,
            quota_exceeded=state.quota_exceeded,
        )


async def extract_invoice(image: ImageInput, config: Optional[PipelineConfig] = None,
                          timeout: Optional[float] = None) -> ParsedInvoice:
    """Run the fallback chain and return only the ParsedInvoice."""
    outcome = await ReceiptExtractor(config).extract(image, timeout=timeout)
    return outcome.invoice


def extract_invoice_sync(image: ImageInput, config: Optional[PipelineConfig] = None,
                         timeout: Optional[float] = None) -> ParsedInvoice:
    """Blocking wrapper around extract_invoice for synchronous callers."""
    return asyncio.run(extract_invoice(image, config=config, timeout=timeout))
