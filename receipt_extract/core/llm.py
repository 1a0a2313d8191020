"""
Remote receipt extraction through a vision LLM (OpenAI, Azure OpenAI, Anthropic)
or a hosted extraction endpoint.

Every failure is raised as one of the classified RemoteError subclasses.
"""

import asyncio
import json
import os
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from .categorization import CATEGORIES, match_category
from .errors import (RemoteError, RemoteMalformedResponse, RemoteUnavailable,
                     classify_status)
from .models import ParsedInvoice, RawImage
from .utils import find_json_object, is_iso_date, is_valid_merchant, normalize_amount


class LLMProvider(str, Enum):
    """Supported remote providers."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    AZURE_OPENAI = "azure-openai"
    ENDPOINT = "endpoint"


PROVIDER_CHOICES = [p.value for p in LLMProvider]

# Default models for each provider
DEFAULT_MODELS = {
    LLMProvider.ANTHROPIC: "claude-3-5-haiku-20241022",
    LLMProvider.OPENAI: "gpt-4o-mini",
    LLMProvider.AZURE_OPENAI: "gpt-4o-mini",
}

MAX_TOKENS = 1500

SYSTEM_PROMPT = f"""You are an expert receipt/invoice parser. Extract key information from receipt images.

CRITICAL: You must respond with valid JSON in this exact format:
{{
  "merchant": "Business name (string or null)",
  "total": 12.34,
  "date": "YYYY-MM-DD",
  "category": "{'|'.join(CATEGORIES)}",
  "rawText": "All visible text from the receipt"
}}

Rules:
- total: the final amount due as a number (no currency symbols)
- date: the transaction date converted to YYYY-MM-DD
- category: exactly one of {', '.join(CATEGORIES)}
- merchant: the business/store name that issued the receipt
- rawText: all visible text, for debugging
- Use null for fields you cannot extract reliably
- ONLY return the JSON object, no other text"""

USER_PROMPT = "Please extract receipt information from this image."


def _require_env(*names: str):
    missing = [n for n in names if not os.getenv(n)]
    if missing:
        raise RemoteUnavailable(f"Remote provider not configured: set {', '.join(missing)}")


def _classify_sdk_error(e: Exception) -> RemoteError:
    """Map an openai/anthropic SDK exception onto the remote error taxonomy."""
    status = getattr(e, "status_code", None)
    if isinstance(status, int):
        return classify_status(status, str(e))
    return RemoteUnavailable(f"Remote inference failed: {e}")


async def _call_openai(image: RawImage, model: str, timeout: float, client=None) -> str:
    """Call OpenAI (or Azure OpenAI when a client is supplied) chat completions."""
    import openai

    owns_client = client is None
    if owns_client:
        _require_env("OPENAI_API_KEY")
        client = openai.AsyncOpenAI(timeout=timeout, max_retries=0)
    try:
        response = await client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": [
                    {"type": "text", "text": USER_PROMPT},
                    {"type": "image_url", "image_url": {"url": image.to_data_uri()}},
                ]},
            ],
            max_tokens=MAX_TOKENS,
            temperature=0.0,
            response_format={"type": "json_object"},
        )
    except openai.APIError as e:
        raise _classify_sdk_error(e) from e
    finally:
        if owns_client:
            await client.close()
    if not response.choices:
        raise RemoteMalformedResponse("Remote response had no choices")
    return (response.choices[0].message.content or "").strip()


async def _call_azure_openai(image: RawImage, model: str, timeout: float, client=None) -> str:
    """Call Azure OpenAI."""
    import openai

    if client is not None:
        return await _call_openai(image, model, timeout, client=client)
    _require_env("AZURE_OPENAI_API_KEY", "AZURE_OPENAI_ENDPOINT")
    client = openai.AsyncAzureOpenAI(
        api_key=os.getenv("AZURE_OPENAI_API_KEY"),
        api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
        azure_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT"),
        timeout=timeout,
        max_retries=0,
    )
    try:
        return await _call_openai(image, model, timeout, client=client)
    finally:
        await client.close()


async def _call_anthropic(image: RawImage, model: str, timeout: float, client=None) -> str:
    """Call Anthropic messages API."""
    import anthropic

    owns_client = client is None
    if owns_client:
        _require_env("ANTHROPIC_API_KEY")
        client = anthropic.AsyncAnthropic(timeout=timeout, max_retries=0)
    encoded = image.to_data_uri().split(",", 1)[1]
    try:
        response = await client.messages.create(
            model=model,
            max_tokens=MAX_TOKENS,
            temperature=0.0,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": [
                {"type": "image", "source": {"type": "base64", "media_type": image.media_type, "data": encoded}},
                {"type": "text", "text": USER_PROMPT},
            ]}],
        )
    except anthropic.APIError as e:
        raise _classify_sdk_error(e) from e
    finally:
        if owns_client:
            await client.close()
    return "".join(getattr(block, "text", "") for block in response.content).strip()


async def _call_endpoint(image: RawImage, url: Optional[str], api_key: Optional[str],
                         timeout: float, client: Optional[httpx.AsyncClient] = None) -> str:
    """POST {"imageData": <data URI>} to a hosted extraction endpoint."""
    if not url:
        raise RemoteUnavailable("Remote provider not configured: set RECEIPT_EXTRACT_URL")
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout)
    try:
        response = await client.post(url, json={"imageData": image.to_data_uri()}, headers=headers)
    except httpx.HTTPError as e:
        raise RemoteUnavailable(f"Remote endpoint unreachable: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if not response.is_success:
        raise classify_status(response.status_code, response.text)
    return response.text


def _coerce_total(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        total = normalize_amount(value)
    else:
        try:
            total = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return None
    if total is None or not total.is_finite() or total <= 0:
        return None
    return total


def _coerce_invoice(result: Dict[str, Any]) -> ParsedInvoice:
    """Build a ParsedInvoice, dropping any field that breaks its invariant."""
    merchant = result.get("merchant")
    merchant = " ".join(merchant.split()) if isinstance(merchant, str) else None
    date = result.get("date")
    date = date.strip() if isinstance(date, str) else None
    category = result.get("category")
    raw_text = result.get("rawText")

    return ParsedInvoice(
        merchant=merchant if is_valid_merchant(merchant) else None,
        total=_coerce_total(result.get("total")),
        date=date if is_iso_date(date) else None,
        category=match_category(category) if isinstance(category, str) else None,
        raw_text=raw_text if isinstance(raw_text, str) else None,
    )


def parse_llm_response(response_text: str) -> ParsedInvoice:
    """
    Parse the first balanced JSON object in a remote response.

    Prose before or after the object (and markdown fences) is ignored.
    Raises RemoteMalformedResponse when no object can be parsed.
    """
    snippet = find_json_object(response_text or "")
    if snippet is None:
        raise RemoteMalformedResponse("No JSON object in remote response")
    try:
        result = json.loads(snippet, parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise RemoteMalformedResponse(f"Invalid JSON in remote response: {e}") from e
    return _coerce_invoice(result)


async def extract_with_llm(image: RawImage,
                           provider: str = "openai",
                           model: Optional[str] = None,
                           timeout: float = 30.0,
                           endpoint_url: Optional[str] = None,
                           endpoint_api_key: Optional[str] = None,
                           client=None) -> ParsedInvoice:
    """
    Extract receipt fields from an image with a remote provider.

    Args:
        image: Encoded receipt image
        provider: "openai", "anthropic", "azure-openai" or "endpoint"
        model: Model name (uses default for provider if not specified)
        timeout: Hard limit in seconds for the whole remote call
        endpoint_url: URL for the "endpoint" provider
        endpoint_api_key: Bearer token for the "endpoint" provider
        client: Pre-built SDK or httpx client (optional)

    Returns:
        ParsedInvoice built from the response

    Raises:
        RemoteRateLimited, RemoteQuotaExceeded, RemoteUnavailable, RemoteMalformedResponse
    """
    try:
        provider = LLMProvider(provider)
    except ValueError:
        raise RemoteUnavailable(f"Unsupported LLM provider: {provider}") from None
    if model is None:
        model = DEFAULT_MODELS.get(provider, DEFAULT_MODELS[LLMProvider.OPENAI])

    if provider == LLMProvider.ANTHROPIC:
        call = _call_anthropic(image, model, timeout, client=client)
    elif provider == LLMProvider.OPENAI:
        call = _call_openai(image, model, timeout, client=client)
    elif provider == LLMProvider.AZURE_OPENAI:
        call = _call_azure_openai(image, model, timeout, client=client)
    else:
        call = _call_endpoint(image, endpoint_url, endpoint_api_key, timeout, client=client)

    logger.debug(f"Remote extraction via {provider.value} (timeout {timeout}s)")
    try:
        response_text = await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise RemoteUnavailable(f"Remote inference timed out after {timeout}s") from e
    return parse_llm_response(response_text)
