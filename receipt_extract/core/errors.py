"""
Exception taxonomy for the extraction pipeline.

Every error below is caught by the stage that raised it and turned into a
fallback decision; none of them reach callers of the orchestrator.
"""

from typing import Optional


class ReceiptExtractionError(Exception):
    """Base class for all pipeline errors."""


class PreprocessingError(ReceiptExtractionError):
    """Image could not be decoded or normalized."""


class RemoteError(ReceiptExtractionError):
    """Base class for remote inference failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteRateLimited(RemoteError):
    """Remote service answered 429."""


class RemoteQuotaExceeded(RemoteError):
    """Remote service answered 402 (quota or payment required)."""


class RemoteUnavailable(RemoteError):
    """Any other remote failure: non-2xx, connection error, timeout, missing credentials."""


class RemoteMalformedResponse(RemoteError):
    """Remote answered 2xx but no JSON object could be parsed from the body."""


class LocalEngineError(ReceiptExtractionError):
    """The local OCR engine failed."""


def classify_status(status_code: int, detail: str = "") -> RemoteError:
    """Map an HTTP-style status code to the matching remote error."""
    message = f"remote inference failed with HTTP {status_code}"
    if detail:
        message = f"{message}: {detail[:200]}"
    if status_code == 429:
        return RemoteRateLimited(message, status_code)
    if status_code == 402:
        return RemoteQuotaExceeded(message, status_code)
    return RemoteUnavailable(message, status_code)
