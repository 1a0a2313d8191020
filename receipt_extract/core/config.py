"""
Pipeline configuration, resolved from the environment.
"""

import os
from dataclasses import dataclass
from typing import Optional

from .ocr import DEFAULT_DPI, DEFAULT_LANGUAGE, PSM_SINGLE_COLUMN, PSM_UNIFORM_BLOCK
from .preprocess import DEFAULT_MAX_SIDE

DEFAULT_REMOTE_TIMEOUT = 30.0


def _env_int(name: str, default: int) -> int:
    try:
        return int(str(os.getenv(name, default)).strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(str(os.getenv(name, default)).strip())
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off", "")


@dataclass
class PipelineConfig:
    """Settings for one ReceiptExtractor."""
    use_llm: bool = True
    llm_provider: str = "openai"
    llm_model: Optional[str] = None
    remote_timeout: float = DEFAULT_REMOTE_TIMEOUT
    endpoint_url: Optional[str] = None
    endpoint_api_key: Optional[str] = None
    ocr_language: str = DEFAULT_LANGUAGE
    primary_psm: int = PSM_UNIFORM_BLOCK
    alternate_psm: int = PSM_SINGLE_COLUMN
    ocr_dpi: int = DEFAULT_DPI
    max_side: int = DEFAULT_MAX_SIDE
    tesseract_cmd: Optional[str] = None

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build a config from environment variables, keeping defaults for unset or invalid values."""
        return cls(
            use_llm=_env_bool("RECEIPT_USE_LLM", True),
            llm_provider=os.getenv("LLM_PROVIDER", "openai"),
            llm_model=os.getenv("LLM_MODEL") or None,
            remote_timeout=_env_float("RECEIPT_REMOTE_TIMEOUT", DEFAULT_REMOTE_TIMEOUT),
            endpoint_url=os.getenv("RECEIPT_EXTRACT_URL") or None,
            endpoint_api_key=os.getenv("RECEIPT_EXTRACT_API_KEY") or None,
            ocr_language=os.getenv("OCR_LANGUAGE", DEFAULT_LANGUAGE),
            primary_psm=_env_int("OCR_PRIMARY_PSM", PSM_UNIFORM_BLOCK),
            alternate_psm=_env_int("OCR_ALTERNATE_PSM", PSM_SINGLE_COLUMN),
            ocr_dpi=_env_int("OCR_DPI", DEFAULT_DPI),
            max_side=_env_int("RECEIPT_MAX_SIDE", DEFAULT_MAX_SIDE),
            tesseract_cmd=os.getenv("TESSERACT_CMD") or None,
        )
