"""
Data models for receipt extraction.
"""

from dataclasses import dataclass, asdict, replace
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .utils import IMAGE_MEDIA_TYPES, parse_data_uri, sniff_media_type, to_data_uri


@dataclass(frozen=True)
class RawImage:
    """Encoded image payload plus its declared media type."""
    data: bytes
    media_type: str

    @classmethod
    def from_path(cls, path: Path) -> "RawImage":
        """Read an image file; the media type comes from the suffix."""
        path = Path(path)
        data = path.read_bytes()
        media_type = IMAGE_MEDIA_TYPES.get(path.suffix.lower()) or sniff_media_type(data)
        return cls(data=data, media_type=media_type)

    @classmethod
    def from_data_uri(cls, uri: str) -> "RawImage":
        data, media_type = parse_data_uri(uri)
        return cls(data=data, media_type=media_type)

    @classmethod
    def coerce(cls, image: Union["RawImage", bytes, str, Path]) -> "RawImage":
        """Accept a RawImage, raw bytes, a data URI or a filesystem path."""
        if isinstance(image, RawImage):
            return image
        if isinstance(image, (bytes, bytearray)):
            data = bytes(image)
            return cls(data=data, media_type=sniff_media_type(data))
        if isinstance(image, str) and image.startswith("data:"):
            return cls.from_data_uri(image)
        if isinstance(image, (str, Path)):
            return cls.from_path(Path(image))
        raise TypeError(f"Unsupported image input: {type(image).__name__}")

    def to_data_uri(self) -> str:
        return to_data_uri(self.data, self.media_type)


@dataclass(frozen=True)
class ParsedInvoice:
    """Structured fields extracted from one receipt. Every field is optional."""
    merchant: Optional[str] = None
    total: Optional[Decimal] = None
    date: Optional[str] = None
    category: Optional[str] = None
    raw_text: Optional[str] = None

    def has_fields(self, include_category: bool = True) -> bool:
        """True when at least one extracted field is present."""
        present = [self.merchant, self.total, self.date]
        if include_category:
            present.append(self.category)
        return any(v is not None for v in present)

    def with_raw_text(self, raw_text: Optional[str]) -> "ParsedInvoice":
        return replace(self, raw_text=raw_text)

    def to_dict(self):
        """Convert to the serialized form (camelCase rawText, numeric total)."""
        d = asdict(self)
        d["total"] = float(self.total) if self.total is not None else None
        d["rawText"] = d.pop("raw_text")
        return d


class ExtractionTier(str, Enum):
    """Fallback chain stage that produced a result."""
    REMOTE = "remote"
    LOCAL_PRIMARY = "local-primary"
    LOCAL_ALTERNATE = "local-alternate"
    NONE = "none"


@dataclass(frozen=True)
class ExtractionOutcome:
    """A ParsedInvoice plus advisory metadata for user-facing messaging."""
    invoice: ParsedInvoice
    tier: ExtractionTier = ExtractionTier.NONE
    rate_limited: bool = False
    quota_exceeded: bool = False
