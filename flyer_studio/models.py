"""
Data model for Flyer Studio
Draft restaurant info, canonical image assets, generation results and status enums
"""

import base64
from dataclasses import dataclass, asdict, fields
from enum import Enum
from typing import Optional, Dict, Any


DEFAULT_BRAND_COLOR = "#9333ea"
DEFAULT_VIBE = "moderno"
DEFAULT_BUSINESS_TYPE = "Comida Rápida"
DEFAULT_CTA_TEXT = "¡Ordena hoy!"


class TargetAudience(str, Enum):
    POPULAR = "popular"
    FAMILIAR = "familiar"
    PREMIUM = "premium"


class UsageContext(str, Enum):
    DELIVERY = "delivery"
    LOCAL = "local"
    TEMPORADA = "temporada"


class Quality(str, Enum):
    STANDARD = "standard"
    ULTRA = "ultra"


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    STORY = "9:16"

    @property
    def label(self) -> str:
        """Where a flyer in this format gets published"""
        if self is AspectRatio.SQUARE:
            return "Post de Instagram"
        return "Stories/TikTok"


class GenerationStatus(str, Enum):
    """Status shown to the user, derived from the orchestrator phase"""
    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    BRANDING = "BRANDING"
    DESIGNING = "DESIGNING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class Phase(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    ERROR = "error"


class Operation(str, Enum):
    BRANDING = "branding"
    GENERATION = "generation"


@dataclass
class RestaurantInfo:
    """
    Mutable draft of the business and offer data entered through the wizard.

    `type`, `target_audience` and `context` only end up in the prompt text.
    `logo` holds the image reference of the last logo that finished asset
    normalization; `brand_color` is overwritten by branding extraction.
    """
    name: str = ""
    type: str = DEFAULT_BUSINESS_TYPE
    target_audience: TargetAudience = TargetAudience.POPULAR
    context: UsageContext = UsageContext.LOCAL
    product: str = ""
    price_promo: str = ""
    phone: Optional[str] = ""
    cta_text: Optional[str] = DEFAULT_CTA_TEXT
    quality: Quality = Quality.ULTRA
    logo: Optional[str] = None
    brand_color: str = DEFAULT_BRAND_COLOR

    @classmethod
    def field_names(cls):
        return [f.name for f in fields(cls)]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("target_audience", "context", "quality"):
            data[key] = getattr(self, key).value
        return data


@dataclass(frozen=True)
class Asset:
    """Canonical image: media type plus the raw byte payload"""
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


@dataclass(frozen=True)
class BrandProfile:
    """Result of branding extraction"""
    hex: str
    vibe: str
    fallback: bool = False
    detail: str = ""


@dataclass(frozen=True)
class GeneratedFlyer:
    """Generated flyer image. A new generation replaces it, it is never mutated."""
    image: Asset
    format: AspectRatio
    label: str = "Flyer Final"
    model: str = ""

    @property
    def aspect_ratio(self) -> AspectRatio:
        return self.format

    @property
    def url(self) -> str:
        return self.image.to_data_uri()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": self.format.value,
            "label": self.label,
            "model": self.model,
            "mime_type": self.image.mime_type,
            "size_bytes": self.image.size,
        }
