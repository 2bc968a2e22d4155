"""
Flyer Studio

Multi-step wizard that turns a restaurant's product photo, logo, optional style
reference and offer text into a marketing flyer generated with Gemini.

Components:
- WizardController: steps, draft and image slots
- GenerationOrchestrator: branding extraction and flyer generation status
- GeminiClient: request building and response parsing for the Gemini API
- create_app: aiohttp routes driving a session
"""

from .errors import (
    FlyerStudioError,
    ValidationError,
    AssetConversionError,
    BrandingExtractionError,
    GenerationError,
)
from .models import (
    RestaurantInfo,
    Asset,
    BrandProfile,
    GeneratedFlyer,
    GenerationStatus,
    AspectRatio,
    Quality,
)
from .wizard import WizardController, SlotKind
from .gemini_client import GeminiClient
from .orchestrator import GenerationOrchestrator
from .studio import FlyerStudioSession, SessionStore

__version__ = "0.1.0"

__all__ = [
    "FlyerStudioError",
    "ValidationError",
    "AssetConversionError",
    "BrandingExtractionError",
    "GenerationError",
    "RestaurantInfo",
    "Asset",
    "BrandProfile",
    "GeneratedFlyer",
    "GenerationStatus",
    "AspectRatio",
    "Quality",
    "WizardController",
    "SlotKind",
    "GeminiClient",
    "GenerationOrchestrator",
    "FlyerStudioSession",
    "SessionStore",
]
