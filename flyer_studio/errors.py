"""
Error types for Flyer Studio
"""

from typing import Optional


class FlyerStudioError(Exception):
    """Base class for all Flyer Studio errors"""


class ValidationError(FlyerStudioError):
    """A wizard precondition was not met. `message` is shown to the user as is."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class AssetConversionError(FlyerStudioError):
    """An image reference could not be turned into an Asset"""


class BrandingExtractionError(FlyerStudioError):
    """The branding response was not valid JSON or lacked the expected fields"""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class GenerationError(FlyerStudioError):
    """Flyer generation failed or returned no image"""
