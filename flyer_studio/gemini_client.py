"""
Gemini API Client for Flyer Studio
Handles branding extraction (Gemini Flash, JSON output) and flyer generation (Gemini image models)
"""

import base64
import json
import re
from dataclasses import dataclass
from typing import Optional, Dict, Any, List, Tuple

from google import genai
from google.genai import types

from .config_loader import Settings, load_prompts
from .errors import BrandingExtractionError, GenerationError
from .models import (
    Asset,
    AspectRatio,
    BrandProfile,
    GeneratedFlyer,
    Quality,
    RestaurantInfo,
)
from .prompt_builder import build_branding_prompt, build_flyer_prompt

FLYER_LABEL = "Flyer Final"
VERIFY_MODEL = "gemini-2.0-flash"

HEX_COLOR_RE = re.compile(r'^#(?:[0-9a-fA-F]{3}){1,2}$')

BRANDING_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "hex": types.Schema(type=types.Type.STRING),
        "vibe": types.Schema(type=types.Type.STRING),
    },
    required=["hex", "vibe"],
)


@dataclass(frozen=True)
class FlyerRequest:
    """Everything sent to the image model for one generation"""
    model: str
    parts: List[types.Part]
    config: types.GenerateContentConfig
    image_count: int
    prompt: str


def extract_json_from_response(text: str) -> Tuple[Dict[str, Any], Optional[str]]:
    """Extract JSON from response text, handling code fences and surrounding prose."""
    text = (text or "").strip()

    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data, None
    except json.JSONDecodeError:
        pass

    first_brace = text.find('{')
    last_brace = text.rfind('}')

    if first_brace != -1 and last_brace != -1 and last_brace > first_brace:
        json_str = text[first_brace:last_brace + 1]
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            return {}, f"Invalid JSON in response: {str(e)}"
        if isinstance(data, dict):
            return data, None

    return {}, "No valid JSON found in response"


def parse_branding_response(text: str) -> BrandProfile:
    """
    Parse the schema-constrained branding answer

    Raises:
        BrandingExtractionError: not JSON, or `hex`/`vibe` missing or malformed
    """
    data, json_error = extract_json_from_response(text)
    if json_error:
        raise BrandingExtractionError(json_error, raw_text=text or "")

    hex_color = data.get("hex")
    vibe = data.get("vibe")

    if not isinstance(hex_color, str) or not HEX_COLOR_RE.match(hex_color.strip()):
        raise BrandingExtractionError(f"Invalid hex color: {hex_color!r}", raw_text=text)
    if not isinstance(vibe, str) or not vibe.strip():
        raise BrandingExtractionError(f"Missing vibe: {vibe!r}", raw_text=text)

    return BrandProfile(hex=hex_color.strip().lower(), vibe=vibe.strip())


def response_text(response) -> str:
    """Collect the text of a generate_content response"""
    if not response:
        return ""
    if getattr(response, 'text', None):
        return response.text

    text = ""
    for candidate in getattr(response, 'candidates', None) or []:
        content = getattr(candidate, 'content', None)
        for part in getattr(content, 'parts', None) or []:
            if getattr(part, 'text', None):
                text += part.text
    return text


def extract_image_asset(response) -> Optional[Asset]:
    """Return the first inline image part of the first candidate, if any"""
    candidates = getattr(response, 'candidates', None) or []
    if not candidates:
        return None

    content = getattr(candidates[0], 'content', None)
    for part in getattr(content, 'parts', None) or []:
        inline = getattr(part, 'inline_data', None)
        if inline is None or not inline.data:
            continue
        mime_type = inline.mime_type or "image/png"
        if not mime_type.startswith("image/"):
            continue
        data = inline.data
        if isinstance(data, str):
            data = base64.b64decode(data)
        return Asset(mime_type=mime_type, data=data)

    return None


class GeminiClient:
    """
    Client for branding extraction and flyer generation

    The underlying genai.Client is created once and never swapped; a session
    that needs another key builds another GeminiClient.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        settings: Optional[Settings] = None,
        client=None,
        prompts: Optional[Dict[str, Any]] = None
    ):
        self.settings = settings or Settings()
        self.api_key = api_key if api_key is not None else self.settings.api_key
        if prompts is None:
            prompts, _ = load_prompts()
        self.prompts = prompts

        if client is not None:
            self._client = client
        elif self.api_key:
            self._client = genai.Client(api_key=self.api_key)
        else:
            self._client = None

    @property
    def has_api_key(self) -> bool:
        """The "API key selected" flag"""
        return self._client is not None

    def _require_client(self):
        if self._client is None:
            raise GenerationError("No Gemini API key configured")
        return self._client

    def _create_image_part(self, asset: Asset) -> types.Part:
        """Create an image part for the API request"""
        return types.Part.from_bytes(data=asset.data, mime_type=asset.mime_type)

    def select_image_model(self, quality: Quality) -> Tuple[str, Optional[str]]:
        """Return (model_id, image_size) for a quality tier"""
        if quality == Quality.ULTRA:
            return self.settings.ultra_image_model, self.settings.ultra_image_size
        return self.settings.standard_image_model, None

    async def verify_api_key(self) -> Tuple[bool, str]:
        """Verify the API key is valid by making a test request"""
        if self._client is None:
            return False, "No API key provided"

        try:
            response = await self._client.aio.models.generate_content(
                model=VERIFY_MODEL,
                contents="Test"
            )
        except Exception as e:
            error_msg = str(e)
            if "quota" in error_msg.lower():
                return False, f"Quota exceeded: {error_msg[:80]}"
            return False, f"API key verification failed: {error_msg[:80]}"

        if response_text(response):
            return True, "API key verified successfully"
        return False, "API key verification failed: empty response"

    async def extract_brand_colors(self, logo: Asset) -> BrandProfile:
        """
        Ask Gemini Flash for the logo's dominant color and a one-word style

        Unparseable output degrades to the configured fallback color/vibe with
        `fallback=True`. Transport errors are not caught here.
        """
        client = self._require_client()

        response = await client.aio.models.generate_content(
            model=self.settings.branding_model,
            contents=[
                self._create_image_part(logo),
                types.Part.from_text(text=build_branding_prompt(self.prompts)),
            ],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=BRANDING_SCHEMA,
            )
        )

        text = response_text(response)
        try:
            return parse_branding_response(text)
        except BrandingExtractionError as e:
            return BrandProfile(
                hex=self.settings.fallback_brand_color,
                vibe=self.settings.fallback_vibe,
                fallback=True,
                detail=f"{e} (raw: {text[:120]!r})",
            )

    def build_flyer_request(
        self,
        draft: RestaurantInfo,
        product_assets: List[Asset],
        reference_asset: Optional[Asset] = None,
        logo_asset: Optional[Asset] = None,
        aspect_ratio: AspectRatio = AspectRatio.STORY,
        require_reference: Optional[bool] = None
    ) -> FlyerRequest:
        """
        Assemble the multimodal request: product images, reference, logo, then the instruction text

        Raises:
            GenerationError: no product image, or no reference in template replication mode
        """
        if require_reference is None:
            require_reference = self.settings.require_reference

        if not product_assets:
            raise GenerationError("At least one product image is required")
        if require_reference and reference_asset is None:
            raise GenerationError("A reference template is required in template replication mode")

        aspect_ratio = AspectRatio(aspect_ratio)
        model, image_size = self.select_image_model(draft.quality)

        images = list(product_assets)
        if reference_asset is not None:
            images.append(reference_asset)
        if logo_asset is not None:
            images.append(logo_asset)

        prompt = build_flyer_prompt(
            draft,
            has_reference=reference_asset is not None,
            aspect_ratio=aspect_ratio,
            has_logo=logo_asset is not None,
            strict=require_reference,
            prompts=self.prompts,
        )

        parts = [self._create_image_part(asset) for asset in images]
        parts.append(types.Part.from_text(text=prompt))

        if image_size:
            image_config = types.ImageConfig(aspect_ratio=aspect_ratio.value, image_size=image_size)
        else:
            image_config = types.ImageConfig(aspect_ratio=aspect_ratio.value)

        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=image_config,
        )

        return FlyerRequest(
            model=model,
            parts=parts,
            config=config,
            image_count=len(images),
            prompt=prompt,
        )

    async def generate_flyer(
        self,
        draft: RestaurantInfo,
        product_assets: List[Asset],
        reference_asset: Optional[Asset] = None,
        logo_asset: Optional[Asset] = None,
        aspect_ratio: AspectRatio = AspectRatio.STORY,
        require_reference: Optional[bool] = None
    ) -> GeneratedFlyer:
        """
        Generate one flyer. No retries.

        Raises:
            GenerationError: invalid request, API failure, or no image in the response
        """
        request = self.build_flyer_request(
            draft,
            product_assets,
            reference_asset=reference_asset,
            logo_asset=logo_asset,
            aspect_ratio=aspect_ratio,
            require_reference=require_reference,
        )
        client = self._require_client()

        try:
            response = await client.aio.models.generate_content(
                model=request.model,
                contents=request.parts,
                config=request.config
            )
        except Exception as e:
            error_msg = str(e)
            if "safety" in error_msg.lower():
                raise GenerationError(f"Safety filter triggered: {error_msg}") from e
            elif "quota" in error_msg.lower():
                raise GenerationError(f"Quota exceeded: {error_msg}") from e
            raise GenerationError(f"Generation error: {error_msg}") from e

        image = extract_image_asset(response)
        if image is None:
            raise GenerationError("no image returned")

        return GeneratedFlyer(
            image=image,
            format=AspectRatio(aspect_ratio),
            label=FLYER_LABEL,
            model=request.model,
        )
