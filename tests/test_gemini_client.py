"""Tests for Gemini request building and response parsing."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from flyer_studio.config_loader import Settings
from flyer_studio.errors import BrandingExtractionError, GenerationError
from flyer_studio.gemini_client import (
    GeminiClient,
    extract_image_asset,
    extract_json_from_response,
    parse_branding_response,
)
from flyer_studio.models import Asset, AspectRatio, Quality, RestaurantInfo


@pytest.fixture
def draft() -> RestaurantInfo:
    return RestaurantInfo(
        name="La Esquina",
        product="Hamburguesa \"Doble\" BBQ",
        price_promo="2x1 solo hoy $9.990",
        phone="+56 9 1234 5678",
        cta_text="",
        quality=Quality.STANDARD,
        brand_color="#ff5733",
    )


@pytest.fixture
def photo(png_bytes: bytes) -> Asset:
    return Asset(mime_type="image/png", data=png_bytes)


@pytest.fixture
def logo(jpeg_bytes: bytes) -> Asset:
    return Asset(mime_type="image/jpeg", data=jpeg_bytes)


def _image_parts(request: Any) -> list[Any]:
    return [p for p in request.parts if p.inline_data is not None]


def _text_parts(request: Any) -> list[Any]:
    return [p for p in request.parts if p.text]


def test_extract_json_handles_fences_and_prose() -> None:
    assert extract_json_from_response('```json\n{"hex": "#fff"}\n```') == ({"hex": "#fff"}, None)
    assert extract_json_from_response('Aquí está: {"vibe": "rústico"} ¡listo!') == ({"vibe": "rústico"}, None)

    data, error = extract_json_from_response("sin json")
    assert data == {}
    assert error == "No valid JSON found in response"


def test_parse_branding_response_normalizes_hex() -> None:
    profile = parse_branding_response('{"hex": " #FF5733 ", "vibe": " audaz "}')
    assert profile.hex == "#ff5733"
    assert profile.vibe == "audaz"
    assert profile.fallback is False


@pytest.mark.parametrize(
    "text",
    [
        "",
        "not json at all",
        '{"hex": "rojo", "vibe": "audaz"}',
        '{"hex": "#12345", "vibe": "audaz"}',
        '{"hex": "#123456"}',
        '{"hex": "#123456", "vibe": "   "}',
        '["#123456", "audaz"]',
    ],
)
def test_parse_branding_response_rejects_malformed_output(text: str) -> None:
    with pytest.raises(BrandingExtractionError):
        parse_branding_response(text)


@pytest.mark.asyncio
async def test_extract_brand_colors_success(gemini_client: GeminiClient, fake_models: Any, logo: Asset) -> None:
    profile = await gemini_client.extract_brand_colors(logo)

    assert (profile.hex, profile.vibe, profile.fallback) == ("#ff5733", "audaz", False)

    call = fake_models.branding_calls[0]
    assert call.model == "gemini-3-flash-preview"
    assert call.contents[0].inline_data.data == logo.data
    assert call.contents[0].inline_data.mime_type == "image/jpeg"
    assert "hex" in call.contents[1].text
    assert call.config.response_schema.required == ["hex", "vibe"]


@pytest.mark.asyncio
async def test_extract_brand_colors_falls_back_on_malformed_json(
    gemini_client: GeminiClient,
    fake_models: Any,
    responses: Any,
    logo: Asset,
) -> None:
    fake_models.branding = responses.text("lo siento, no puedo")

    profile = await gemini_client.extract_brand_colors(logo)

    assert profile.hex == "#9333ea"
    assert profile.vibe == "moderno"
    assert profile.fallback is True
    assert "lo siento" in profile.detail


@pytest.mark.asyncio
async def test_extract_brand_colors_uses_configured_fallback(
    gemini_client: GeminiClient,
    fake_models: Any,
    responses: Any,
    logo: Asset,
) -> None:
    settings = Settings(api_key="k", fallback_brand_color="#f97316")
    client = GeminiClient(settings=settings, client=gemini_client._client)
    fake_models.branding = responses.text(None)

    profile = await client.extract_brand_colors(logo)

    assert profile.hex == "#f97316"


@pytest.mark.asyncio
async def test_extract_brand_colors_propagates_transport_errors(
    gemini_client: GeminiClient,
    fake_models: Any,
    logo: Asset,
) -> None:
    fake_models.branding = RuntimeError("429 quota exhausted")

    with pytest.raises(RuntimeError, match="quota"):
        await gemini_client.extract_brand_colors(logo)


def test_standard_story_request_has_two_images_and_no_size_hint(
    gemini_client: GeminiClient,
    draft: RestaurantInfo,
    photo: Asset,
    logo: Asset,
) -> None:
    request = gemini_client.build_flyer_request(
        draft, [photo], reference_asset=None, logo_asset=logo, aspect_ratio=AspectRatio.STORY
    )

    images = _image_parts(request)
    assert len(request.parts) == 3
    assert [p.inline_data.data for p in images] == [photo.data, logo.data]
    assert len(_text_parts(request)) == 1
    assert request.parts[-1].text == request.prompt
    assert request.image_count == 2

    assert request.model == "gemini-2.5-flash-image"
    assert request.config.image_config.aspect_ratio == "9:16"
    assert request.config.image_config.image_size is None
    assert request.config.response_modalities == ["IMAGE"]


def test_ultra_request_asks_for_maximum_resolution(
    gemini_client: GeminiClient,
    draft: RestaurantInfo,
    photo: Asset,
) -> None:
    draft.quality = Quality.ULTRA

    request = gemini_client.build_flyer_request(draft, [photo], aspect_ratio=AspectRatio.SQUARE)

    assert request.model == "gemini-3-pro-image-preview"
    assert request.config.image_config.image_size == "4K"
    assert request.config.image_config.aspect_ratio == "1:1"


def test_request_part_order_is_product_reference_logo_text(
    gemini_client: GeminiClient,
    draft: RestaurantInfo,
    photo: Asset,
    logo: Asset,
    make_png: Any,
) -> None:
    reference = Asset(mime_type="image/png", data=make_png(color=(1, 2, 3)))

    request = gemini_client.build_flyer_request(draft, [photo], reference_asset=reference, logo_asset=logo)

    assert [p.inline_data.data for p in _image_parts(request)] == [photo.data, reference.data, logo.data]
    assert request.parts[3].text


def test_prompt_embeds_user_data_verbatim(
    gemini_client: GeminiClient,
    draft: RestaurantInfo,
    photo: Asset,
) -> None:
    prompt = gemini_client.build_flyer_request(draft, [photo]).prompt

    assert '"La Esquina"' in prompt
    assert '"Hamburguesa "Doble" BBQ"' in prompt
    assert '"2x1 solo hoy $9.990"' in prompt
    assert '"+56 9 1234 5678"' in prompt
    assert '"¡Ordena Ya!"' in prompt
    assert "#ff5733" in prompt
    assert "Nunca inventes datos" in prompt
    assert "Minimalista Premium" in prompt
    assert "Stories/TikTok" in prompt
    assert "Comida Rápida" in prompt


def test_prompt_style_follows_reference(
    gemini_client: GeminiClient,
    draft: RestaurantInfo,
    photo: Asset,
    logo: Asset,
) -> None:
    loose = gemini_client.build_flyer_request(draft, [photo], reference_asset=photo).prompt
    strict = gemini_client.build_flyer_request(
        draft, [photo], reference_asset=photo, logo_asset=logo, require_reference=True
    ).prompt

    assert "Imita la composición" in loose
    assert "Minimalista Premium" not in loose
    assert "Replica fielmente" in strict
    assert "LOGO:" in strict
    assert "LOGO:" not in loose


def test_request_requires_product_and_strict_reference(
    gemini_client: GeminiClient,
    draft: RestaurantInfo,
    photo: Asset,
) -> None:
    with pytest.raises(GenerationError):
        gemini_client.build_flyer_request(draft, [])
    with pytest.raises(GenerationError, match="reference"):
        gemini_client.build_flyer_request(draft, [photo], require_reference=True)


@pytest.mark.asyncio
async def test_generate_flyer_returns_first_inline_image(
    gemini_client: GeminiClient,
    fake_models: Any,
    draft: RestaurantInfo,
    photo: Asset,
    logo: Asset,
    png_bytes: bytes,
) -> None:
    flyer = await gemini_client.generate_flyer(draft, [photo], logo_asset=logo, aspect_ratio=AspectRatio.STORY)

    assert flyer.format == AspectRatio.STORY
    assert flyer.format.value == "9:16"
    assert flyer.image == Asset(mime_type="image/png", data=png_bytes)
    assert flyer.label == "Flyer Final"
    assert flyer.url.startswith("data:image/png;base64,")

    call = fake_models.image_calls[0]
    assert call.model == "gemini-2.5-flash-image"
    assert len(call.contents) == 3


@pytest.mark.asyncio
async def test_generate_flyer_without_image_part_raises(
    gemini_client: GeminiClient,
    fake_models: Any,
    responses: Any,
    draft: RestaurantInfo,
    photo: Asset,
) -> None:
    fake_models.image = responses.empty()

    with pytest.raises(GenerationError, match="no image returned"):
        await gemini_client.generate_flyer(draft, [photo])


@pytest.mark.asyncio
async def test_generate_flyer_wraps_transport_errors(
    gemini_client: GeminiClient,
    fake_models: Any,
    draft: RestaurantInfo,
    photo: Asset,
) -> None:
    fake_models.image = RuntimeError("blocked by safety settings")

    with pytest.raises(GenerationError, match="Safety filter") as exc_info:
        await gemini_client.generate_flyer(draft, [photo])
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_client_without_key_is_not_selected(draft: RestaurantInfo, photo: Asset) -> None:
    client = GeminiClient(settings=Settings(api_key=""))

    assert client.has_api_key is False
    assert await client.verify_api_key() == (False, "No API key provided")
    with pytest.raises(GenerationError, match="API key"):
        await client.generate_flyer(draft, [photo])


def test_extract_image_asset_skips_non_image_parts() -> None:
    parts = [
        SimpleNamespace(inline_data=None, text="aquí tienes"),
        SimpleNamespace(inline_data=SimpleNamespace(data=b"{}", mime_type="application/json")),
        SimpleNamespace(inline_data=SimpleNamespace(data="aGk=", mime_type="image/webp")),
    ]
    response = SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))])

    assert extract_image_asset(response) == Asset(mime_type="image/webp", data=b"hi")
    assert extract_image_asset(SimpleNamespace(candidates=[])) is None
    assert extract_image_asset(SimpleNamespace(candidates=[SimpleNamespace(content=None)])) is None
