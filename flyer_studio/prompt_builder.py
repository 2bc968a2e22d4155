"""
Prompt construction for branding extraction and flyer generation
"""

from typing import Optional, Dict, Any

from .config_loader import load_prompts
from .models import RestaurantInfo, AspectRatio, DEFAULT_BRAND_COLOR

DEFAULT_FLYER_CTA = "¡Ordena Ya!"

AUDIENCE_DESCRIPTIONS = {
    "popular": "público popular, precios accesibles, mensaje directo",
    "familiar": "familias, ambiente cálido y cercano",
    "premium": "público premium, estética sofisticada",
}

CONTEXT_DESCRIPTIONS = {
    "delivery": "pedidos a domicilio",
    "local": "consumo en el local",
    "temporada": "promoción de temporada",
}


def build_branding_prompt(prompts: Optional[Dict[str, Any]] = None) -> str:
    if prompts is None:
        prompts, _ = load_prompts()
    return prompts["branding"]


def _quoted(value: Optional[str]) -> str:
    return f"\"{(value or '').strip()}\""


def build_flyer_prompt(
    draft: RestaurantInfo,
    has_reference: bool,
    aspect_ratio: AspectRatio,
    has_logo: bool = False,
    strict: bool = False,
    prompts: Optional[Dict[str, Any]] = None
) -> str:
    """
    Build the instruction text sent with the flyer images

    The user's strings are embedded verbatim and quoted, the model is told never
    to invent data, and the style section depends on whether a reference image
    is attached.

    Args:
        draft: Current wizard draft
        has_reference: A reference/template image is part of the request
        aspect_ratio: Target format, used for the publication label
        has_logo: A logo image is part of the request
        strict: Template replication mode (reference must be followed closely)
        prompts: Prompt templates, loaded from configs/prompts.json when omitted
    """
    if prompts is None:
        prompts, _ = load_prompts()
    flyer = prompts["flyer"]

    audience = draft.target_audience.value
    context = draft.context.value

    lines = [
        flyer["role"],
        "TAREAS DE DISEÑO:",
        f"1. {flyer['hero']}",
        f"2. {flyer['data_rules']}",
        f"   - Título: {_quoted(draft.name)} (Tipografía Bold/Elegante).",
        f"   - Oferta: {_quoted(draft.price_promo)} (En un badge o tipografía gigante de impacto).",
        f"   - Producto: {_quoted(draft.product)}",
        f"   - Contacto: {_quoted(draft.phone)}",
        f"   - Botón/CTA: {_quoted(draft.cta_text or DEFAULT_FLYER_CTA)}",
        f"3. {flyer['palette'].format(brand_color=draft.brand_color or DEFAULT_BRAND_COLOR)}",
        f"4. {_style_section(flyer, has_reference, strict)}",
        f"5. {flyer['quality'].format(format_label=aspect_ratio.label)}",
        "CONTEXTO DEL NEGOCIO:",
        f"   - Tipo: {draft.type}",
        f"   - Público: {AUDIENCE_DESCRIPTIONS.get(audience, audience)}",
        f"   - Uso: {CONTEXT_DESCRIPTIONS.get(context, context)}",
    ]
    if has_logo:
        lines.insert(-4, f"6. {flyer['logo']}")

    return "\n".join(lines)


def _style_section(flyer: Dict[str, str], has_reference: bool, strict: bool) -> str:
    if not has_reference:
        return flyer["style_original"]
    if strict:
        return flyer["style_reference_strict"]
    return flyer["style_reference"]
