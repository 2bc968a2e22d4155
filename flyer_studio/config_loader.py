"""
Configuration Loader for Flyer Studio
Loads runtime settings, prompt templates and the reference template catalog from JSON files
"""

import os
import json
from dataclasses import dataclass, fields, replace
from typing import Optional, List, Tuple, Dict, Any

from .models import DEFAULT_BRAND_COLOR, DEFAULT_VIBE

CONFIG_DIR = os.path.join(os.path.dirname(__file__), "configs")
SETTINGS_FILE = os.path.join(CONFIG_DIR, "settings.json")
PROMPTS_FILE = os.path.join(CONFIG_DIR, "prompts.json")
TEMPLATES_FILE = os.path.join(CONFIG_DIR, "templates.json")

ENV_OVERRIDES = {
    "GEMINI_API_KEY": "api_key",
    "FLYER_STUDIO_HOST": "host",
    "FLYER_STUDIO_PORT": "port",
    "FLYER_STUDIO_EXPORT_DIR": "export_dir",
    "FLYER_STUDIO_REQUIRE_REFERENCE": "require_reference",
}


@dataclass(frozen=True)
class Settings:
    """Runtime settings. Immutable so a session can never see them change mid-flight."""
    api_key: str = ""
    branding_model: str = "gemini-3-flash-preview"
    standard_image_model: str = "gemini-2.5-flash-image"
    ultra_image_model: str = "gemini-3-pro-image-preview"
    ultra_image_size: str = "4K"
    fallback_brand_color: str = DEFAULT_BRAND_COLOR
    fallback_vibe: str = DEFAULT_VIBE
    max_image_bytes: int = 20 * 1024 * 1024
    branding_max_dimension: int = 1024
    fetch_timeout: float = 15.0
    require_reference: bool = False
    host: str = "127.0.0.1"
    port: int = 8080
    export_dir: str = "output"

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)


def _coerce(name: str, raw: Any, default: Any) -> Any:
    """Convert a JSON/env value to the type of the matching default"""
    if isinstance(default, bool):
        if isinstance(raw, str):
            return raw.strip().lower() in ("1", "true", "yes", "on")
        return bool(raw)
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return str(raw)


def load_settings(
    path: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None
) -> Tuple[Settings, Optional[str]]:
    """
    Load settings from JSON and overlay environment variables

    Args:
        path: Settings file, defaults to configs/settings.json
        environ: Environment mapping, defaults to os.environ

    Returns:
        Tuple of (settings, error_message). On any problem with the file the
        defaults are used and the error is reported.
    """
    settings_file = path or SETTINGS_FILE
    environ = os.environ if environ is None else environ
    defaults = Settings()
    known = {f.name: getattr(defaults, f.name) for f in fields(Settings)}
    values: Dict[str, Any] = {}
    error = None

    if os.path.exists(settings_file):
        try:
            with open(settings_file, 'r', encoding='utf-8') as f:
                file_data = json.load(f)
            if not isinstance(file_data, dict):
                raise ValueError("settings file must contain a JSON object")
            for key, raw in file_data.items():
                if key in known:
                    values[key] = _coerce(key, raw, known[key])
        except json.JSONDecodeError as e:
            values = {}
            error = f"Invalid JSON in settings file: {e}"
        except (OSError, ValueError) as e:
            values = {}
            error = f"Error loading settings: {e}"

    for env_name, key in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            values[key] = _coerce(key, raw, known[key])
        except ValueError:
            error = f"Invalid value for {env_name}: {raw!r}"

    return replace(defaults, **values), error


def load_prompts(path: Optional[str] = None) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Load prompt templates

    Missing sections are filled from the built-in defaults, so callers can
    always index every key.

    Returns:
        Tuple of (prompts, error_message)
    """
    prompts_file = path or PROMPTS_FILE
    prompts = _get_default_prompts()

    if not os.path.exists(prompts_file):
        return prompts, f"Prompts file not found: {prompts_file}"

    try:
        with open(prompts_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        return prompts, f"Invalid JSON in prompts file: {e}"
    except OSError as e:
        return prompts, f"Error loading prompts: {e}"

    if not isinstance(data, dict):
        return prompts, "Invalid prompts file: expected a JSON object"

    if isinstance(data.get("branding"), str):
        prompts["branding"] = data["branding"]
    flyer = data.get("flyer") or {}
    if not isinstance(flyer, dict):
        return prompts, "Invalid prompts file: 'flyer' must be an object"
    for key, text in flyer.items():
        if key in prompts["flyer"] and isinstance(text, str):
            prompts["flyer"][key] = text

    return prompts, None


def load_template_catalog(path: Optional[str] = None) -> Tuple[List[str], Optional[str]]:
    """
    Load the list of reference template URLs offered on the inspiration step

    Returns:
        Tuple of (urls, error_message)
    """
    templates_file = path or TEMPLATES_FILE

    if not os.path.exists(templates_file):
        return [], f"Template catalog not found: {templates_file}"

    try:
        with open(templates_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        return [], f"Invalid JSON in template catalog: {e}"
    except OSError as e:
        return [], f"Error loading template catalog: {e}"

    templates = data.get("templates") if isinstance(data, dict) else None
    if not isinstance(templates, list):
        return [], "Invalid template catalog: expected a 'templates' list"

    urls = [u for u in templates if isinstance(u, str) and u.startswith(("http://", "https://"))]
    return urls, None


def _get_default_prompts() -> Dict[str, Any]:
    """Built-in prompts used when configs/prompts.json is unavailable"""
    return {
        "branding": (
            "Analiza este logo. Devuelve un JSON: "
            "{ \"hex\": \"#color_principal_vibrante\", \"vibe\": \"estilo\" }. "
            "\"vibe\" debe ser una sola palabra."
        ),
        "flyer": {
            "role": "ROL: Director Creativo de Agencia de Marketing Gastronómico.",
            "hero": (
                "PROTAGONISMO: El producto de la foto real debe ser el centro visual, "
                "con iluminación mejorada y sombras realistas."
            ),
            "data_rules": (
                "TEXTOS REALES (MANDATORIO): usa exactamente los textos indicados, "
                "sin cambiar ni una letra. Nunca inventes datos que el cliente no haya dado: "
                "si un campo está vacío, no lo muestres."
            ),
            "palette": "PALETA: Usa el color {brand_color} para crear una atmósfera coherente.",
            "style_reference": (
                "ESTILO: Imita la composición, el uso de texturas y el estilo de la imagen "
                "de referencia adjunta."
            ),
            "style_reference_strict": (
                "ESTILO: Replica fielmente la composición, la iluminación y el layout de la imagen "
                "de referencia adjunta. Sustituye el producto de la referencia por el producto del "
                "cliente e integra su logo."
            ),
            "style_original": (
                "ESTILO: Crea un diseño \"Minimalista Premium\" con degradados suaves, tipografía "
                "Sans Serif moderna y elementos gráficos limpios."
            ),
            "logo": "LOGO: Integra el logo adjunto de forma visible y sin deformarlo.",
            "quality": (
                "CALIDAD: Evita textos borrosos. Genera una pieza final de nivel profesional "
                "para {format_label}."
            ),
        },
    }
