"""
Flyer export
Names the generated flyer after the product and hands its bytes to the host for download or saving
"""

import os
import re
from typing import Tuple

from .models import GeneratedFlyer

FILENAME_PREFIX = "MR-DISEÑO-"
DEFAULT_PRODUCT_NAME = "flyer"

EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def _sanitize_name(name: str) -> str:
    """Strip characters that are invalid in filenames, keep accents and spaces"""
    name = re.sub(r'[<>:"/\\|?*\x00-\x1f]', '_', name)
    name = re.sub(r'\s+', ' ', name).strip(' .')
    return name[:80]


def flyer_filename(product: str, mime_type: str = "image/png") -> str:
    """`MR-DISEÑO-<product>.png` style download name"""
    safe_product = _sanitize_name(product or "") or DEFAULT_PRODUCT_NAME
    extension = EXTENSIONS.get(mime_type, ".png")
    return f"{FILENAME_PREFIX}{safe_product}{extension}"


def export_flyer(flyer: GeneratedFlyer, product: str) -> Tuple[str, bytes]:
    """Return (filename, image bytes) for the host environment to persist"""
    return flyer_filename(product, flyer.image.mime_type), flyer.image.data


def save_flyer(flyer: GeneratedFlyer, product: str, directory: str) -> str:
    """
    Write the flyer into directory

    Returns:
        Path of the written file
    """
    filename, data = export_flyer(flyer, product)
    os.makedirs(directory, exist_ok=True)
    filepath = os.path.join(directory, filename)
    with open(filepath, 'wb') as f:
        f.write(data)
    return filepath
