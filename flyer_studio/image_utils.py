"""
Image utility functions for Flyer Studio
Turns uploaded files, remote URLs and data URIs into canonical Assets for the Gemini API
"""

import io
import base64
import binascii
import os
from typing import Optional, Union, BinaryIO

import requests
from PIL import Image, UnidentifiedImageError

from .errors import AssetConversionError
from .models import Asset

DEFAULT_MAX_IMAGE_BYTES = 20 * 1024 * 1024
DEFAULT_FETCH_TIMEOUT = 15.0

DEFAULT_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'image/avif,image/webp,image/apng,image/*,*/*;q=0.8',
    'Accept-Language': 'es-ES,es;q=0.9,en;q=0.8',
}

ImageSource = Union[Asset, str, bytes, bytearray, os.PathLike, BinaryIO]


def detect_mime_type(image_bytes: bytes) -> Optional[str]:
    """Detect the image media type from magic bytes, then Pillow"""
    if image_bytes[:8] == b'\x89PNG\r\n\x1a\n':
        return "image/png"
    elif image_bytes[:3] == b'\xff\xd8\xff':
        return "image/jpeg"
    elif image_bytes[:6] in (b'GIF87a', b'GIF89a'):
        return "image/gif"
    elif image_bytes[:4] == b'RIFF' and image_bytes[8:12] == b'WEBP':
        return "image/webp"

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            return Image.MIME.get(img.format or "")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        return None


def _check_payload(data: bytes, max_bytes: int, source: str) -> None:
    if not data:
        raise AssetConversionError(f"Empty image payload: {source}")
    if len(data) > max_bytes:
        raise AssetConversionError(
            f"Image too large ({len(data)} bytes, limit {max_bytes}): {source}"
        )


def asset_from_data_uri(data_uri: str, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> Asset:
    """
    Decode a `data:<mime>;base64,<payload>` string without any network access

    Raises:
        AssetConversionError: missing separator, missing header or invalid base64
    """
    header, sep, payload = data_uri.partition(',')
    if not sep:
        raise AssetConversionError("Malformed data URI: missing ',' separator")
    if not header.startswith('data:') or not header.endswith(';base64'):
        raise AssetConversionError(f"Malformed data URI header: {header[:60]}")

    mime_type = header[len('data:'):-len(';base64')] or "image/png"

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AssetConversionError(f"Malformed data URI payload: {e}") from e

    _check_payload(data, max_bytes, "data URI")
    return Asset(mime_type=mime_type, data=data)


def asset_to_data_uri(asset: Asset) -> str:
    """Inverse of asset_from_data_uri"""
    return asset.to_data_uri()


def asset_from_url(
    url: str,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    session: Optional[requests.Session] = None
) -> Asset:
    """
    Download a remote image and wrap its body as an Asset

    Args:
        url: HTTP(S) image URL
        timeout: Request timeout in seconds
        max_bytes: Size ceiling for the body
        session: Optional requests session (tests inject one)

    Raises:
        AssetConversionError: network failure, non-2xx status, HTML body or oversize payload
    """
    http = session or requests
    try:
        response = http.get(url, headers=DEFAULT_HEADERS, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.Timeout as e:
        raise AssetConversionError(f"Timeout: {url[:60]}") from e
    except requests.exceptions.HTTPError as e:
        status_code = e.response.status_code if e.response is not None else 0
        raise AssetConversionError(f"HTTP {status_code}: {url[:60]}") from e
    except requests.exceptions.RequestException as e:
        raise AssetConversionError(f"Fetch failed for {url[:60]}: {e}") from e

    content_type = response.headers.get('content-type', '').split(';')[0].strip().lower()
    if content_type == 'text/html':
        raise AssetConversionError(f"Not an image (text/html): {url[:60]}")

    data = response.content
    _check_payload(data, max_bytes, url[:60])

    if not content_type.startswith('image/'):
        content_type = detect_mime_type(data) or ""
    if not content_type:
        raise AssetConversionError(f"Unrecognized image format: {url[:60]}")

    return Asset(mime_type=content_type, data=data)


def asset_from_file(
    source: Union[str, bytes, bytearray, os.PathLike, BinaryIO],
    mime_type: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES
) -> Asset:
    """
    Read a local image fully into memory

    Args:
        source: Filesystem path, raw bytes, or a readable binary file object
        mime_type: Media type reported by the uploader, sniffed when missing

    Raises:
        AssetConversionError: the file cannot be read or is not an image
    """
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
        name = "<bytes>"
    elif hasattr(source, 'read'):
        name = getattr(source, 'name', '<stream>')
        try:
            data = source.read()
        except OSError as e:
            raise AssetConversionError(f"Could not read {name}: {e}") from e
    else:
        name = os.fspath(source)
        try:
            with open(name, 'rb') as f:
                data = f.read()
        except OSError as e:
            raise AssetConversionError(f"Could not read {name}: {e}") from e

    if isinstance(data, str):
        raise AssetConversionError(f"File opened in text mode: {name}")

    _check_payload(data, max_bytes, str(name))

    detected = detect_mime_type(data)
    if mime_type and mime_type.startswith('image/'):
        detected = mime_type
    if not detected:
        raise AssetConversionError(f"Unrecognized image format: {name}")

    return Asset(mime_type=detected, data=data)


def to_asset(
    source: ImageSource,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES
) -> Asset:
    """
    Normalize any image reference into an Asset

    Strings starting with `data:` are decoded inline, `http(s)://` strings are
    fetched, anything else is treated as a local file.
    """
    if isinstance(source, Asset):
        return source
    if isinstance(source, str):
        if source.startswith('data:'):
            return asset_from_data_uri(source, max_bytes=max_bytes)
        if source.startswith(('http://', 'https://')):
            return asset_from_url(source, timeout=timeout, max_bytes=max_bytes)
    return asset_from_file(source, max_bytes=max_bytes)


def file_to_data_uri(
    source: Union[str, bytes, bytearray, os.PathLike, BinaryIO],
    mime_type: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES
) -> str:
    """Read an uploaded file into the data URI stored in wizard slots"""
    return asset_from_file(source, mime_type=mime_type, max_bytes=max_bytes).to_data_uri()


def image_data_uri(data_uri: str, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> str:
    """
    Validate a data URI posted by a client and return it in canonical form

    The declared media type is kept when it is image/*, otherwise the payload
    is sniffed like an uploaded file.

    Raises:
        AssetConversionError: malformed URI or a payload that is not an image
    """
    asset = asset_from_data_uri(data_uri, max_bytes=max_bytes)
    detected = detect_mime_type(asset.data)
    if asset.mime_type.startswith('image/'):
        detected = asset.mime_type
    if not detected:
        raise AssetConversionError(f"Unrecognized image format: data URI ({asset.mime_type})")
    return Asset(mime_type=detected, data=asset.data).to_data_uri()


def resize_image_bytes(image_bytes: bytes, max_size: int = 1024) -> bytes:
    """
    Resize image if larger than max_size while maintaining aspect ratio

    Args:
        image_bytes: Original image bytes
        max_size: Maximum dimension size

    Returns:
        PNG bytes of the resized image, or the original bytes when no resize was needed
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            if img.width <= max_size and img.height <= max_size:
                return image_bytes

            ratio = min(max_size / img.width, max_size / img.height)
            new_size = (max(1, int(img.width * ratio)), max(1, int(img.height * ratio)))
            resized = img.resize(new_size, Image.Resampling.LANCZOS)

            output_buffer = io.BytesIO()
            resized.save(output_buffer, format="PNG")
            return output_buffer.getvalue()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise AssetConversionError(f"Could not decode image for resizing: {e}") from e


def shrink_asset(asset: Asset, max_size: int) -> Asset:
    """Downscale an asset's image, keeping it untouched when already small enough"""
    data = resize_image_bytes(asset.data, max_size=max_size)
    if data is asset.data:
        return asset
    return Asset(mime_type="image/png", data=data)
