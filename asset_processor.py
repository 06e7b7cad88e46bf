"""Image utilities for poster handling and reference-image preparation"""

import base64
import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote, urlparse

import requests
from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger("AssetProcessor")

FORMAT_MIME_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


@dataclass(frozen=True)
class ReferenceImage:
    """Image prepared for a generation request"""
    b64: str  # Base64 string (without data URI prefix)
    mime_type: str
    size_px: Tuple[int, int]
    bytes_len: int
    raw_bytes: bytes


def fetch_asset_bytes(asset_url: str, timeout: int = 30) -> bytes:
    """Fetch bytes behind an http(s), file or data locator"""
    parsed = urlparse(asset_url)
    if parsed.scheme in ("http", "https"):
        try:
            response = requests.get(asset_url, timeout=timeout)
            response.raise_for_status()
            return response.content
        except requests.RequestException as e:
            logger.error(f"Failed to fetch asset from {asset_url}: {e}")
            raise
    if parsed.scheme == "file":
        return Path(unquote(parsed.path)).read_bytes()
    if parsed.scheme == "data":
        header, _, payload = asset_url.partition(",")
        if header.endswith(";base64"):
            return base64.b64decode(payload)
        return unquote(payload).encode("utf-8")
    return Path(asset_url).read_bytes()


def get_image_metadata(image_bytes: bytes) -> Dict[str, Any]:
    """Extract width, height, format from image bytes"""
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            return {
                "width": img.width,
                "height": img.height,
                "format": img.format,
                "mime_type": FORMAT_MIME_TYPES.get(img.format or "", "application/octet-stream"),
            }
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Failed to extract image metadata: {e}")
        return {"width": None, "height": None, "format": None, "mime_type": None}


def create_thumbnail(
    image_bytes: bytes,
    max_dim: int = 512,
    quality: int = 75,
    format: str = "JPEG"
) -> bytes:
    """Create downscaled thumbnail, re-encoded as ``format``"""
    with Image.open(BytesIO(image_bytes)) as loaded:
        img = ImageOps.exif_transpose(loaded)
        if format == "JPEG":
            img = _flatten(img)

        width, height = img.size
        if width > max_dim or height > max_dim:
            scale = max_dim / max(width, height)
            new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
            img = img.resize(new_size, Image.Resampling.LANCZOS)

        output = BytesIO()
        if format == "PNG":
            img.save(output, format="PNG", optimize=True)
        else:
            img.save(output, format=format, quality=quality, optimize=True)
        return output.getvalue()


def prepare_reference_image(image_bytes: bytes, max_dim: int = 1280) -> ReferenceImage:
    """Normalise a poster into a PNG or JPEG the video model accepts.

    PNG and JPEG inputs within ``max_dim`` pass through untouched; anything else is
    re-encoded (PNG when it has transparency, JPEG otherwise).

    Raises:
        ValueError: bytes are not a readable image
    """
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            source_format = img.format
            size = img.size
            has_alpha = img.mode in ("RGBA", "LA", "P")
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Reference image is not a readable image: {e}")

    if source_format in ("PNG", "JPEG") and max(size) <= max_dim:
        raw = image_bytes
        mime_type = FORMAT_MIME_TYPES[source_format]
    else:
        target = "PNG" if has_alpha else "JPEG"
        raw = create_thumbnail(image_bytes, max_dim=max_dim, quality=90, format=target)
        mime_type = FORMAT_MIME_TYPES[target]
        with Image.open(BytesIO(raw)) as img:
            size = img.size
        logger.info(f"Re-encoded reference image {source_format} -> {target} at {size[0]}x{size[1]}")

    return ReferenceImage(
        b64=base64.b64encode(raw).decode("ascii"),
        mime_type=mime_type,
        size_px=size,
        bytes_len=len(raw),
        raw_bytes=raw,
    )


def extension_for_image(image_bytes: bytes, default: Optional[str] = "png") -> Optional[str]:
    fmt = get_image_metadata(image_bytes).get("format")
    if not fmt:
        return default
    return "jpg" if fmt == "JPEG" else fmt.lower()


def _flatten(img: Image.Image) -> Image.Image:
    # JPEG has no alpha channel: composite onto white
    if img.mode in ("RGBA", "LA", "P"):
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img
