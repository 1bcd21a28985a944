"""Thumbnail producer backed by Pillow.

`produce_thumbnail` is allowed to fail for any input Pillow cannot decode
(RAW, HEIC without a plugin, truncated files); callers fall back to
`placeholder_thumbnail` so every photo still gets a readable preview.
"""
import io
from pathlib import Path

from PIL import Image, ImageOps

# Neutral gray used for previews that could not be rendered
_PLACEHOLDER_RGB = (180, 180, 180)


def produce_thumbnail(source: Path, max_dimension: int, quality: int) -> bytes:
    """Return JPEG bytes fitting inside a `max_dimension` square.

    EXIF orientation is applied first so the preview is right-side-up.
    Images already smaller than the bound are never enlarged.
    """
    with Image.open(source) as img:
        img = ImageOps.exif_transpose(img)
        img = img.convert("RGB")
        img.thumbnail((max_dimension, max_dimension))
        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def placeholder_thumbnail(max_dimension: int, quality: int) -> bytes:
    img = Image.new("RGB", (max_dimension, max_dimension), _PLACEHOLDER_RGB)
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()
