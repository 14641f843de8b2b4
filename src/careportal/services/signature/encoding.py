"""PNG data-URI encoding and ink validation for signature images."""

from __future__ import annotations

import base64
import binascii
import io

import numpy as np
from PIL import Image, UnidentifiedImageError

PNG_DATA_URI_PREFIX = "data:image/png;base64,"
EMPTY_SIGNATURE_MESSAGE = "Bitte unterschreiben (nicht leer)."
TOO_LARGE_MESSAGE = "Unterschrift ist zu groß."


class SignatureError(ValueError):
    """The submitted signature payload cannot be used."""


class EmptySignatureError(SignatureError):
    def __init__(self) -> None:
        super().__init__(EMPTY_SIGNATURE_MESSAGE)


def image_has_ink(image: Image.Image) -> bool:
    """True when at least one pixel is not fully transparent."""

    alpha = np.asarray(image.convert("RGBA"))[..., 3]
    return bool(alpha.any())


def encode_png_data_uri(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return PNG_DATA_URI_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")


def decode_data_uri(data_uri: str, max_bytes: int | None = None, max_pixels: int | None = None) -> Image.Image:
    """Decode a base64 PNG data URI into a Pillow image.

    The declared pixel size is checked before the pixel data is decoded.
    """

    if not isinstance(data_uri, str) or not data_uri.startswith(PNG_DATA_URI_PREFIX):
        raise SignatureError("Ungültige Unterschrift: erwartet wird eine PNG-Data-URI.")
    encoded = data_uri[len(PNG_DATA_URI_PREFIX):]
    if not encoded:
        raise SignatureError("Ungültige Unterschrift: Base64-Daten fehlen.")
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SignatureError("Ungültige Unterschrift: Base64-Daten beschädigt.") from exc
    if max_bytes is not None and len(raw) > max_bytes:
        raise SignatureError(TOO_LARGE_MESSAGE)
    try:
        image = Image.open(io.BytesIO(raw))
        if image.format != "PNG":
            raise SignatureError("Ungültige Unterschrift: erwartet wird ein PNG-Bild.")
        width, height = image.size
        if max_pixels is not None and width * height > max_pixels:
            raise SignatureError(TOO_LARGE_MESSAGE)
        image.load()
    except Image.DecompressionBombError as exc:
        raise SignatureError(TOO_LARGE_MESSAGE) from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise SignatureError("Ungültige Unterschrift: Bild nicht lesbar.") from exc
    return image


def has_alpha(image: Image.Image) -> bool:
    return "A" in image.getbands() or "transparency" in image.info


def validate_signature_data(
    data_uri: str,
    max_bytes: int | None = None,
    max_pixels: int | None = None,
) -> Image.Image:
    """Decode ``data_uri`` and reject it when no ink was drawn.

    Ink is found by scanning the alpha channel, so opaque images cannot be
    checked and are refused.
    """

    image = decode_data_uri(data_uri, max_bytes=max_bytes, max_pixels=max_pixels)
    if not has_alpha(image):
        raise SignatureError("Ungültige Unterschrift: Bild ohne transparenten Hintergrund.")
    if not image_has_ink(image):
        raise EmptySignatureError()
    return image
