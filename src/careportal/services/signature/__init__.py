"""Signature capture helpers."""

from .canvas import BoundingRect, SignatureCanvas
from .encoding import (
    EMPTY_SIGNATURE_MESSAGE,
    EmptySignatureError,
    SignatureError,
    encode_png_data_uri,
    image_has_ink,
    validate_signature_data,
)

__all__ = [
    "BoundingRect",
    "SignatureCanvas",
    "EMPTY_SIGNATURE_MESSAGE",
    "EmptySignatureError",
    "SignatureError",
    "encode_png_data_uri",
    "image_has_ink",
    "validate_signature_data",
]
