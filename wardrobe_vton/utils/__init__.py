"""Utility helpers."""

from .images import decode_data_url, encode_data_url, normalize_to_png, sniff_media_type

__all__ = [
    "decode_data_url",
    "encode_data_url",
    "normalize_to_png",
    "sniff_media_type",
]
