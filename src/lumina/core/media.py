"""Helpers for ``data:`` URIs, the in-memory form of every image reference."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass


@dataclass(frozen=True)
class InlineImage:
    """Decoded contents of a ``data:<mime>;base64,<payload>`` URI."""

    mime_type: str
    data: bytes


def is_data_uri(reference: str) -> bool:
    return reference.startswith("data:")


def to_data_uri(mime_type: str, data: bytes | str) -> str:
    """Build a data URI from raw bytes or an already base64-encoded string.

    Args:
        mime_type: Mime type of the payload (``image/png``).
        data: Raw bytes, or the base64 text the provider returned.

    Returns:
        ``data:<mime_type>;base64,<payload>``
    """
    if isinstance(data, bytes):
        payload = base64.b64encode(data).decode("ascii")
    else:
        payload = data
    return f"data:{mime_type};base64,{payload}"


def parse_data_uri(reference: str) -> InlineImage:
    """Split a base64 data URI into its mime type and decoded bytes.

    Raises:
        ValueError: If the reference is not a base64 data URI.
    """
    if not is_data_uri(reference):
        raise ValueError("Not a data URI")

    header, sep, payload = reference.partition(",")
    if not sep or not header.endswith(";base64"):
        raise ValueError("Data URI is not base64 encoded")

    mime_type = header[len("data:") : -len(";base64")] or "application/octet-stream"
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e

    return InlineImage(mime_type=mime_type, data=data)
