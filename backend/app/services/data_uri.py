from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass

_DATA_URI_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


@dataclass(frozen=True, slots=True)
class DataUri:
    mime_type: str
    data: bytes


def parse_data_uri(value: str) -> DataUri:
    """Decode a ``data:<mimetype>;base64,<data>`` string."""
    match = _DATA_URI_PATTERN.match(value.strip())
    if match is None:
        raise ValueError("Not a base64 data URI.")
    payload = re.sub(r"\s+", "", match.group("data"))
    if not payload:
        raise ValueError("Data URI has an empty payload.")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc
    return DataUri(mime_type=match.group("mime").lower(), data=data)


def encode_data_uri(mime_type: str, data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"
