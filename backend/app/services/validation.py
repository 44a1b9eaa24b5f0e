"""Request validation for the analysis pipeline.

Validation never raises: it returns a ``RequestValidation`` holding either the
normalized values or the list of problems found.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.services.data_uri import parse_data_uri

IMAGE_URI_PREFIX = "data:image"


@dataclass(slots=True)
class RequestValidation:
    image_data_uri: str | None = None
    width: int | None = None
    height: int | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _coerce_positive_int(value: Any, name: str, errors: list[str]) -> int | None:
    if value is None or isinstance(value, bool):
        errors.append(f"{name} is required and must be a positive integer")
        return None

    number: float
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            errors.append(f"{name} must be a positive integer")
            return None
    else:
        errors.append(f"{name} must be a positive integer")
        return None

    if number != number or number in (float("inf"), float("-inf")) or int(number) != number:
        errors.append(f"{name} must be an integer")
        return None
    if number <= 0:
        errors.append(f"{name} must be positive")
        return None
    return int(number)


def validate_analysis_request(image_data_uri: Any, width: Any, height: Any) -> RequestValidation:
    errors: list[str] = []
    image: str | None = None

    if not isinstance(image_data_uri, str) or not image_data_uri.startswith(IMAGE_URI_PREFIX):
        errors.append("image must be a data URI starting with 'data:image'")
    else:
        try:
            parse_data_uri(image_data_uri)
        except ValueError as exc:
            errors.append(f"image data URI is malformed: {exc}")
        else:
            image = image_data_uri

    parsed_width = _coerce_positive_int(width, "width", errors)
    parsed_height = _coerce_positive_int(height, "height", errors)

    if errors:
        return RequestValidation(errors=errors)
    return RequestValidation(image_data_uri=image, width=parsed_width, height=parsed_height)
