"""Gemini image annotation: burns defect boxes and labels into the sheet photo."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import google.generativeai as genai

from app.core.config import settings
from app.services.data_uri import DataUri, encode_data_uri, parse_data_uri
from app.services.errors import ExternalServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "image-annotator"

# Fixed per-category thresholds sent with every annotation request.
SAFETY_SETTINGS: dict[str, str] = {
    "HARM_CATEGORY_HATE_SPEECH": "BLOCK_ONLY_HIGH",
    "HARM_CATEGORY_DANGEROUS_CONTENT": "BLOCK_NONE",
    "HARM_CATEGORY_HARASSMENT": "BLOCK_MEDIUM_AND_ABOVE",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT": "BLOCK_LOW_AND_ABOVE",
}

# The image model rejects IMAGE-only responses.
RESPONSE_MODALITIES = ["TEXT", "IMAGE"]


def _extract_image_data_uri(response: Any) -> str | None:
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            data = getattr(inline, "data", None) if inline is not None else None
            if not data:
                continue
            mime_type = getattr(inline, "mime_type", None) or "image/png"
            if isinstance(data, str):
                return f"data:{mime_type};base64,{data}"
            return encode_data_uri(mime_type, bytes(data))
    return None


class ImageAnnotator:
    """Ask the image-generation model to draw the detections onto the photo."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key or settings.GEMINI_API_KEY
        self.model = model or settings.ANNOTATION_MODEL
        self.timeout = timeout or settings.ANNOTATION_TIMEOUT_SECONDS

    async def annotate(self, image_data_uri: str, detections: str) -> str:
        """Return the annotated image as a data URI.

        ``detections`` is the JSON-serialized detection list, embedded verbatim in
        the instruction. Every failure, including an undecodable input image,
        surfaces as ``ExternalServiceError``.
        """
        try:
            image = parse_data_uri(image_data_uri)
        except ValueError as exc:
            raise ExternalServiceError(SERVICE_NAME, f"image payload could not be decoded: {exc}") from exc

        if not self.api_key:
            raise ExternalServiceError(SERVICE_NAME, "GEMINI_API_KEY is not configured")

        prompt = self._build_prompt(detections)
        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(self._call_gemini(image, prompt), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise ExternalServiceError(SERVICE_NAME, f"timed out after {self.timeout:.0f}s") from exc
        except ExternalServiceError:
            raise
        except Exception as exc:  # noqa: BLE001 - SDK raises assorted transport/API errors
            raise ExternalServiceError(SERVICE_NAME, f"generation failed: {exc}") from exc

        annotated = _extract_image_data_uri(response)
        if annotated is None:
            raise ExternalServiceError(SERVICE_NAME, "response contained no image payload")

        logger.info(
            "Annotated image received (model=%s, duration_ms=%d)",
            self.model,
            int((time.perf_counter() - start) * 1000),
        )
        return annotated

    def _build_prompt(self, detections: str) -> str:
        return (
            "You are an expert image annotator for a steel factory. "
            "The attached photo shows a steel sheet. "
            f"Here are the bounding box detections: {detections}. "
            "Each entry has a label, a confidence score and pixel coordinates xMin, yMin, xMax, yMax. "
            "Draw bounding boxes around the defects in the image and write each label with its confidence "
            "next to its box. Return the entire annotated image."
        )

    async def _call_gemini(self, image: DataUri, prompt: str) -> Any:
        genai.configure(api_key=self.api_key)
        model = genai.GenerativeModel(
            model_name=self.model,
            generation_config={"response_modalities": RESPONSE_MODALITIES},
            safety_settings=SAFETY_SETTINGS,
        )
        parts: list[Any] = [
            {"inline_data": {"mime_type": image.mime_type, "data": image.data}},
            {"text": prompt},
        ]
        logger.debug("Submitting %d byte %s image to %s", len(image.data), image.mime_type, self.model)
        return await model.generate_content_async(
            [{"role": "user", "parts": parts}],
            request_options={"timeout": self.timeout},
        )
