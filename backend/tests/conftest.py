from __future__ import annotations

import asyncio
from io import BytesIO
from types import SimpleNamespace

import pytest
from PIL import Image

from app.pipelines.models import Defect, KpiSummary
from app.services.data_uri import encode_data_uri


def make_image_bytes(width: int = 64, height: int = 48, image_format: str = "PNG") -> bytes:
    image = Image.new("RGB", (width, height), (180, 180, 185))
    buffer = BytesIO()
    image.save(buffer, format=image_format)
    return buffer.getvalue()


def fake_image_response(data: bytes = b"annotated", mime_type: str = "image/png") -> SimpleNamespace:
    parts = [
        SimpleNamespace(text="Here is the annotated image.", inline_data=None),
        SimpleNamespace(text=None, inline_data=SimpleNamespace(mime_type=mime_type, data=data)),
    ]
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))])


@pytest.fixture
def png_data_uri() -> str:
    return encode_data_uri("image/png", make_image_bytes())


ANNOTATED = "data:image/png;base64,Ym94ZWQ="


class RecordingAnnotator:
    def __init__(self, error: Exception | None = None, delay: float = 0.0) -> None:
        self.calls: list[tuple[str, str]] = []
        self.error = error
        self.delay = delay

    async def annotate(self, image_data_uri: str, detections: str) -> str:
        self.calls.append((image_data_uri, detections))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ANNOTATED


class RecordingReportGenerator:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[KpiSummary, str, str]] = []
        self.error = error

    async def draft(self, kpis: KpiSummary, observations: str, image_ref: str) -> str:
        self.calls.append((kpis, observations, image_ref))
        if self.error is not None:
            raise self.error
        return f"**Executive Summary**\n\n{kpis.total_defects} defects found."


class FixedDetector:
    def __init__(self, defects: list[Defect]) -> None:
        self.defects = defects

    def detect(self, image_data_uri: str, width: int, height: int) -> list[Defect]:
        return list(self.defects)
