from __future__ import annotations

import random
import struct
import zlib

import pytest
from fastapi import status
from httpx import ASGITransport, AsyncClient

from app.api.v1.endpoints.analysis import get_pipeline
from app.core.config import settings
from app.main import app
from app.services.data_uri import parse_data_uri
from app.services.detector import RandomDefectGenerator
from app.services.errors import ExternalServiceError, GENERIC_FAILURE_MESSAGE, INVALID_INPUT_MESSAGE
from app.services.pipeline import AnalysisPipeline
from conftest import ANNOTATED, RecordingAnnotator, RecordingReportGenerator, make_image_bytes


@pytest.fixture
def annotator() -> RecordingAnnotator:
    return RecordingAnnotator()


@pytest.fixture
def client_pipeline(annotator: RecordingAnnotator):
    pipeline = AnalysisPipeline(
        detector=RandomDefectGenerator(random.Random(5)),
        annotator=annotator,
        report_generator=RecordingReportGenerator(),
    )
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    yield pipeline
    app.dependency_overrides.pop(get_pipeline, None)


def _png_header_only(width: int, height: int) -> bytes:
    def chunk(kind: bytes, body: bytes) -> bytes:
        return struct.pack(">I", len(body)) + kind + body + struct.pack(">I", zlib.crc32(kind + body))

    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", header)
        + chunk(b"IDAT", zlib.compress(b""))
        + chunk(b"IEND", b"")
    )


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_analyze_data_uri(client_pipeline, png_data_uri: str) -> None:
    async with _client() as client:
        response = await client.post(
            "/api/v1/analysis",
            json={"imageDataUri": png_data_uri, "width": 64, "height": 48},
        )

    assert response.status_code == status.HTTP_200_OK, response.text
    payload = response.json()
    assert payload["error"] is None
    result = payload["result"]
    assert result["annotatedImage"] == ANNOTATED
    assert result["kpis"]["totalDefects"] == len(result["detections"])
    assert set(result["detections"][0]) == {"label", "confidence", "xMin", "yMin", "xMax", "yMax"}
    assert sum(entry["count"] for entry in result["distribution"]) == len(result["detections"])
    assert result["reportBlocks"][0] == {"kind": "heading", "text": "Executive Summary"}


@pytest.mark.asyncio
async def test_analyze_rejects_invalid_payload(client_pipeline, annotator: RecordingAnnotator) -> None:
    async with _client() as client:
        response = await client.post(
            "/api/v1/analysis",
            json={"imageDataUri": "not-a-data-uri", "width": 64, "height": 48},
        )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json() == {"result": None, "error": INVALID_INPUT_MESSAGE}
    assert annotator.calls == []


@pytest.mark.asyncio
async def test_analyze_reports_upstream_failure(annotator: RecordingAnnotator, client_pipeline, png_data_uri: str) -> None:
    annotator.error = ExternalServiceError("image-annotator", "503 from upstream")

    async with _client() as client:
        response = await client.post(
            "/api/v1/analysis",
            json={"imageDataUri": png_data_uri, "width": 64, "height": 48},
        )

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json() == {"result": None, "error": GENERIC_FAILURE_MESSAGE}


@pytest.mark.asyncio
async def test_upload_builds_data_uri_from_file(client_pipeline, annotator: RecordingAnnotator) -> None:
    image_bytes = make_image_bytes(120, 80, image_format="JPEG")

    async with _client() as client:
        response = await client.post(
            "/api/v1/analysis/upload",
            files={"file": ("sheet.jpg", image_bytes, "image/jpeg")},
        )

    assert response.status_code == status.HTTP_200_OK, response.text
    sent_image, _ = annotator.calls[0]
    decoded = parse_data_uri(sent_image)
    assert decoded.mime_type == "image/jpeg"
    assert decoded.data == image_bytes
    detections = response.json()["result"]["detections"]
    assert all(item["xMax"] <= 120 and item["yMax"] <= 80 for item in detections)


@pytest.mark.asyncio
async def test_upload_rejects_unsupported_type(client_pipeline) -> None:
    async with _client() as client:
        response = await client.post(
            "/api/v1/analysis/upload",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_upload_rejects_oversized_file(client_pipeline, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 16, raising=False)
    async with _client() as client:
        response = await client.post(
            "/api/v1/analysis/upload",
            files={"file": ("sheet.png", make_image_bytes(), "image/png")},
        )
    assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


@pytest.mark.asyncio
async def test_upload_rejects_corrupt_image(client_pipeline) -> None:
    async with _client() as client:
        response = await client.post(
            "/api/v1/analysis/upload",
            files={"file": ("sheet.png", b"definitely not a png", "image/png")},
        )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_upload_rejects_decompression_bomb(client_pipeline, annotator: RecordingAnnotator) -> None:
    async with _client() as client:
        response = await client.post(
            "/api/v1/analysis/upload",
            files={"file": ("huge.png", _png_header_only(30000, 30000), "image/png")},
        )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert annotator.calls == []


@pytest.mark.asyncio
async def test_upload_uses_decoded_format_over_declared_type(client_pipeline, annotator: RecordingAnnotator) -> None:
    image_bytes = make_image_bytes(image_format="JPEG")

    async with _client() as client:
        response = await client.post(
            "/api/v1/analysis/upload",
            files={"file": ("sheet.png", image_bytes, "image/png")},
        )

    assert response.status_code == status.HTTP_200_OK, response.text
    sent_image, _ = annotator.calls[0]
    assert parse_data_uri(sent_image).mime_type == "image/jpeg"


@pytest.mark.asyncio
async def test_export_pdf_round_trip(client_pipeline, png_data_uri: str) -> None:
    async with _client() as client:
        analysis = await client.post(
            "/api/v1/analysis",
            json={"imageDataUri": png_data_uri, "width": 64, "height": 48},
        )
        result = analysis.json()["result"]
        result["annotatedImage"] = png_data_uri
        response = await client.post("/api/v1/analysis/report.pdf", json=result)

    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert len(response.headers["x-report-sha256"]) == 64


@pytest.mark.asyncio
async def test_history_is_static_sample_data() -> None:
    async with _client() as client:
        response = await client.get("/api/v1/analysis/history")

    assert response.status_code == status.HTTP_200_OK
    items = response.json()
    assert [item["id"] for item in items] == ["rep-001", "rep-002", "rep-003", "rep-004", "rep-005"]
    assert items[0]["totalDefects"] == 15
