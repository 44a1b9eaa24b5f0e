from __future__ import annotations

import logging
from io import BytesIO

from fastapi import APIRouter, Depends, HTTPException, Response, UploadFile, status
from fastapi.responses import JSONResponse
from PIL import Image, UnidentifiedImageError

from app.core.config import settings
from app.pipelines.models import AnalysisOutcome
from app.schemas.analysis import (
    AnalysisRequest,
    AnalysisResponse,
    AnalysisResultSchema,
    ReportHistoryItemSchema,
)
from app.services.data_uri import encode_data_uri
from app.services.history import list_report_history
from app.services.kpi import KpiCalculator
from app.services.pipeline import AnalysisPipeline
from app.services.report import ReportBuilder
from app.services.report_parser import parse_report_blocks

router = APIRouter()
logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES: tuple[str, ...] = ("image/png", "image/jpeg", "image/webp")

ERROR_STATUS_CODES: dict[str, int] = {
    "validation": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "external_service": status.HTTP_502_BAD_GATEWAY,
    "unexpected": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_pipeline() -> AnalysisPipeline:
    return AnalysisPipeline()


def _to_response(outcome: AnalysisOutcome) -> JSONResponse:
    if outcome.result is not None:
        payload = AnalysisResponse.from_outcome(
            outcome,
            distribution=KpiCalculator().defect_distribution(outcome.result.detections),
            report_blocks=parse_report_blocks(outcome.result.report),
        )
        status_code = status.HTTP_200_OK
    else:
        payload = AnalysisResponse.from_outcome(outcome)
        status_code = ERROR_STATUS_CODES.get(outcome.error_kind or "", status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=status_code, content=payload.model_dump(by_alias=True, mode="json"))


@router.post("", summary="Analyze a steel sheet image given as a data URI", response_model=AnalysisResponse)
async def analyze_image(
    request: AnalysisRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> JSONResponse:
    outcome = await pipeline.run(request.image_data_uri, request.width, request.height)
    return _to_response(outcome)


@router.post("/upload", summary="Upload and analyze a steel sheet image", response_model=AnalysisResponse)
async def analyze_upload(
    file: UploadFile,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> JSONResponse:
    content_type = (file.content_type or "").lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported content type: {file.content_type}",
        )

    data = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    await file.close()
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit.",
        )
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty upload.")

    try:
        with Image.open(BytesIO(data)) as image:
            width, height = image.size
            detected_type = Image.MIME.get(image.format or "")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        logger.warning("Rejected unreadable upload %s: %s", file.filename, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unreadable image file.") from exc

    # The decoded format wins over the client-declared content type.
    if detected_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported image format: {detected_type or 'unknown'}",
        )

    logger.debug("Upload %s decoded (%s, %dx%d, %d bytes)", file.filename, detected_type, width, height, len(data))
    outcome = await pipeline.run(encode_data_uri(detected_type, data), width, height)
    return _to_response(outcome)


@router.post("/report.pdf", summary="Export an analysis result as PDF")
async def export_report_pdf(result: AnalysisResultSchema) -> Response:
    artifact = ReportBuilder().build(result.to_result())
    return Response(
        content=artifact.content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{artifact.filename}"',
            "X-Report-SHA256": artifact.checksum_sha256,
        },
    )


@router.get("/history", summary="Recent report history", response_model=list[ReportHistoryItemSchema])
async def report_history() -> list[ReportHistoryItemSchema]:
    return [ReportHistoryItemSchema.from_item(item) for item in list_report_history()]
