from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Sequence

from app.pipelines.models import AnalysisOutcome, AnalysisResult, Defect, KpiSummary
from app.services.annotator import ImageAnnotator
from app.services.detector import DefectDetector, get_defect_detector
from app.services.errors import AnalysisError, UnexpectedError, ValidationError
from app.services.kpi import KpiCalculator
from app.services.report_generator import ReportGenerator
from app.services.validation import validate_analysis_request

logger = logging.getLogger(__name__)

CANNED_OBSERVATIONS = (
    "Automated analysis of the provided steel sheet image reveals several surface anomalies. "
    "The distribution and type of defects suggest a potential issue in the rolling or cooling process. "
    "High-confidence detections of scratches and pitting warrant immediate investigation to prevent "
    "further quality degradation."
)
IMAGE_REFERENCE_PLACEHOLDER = "N/A - image provided in context"


def serialize_detections(detections: Sequence[Defect]) -> str:
    return json.dumps([defect.to_payload() for defect in detections])


class AnalysisPipeline:
    """Detect, score, annotate and report on a single steel sheet image.

    The instance only holds collaborators; every ``run`` call works on its own
    detections, so concurrent requests can share one pipeline.
    """

    def __init__(
        self,
        detector: DefectDetector | None = None,
        kpi_calculator: KpiCalculator | None = None,
        annotator: ImageAnnotator | None = None,
        report_generator: ReportGenerator | None = None,
    ) -> None:
        self.detector = detector or get_defect_detector()
        self.kpi_calculator = kpi_calculator or KpiCalculator()
        self.annotator = annotator or ImageAnnotator()
        self.report_generator = report_generator or ReportGenerator()

    async def run(self, image_data_uri: Any, width: Any, height: Any) -> AnalysisOutcome:
        start = time.perf_counter()
        try:
            result = await self._execute(image_data_uri, width, height)
        except ValidationError as exc:
            logger.warning("Analysis request rejected: %s", exc)
            return AnalysisOutcome(error=exc.user_message, error_kind=exc.kind)
        except AnalysisError as exc:
            logger.exception("Analysis failed (%s): %s", exc.kind, exc)
            return AnalysisOutcome(error=exc.user_message, error_kind=exc.kind)
        except Exception as exc:  # noqa: BLE001 - boundary converts everything into an outcome
            logger.exception("Unexpected error during analysis: %s", exc)
            error = UnexpectedError(str(exc))
            return AnalysisOutcome(error=error.user_message, error_kind=error.kind)

        logger.info(
            "Analysis completed (defects=%d, duration_ms=%d)",
            len(result.detections),
            int((time.perf_counter() - start) * 1000),
        )
        return AnalysisOutcome(result=result)

    async def _execute(self, image_data_uri: Any, width: Any, height: Any) -> AnalysisResult:
        validation = validate_analysis_request(image_data_uri, width, height)
        if not validation.ok:
            raise ValidationError(validation.errors)
        image = validation.image_data_uri
        image_width = validation.width
        image_height = validation.height

        detections = self.detector.detect(image, image_width, image_height)
        logger.debug("Detector returned %d defect(s) for %dx%d image", len(detections), image_width, image_height)

        kpis, annotated_image = await asyncio.gather(
            self._compute_kpis(detections, image_width, image_height),
            self.annotator.annotate(image, serialize_detections(detections)),
        )

        report = await self.report_generator.draft(kpis, CANNED_OBSERVATIONS, IMAGE_REFERENCE_PLACEHOLDER)

        return AnalysisResult(
            kpis=kpis,
            annotated_image=annotated_image,
            report=report,
            detections=list(detections),
        )

    async def _compute_kpis(self, detections: Sequence[Defect], width: int, height: int) -> KpiSummary:
        return self.kpi_calculator.summarize(detections, width, height)
