from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import google.generativeai as genai

from app.core.config import settings
from app.pipelines.models import KpiSummary
from app.services.errors import ExternalServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "report-generator"

REPORT_SECTIONS = ("Executive Summary", "KPI Highlights", "Recommendations")


def _response_text(response: Any) -> str:
    texts: list[str] = []
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            text = getattr(part, "text", None)
            if text:
                texts.append(text)
        if texts:
            break
    return "\n".join(texts).strip()


class ReportGenerator:
    """Draft the plant-manager report from KPI data and an observation."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key or settings.GEMINI_API_KEY
        self.model = model or settings.REPORT_MODEL
        self.timeout = timeout or settings.REPORT_TIMEOUT_SECONDS
        self.temperature = settings.REPORT_TEMPERATURE

    async def draft(self, kpis: KpiSummary, observations: str, image_ref: str) -> str:
        if not self.api_key:
            raise ExternalServiceError(SERVICE_NAME, "GEMINI_API_KEY is not configured")

        prompt = self._build_prompt(kpis, observations, image_ref)
        start = time.perf_counter()
        try:
            response_text = await asyncio.wait_for(self._call_gemini(prompt), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise ExternalServiceError(SERVICE_NAME, f"timed out after {self.timeout:.0f}s") from exc
        except ExternalServiceError:
            raise
        except Exception as exc:  # noqa: BLE001 - SDK raises assorted transport/API errors
            raise ExternalServiceError(SERVICE_NAME, f"generation failed: {exc}") from exc

        report = self._parse_response(response_text)
        logger.info(
            "Report drafted (model=%s, chars=%d, duration_ms=%d)",
            self.model,
            len(report),
            int((time.perf_counter() - start) * 1000),
        )
        return report

    def _build_prompt(self, kpis: KpiSummary, observations: str, image_ref: str) -> str:
        sections = "\n".join(
            f"{index}.  **{title}:** {hint}"
            for index, (title, hint) in enumerate(
                zip(
                    REPORT_SECTIONS,
                    (
                        "A brief overview of the defect analysis.",
                        "Key performance indicators and their implications.",
                        "Actionable steps for addressing the identified defects.",
                    ),
                ),
                start=1,
            )
        )
        prompt = f"""
You are an expert in steel manufacturing quality control. Given the following defect detection data and
observations, generate a professional report suitable for plant managers.

Image URL: {image_ref}

## Defect Data:
- Total Defects: {kpis.total_defects}
- Defect Density: {kpis.defect_density}
- Most Common Defect Type: {kpis.most_common_defect_type or "None"}
- Severity Score: {kpis.severity_score}

## Observations:
{observations}

Structure the report as follows:

{sections}

Use formal language and a professional tone.
Respond with JSON only: {{"report": "<the full report text>"}}
"""
        return prompt.strip()

    def _parse_response(self, payload: str) -> str:
        if not payload:
            raise ExternalServiceError(SERVICE_NAME, "empty response")
        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError:
            # Plain prose is still a usable report.
            return payload

        report = parsed.get("report") if isinstance(parsed, dict) else None
        if not isinstance(report, str) or not report.strip():
            raise ExternalServiceError(SERVICE_NAME, "response JSON has no 'report' text")
        return report.strip()

    async def _call_gemini(self, prompt: str) -> str:
        genai.configure(api_key=self.api_key)
        model = genai.GenerativeModel(
            model_name=self.model,
            generation_config={
                "temperature": self.temperature,
                "top_p": 0.8,
                "top_k": 40,
                "response_mime_type": "application/json",
            },
        )
        logger.debug("Requesting report from %s", self.model)
        response = await model.generate_content_async(
            [{"role": "user", "parts": [{"text": prompt}]}],
            request_options={"timeout": self.timeout},
        )
        return _response_text(response)
