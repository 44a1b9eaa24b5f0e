from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Defect:
    """Single labelled defect with a pixel bounding box."""

    label: str
    confidence: float
    x_min: float
    y_min: float
    x_max: float
    y_max: float

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    @property
    def area(self) -> float:
        return self.width * self.height

    def to_payload(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "confidence": self.confidence,
            "xMin": self.x_min,
            "yMin": self.y_min,
            "xMax": self.x_max,
            "yMax": self.y_max,
        }


@dataclass(slots=True)
class KpiSummary:
    total_defects: int
    defect_density: float
    most_common_defect_type: str
    severity_score: float


@dataclass(slots=True)
class DefectDistributionEntry:
    label: str
    count: int


@dataclass(slots=True)
class AnalysisResult:
    kpis: KpiSummary
    annotated_image: str
    report: str
    detections: list[Defect] = field(default_factory=list)


@dataclass(slots=True)
class AnalysisOutcome:
    """Either a result or a user-facing error, never both."""

    result: AnalysisResult | None = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass(slots=True)
class ReportHistoryItem:
    id: str
    date: str
    severity: float
    title: str
    total_defects: int


@dataclass(slots=True)
class ReportBlock:
    kind: str
    text: str
