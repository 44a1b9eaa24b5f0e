from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.pipelines.models import (
    AnalysisOutcome,
    AnalysisResult,
    Defect,
    DefectDistributionEntry,
    KpiSummary,
    ReportBlock,
    ReportHistoryItem,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalysisRequest(CamelModel):
    # Loosely typed on purpose: the pipeline validates and reports errors itself.
    image_data_uri: Any = Field(None, description="Image as data:<mimetype>;base64,<data>.")
    width: Any = Field(None, description="Image width in pixels.")
    height: Any = Field(None, description="Image height in pixels.")


class DefectSchema(CamelModel):
    label: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    x_min: float
    y_min: float
    x_max: float
    y_max: float

    @classmethod
    def from_defect(cls, defect: Defect) -> "DefectSchema":
        return cls(
            label=defect.label,
            confidence=defect.confidence,
            x_min=defect.x_min,
            y_min=defect.y_min,
            x_max=defect.x_max,
            y_max=defect.y_max,
        )

    def to_defect(self) -> Defect:
        return Defect(
            label=self.label,
            confidence=self.confidence,
            x_min=self.x_min,
            y_min=self.y_min,
            x_max=self.x_max,
            y_max=self.y_max,
        )


class KpiSchema(CamelModel):
    total_defects: int = Field(..., ge=0)
    defect_density: float = Field(..., ge=0.0)
    most_common_defect_type: str
    severity_score: float = Field(..., ge=0.0)

    @classmethod
    def from_summary(cls, kpis: KpiSummary) -> "KpiSchema":
        return cls(
            total_defects=kpis.total_defects,
            defect_density=kpis.defect_density,
            most_common_defect_type=kpis.most_common_defect_type,
            severity_score=kpis.severity_score,
        )


class DistributionEntrySchema(CamelModel):
    label: str
    count: int


class ReportBlockSchema(CamelModel):
    kind: str
    text: str


class AnalysisResultSchema(CamelModel):
    kpis: KpiSchema
    annotated_image: str
    report: str
    detections: list[DefectSchema]
    distribution: list[DistributionEntrySchema] | None = None
    report_blocks: list[ReportBlockSchema] | None = None

    @classmethod
    def from_result(
        cls,
        result: AnalysisResult,
        distribution: list[DefectDistributionEntry] | None = None,
        report_blocks: list[ReportBlock] | None = None,
    ) -> "AnalysisResultSchema":
        return cls(
            kpis=KpiSchema.from_summary(result.kpis),
            annotated_image=result.annotated_image,
            report=result.report,
            detections=[DefectSchema.from_defect(defect) for defect in result.detections],
            distribution=(
                [DistributionEntrySchema(label=entry.label, count=entry.count) for entry in distribution]
                if distribution is not None
                else None
            ),
            report_blocks=(
                [ReportBlockSchema(kind=block.kind, text=block.text) for block in report_blocks]
                if report_blocks is not None
                else None
            ),
        )

    def to_result(self) -> AnalysisResult:
        return AnalysisResult(
            kpis=KpiSummary(
                total_defects=self.kpis.total_defects,
                defect_density=self.kpis.defect_density,
                most_common_defect_type=self.kpis.most_common_defect_type,
                severity_score=self.kpis.severity_score,
            ),
            annotated_image=self.annotated_image,
            report=self.report,
            detections=[defect.to_defect() for defect in self.detections],
        )


class AnalysisResponse(CamelModel):
    result: AnalysisResultSchema | None = None
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome: AnalysisOutcome, **extras: Any) -> "AnalysisResponse":
        if outcome.result is None:
            return cls(result=None, error=outcome.error)
        return cls(result=AnalysisResultSchema.from_result(outcome.result, **extras), error=None)


class ReportHistoryItemSchema(CamelModel):
    id: str
    date: str
    severity: float
    title: str
    total_defects: int

    @classmethod
    def from_item(cls, item: ReportHistoryItem) -> "ReportHistoryItemSchema":
        return cls(
            id=item.id,
            date=item.date,
            severity=item.severity,
            title=item.title,
            total_defects=item.total_defects,
        )
