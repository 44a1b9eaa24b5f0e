from __future__ import annotations

from typing import Iterable, Sequence

from app.pipelines.models import Defect, DefectDistributionEntry, KpiSummary


def _count_labels(detections: Iterable[Defect]) -> dict[str, int]:
    # dict keeps insertion order, so ties resolve to the first label seen.
    counts: dict[str, int] = {}
    for defect in detections:
        counts[defect.label] = counts.get(defect.label, 0) + 1
    return counts


class KpiCalculator:
    """Reduce a detection set into summary quality indicators."""

    def summarize(self, detections: Sequence[Defect], image_width: float, image_height: float) -> KpiSummary:
        total = len(detections)
        density = total / (image_width * image_height)

        most_common = ""
        max_count = 0
        for label, count in _count_labels(detections).items():
            if count > max_count:
                most_common = label
                max_count = count

        if total:
            average_confidence = sum(defect.confidence for defect in detections) / total
            average_area = sum(defect.area for defect in detections) / total
            severity = average_confidence * average_area
        else:
            severity = 0.0

        return KpiSummary(
            total_defects=total,
            defect_density=density,
            most_common_defect_type=most_common,
            severity_score=severity,
        )

    def defect_distribution(self, detections: Iterable[Defect]) -> list[DefectDistributionEntry]:
        return [DefectDistributionEntry(label=label, count=count) for label, count in _count_labels(detections).items()]
