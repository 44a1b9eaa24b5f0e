"""Defect detection layer.

Real computer-vision detection is not wired in yet: ``RandomDefectGenerator``
stands in for it behind the ``DefectDetector`` protocol so a trained model can
replace it without touching the pipeline.
"""

from __future__ import annotations

import random
from typing import List, Protocol

from app.core.config import settings
from app.pipelines.models import Defect

DEFECT_LABELS: tuple[str, ...] = ("Pitting", "Scratches", "Inclusion", "Patches", "Crazing")

MIN_DEFECTS = 3
MAX_DEFECTS = 10
MIN_BOX_RATIO = 0.05
MAX_BOX_RATIO = 0.20
MIN_CONFIDENCE = 0.79
MAX_CONFIDENCE = 0.99


class DefectDetector(Protocol):
    def detect(self, image_data_uri: str, width: int, height: int) -> List[Defect]:
        ...


class RandomDefectGenerator:
    """Mock detector producing 3-10 synthetic defects inside the image bounds."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def detect(self, image_data_uri: str, width: int, height: int) -> List[Defect]:
        return self.generate(width, height)

    def generate(self, image_width: int, image_height: int) -> List[Defect]:
        rng = self._rng
        count = rng.randint(MIN_DEFECTS, MAX_DEFECTS)
        defects: list[Defect] = []
        for _ in range(count):
            box_width = rng.uniform(MIN_BOX_RATIO, MAX_BOX_RATIO) * image_width
            box_height = rng.uniform(MIN_BOX_RATIO, MAX_BOX_RATIO) * image_height
            x_min = rng.uniform(0.0, image_width - box_width)
            y_min = rng.uniform(0.0, image_height - box_height)
            defects.append(
                Defect(
                    label=rng.choice(DEFECT_LABELS),
                    confidence=rng.uniform(MIN_CONFIDENCE, MAX_CONFIDENCE),
                    x_min=x_min,
                    y_min=y_min,
                    x_max=min(x_min + box_width, float(image_width)),
                    y_max=min(y_min + box_height, float(image_height)),
                )
            )
        return defects


def get_defect_detector(rng: random.Random | None = None) -> DefectDetector:
    name = settings.DEFECT_DETECTOR.strip().lower()
    if name == "mock":
        return RandomDefectGenerator(rng)
    raise ValueError(f"Unknown DEFECT_DETECTOR {settings.DEFECT_DETECTOR!r}")
