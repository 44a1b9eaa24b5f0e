"""Loose block splitting of generated report prose for display.

Best-effort only: the model is asked for markdown-like headings but nothing
enforces them.
"""

from __future__ import annotations

import re

from app.pipelines.models import ReportBlock

_HEADING_MARKER = re.compile(r"^#{1,3}\s+")
_NUMBERED_SECTION = re.compile(r"^[123]\.")


def parse_report_blocks(report: str) -> list[ReportBlock]:
    blocks: list[ReportBlock] = []
    for raw in re.split(r"\n\s*\n", report.replace("\r\n", "\n")):
        text = _HEADING_MARKER.sub("", raw.strip())
        if not text:
            continue
        if len(text) > 4 and text.startswith("**") and text.endswith("**"):
            blocks.append(ReportBlock(kind="heading", text=text[2:-2].strip()))
        elif _NUMBERED_SECTION.match(text):
            blocks.append(ReportBlock(kind="subheading", text=text))
        else:
            blocks.append(ReportBlock(kind="paragraph", text=text))
    return blocks
