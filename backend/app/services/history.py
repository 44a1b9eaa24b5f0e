from __future__ import annotations

from app.pipelines.models import ReportHistoryItem

# Sample records for the dashboard history tab; nothing is persisted.
SAMPLE_REPORT_HISTORY: tuple[ReportHistoryItem, ...] = (
    ReportHistoryItem(id="rep-001", date="2024-07-21", severity=8.5, title="Coil #A5-341 Analysis", total_defects=15),
    ReportHistoryItem(id="rep-002", date="2024-07-20", severity=4.2, title="Sample #C4-098 Inspection", total_defects=6),
    ReportHistoryItem(id="rep-003", date="2024-07-20", severity=6.1, title="Batch #B2-211 QA Check", total_defects=9),
    ReportHistoryItem(id="rep-004", date="2024-07-19", severity=2.3, title="Coil #A5-340 Post-Process", total_defects=4),
    ReportHistoryItem(id="rep-005", date="2024-07-18", severity=9.7, title="Emergency Sample #X1-001", total_defects=22),
)


def list_report_history() -> list[ReportHistoryItem]:
    return sorted(SAMPLE_REPORT_HISTORY, key=lambda item: item.date, reverse=True)
