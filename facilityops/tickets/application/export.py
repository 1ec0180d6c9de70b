"""
History export rendering.

Rows are plain dicts built by TicketService.export_history; this module only
turns them into CSV text.
"""

import csv
import io
from typing import Iterable, List

EXPORT_COLUMNS: List[str] = [
    "display_code",
    "title",
    "category",
    "priority",
    "status",
    "property_id",
    "creator_id",
    "assignee_id",
    "created_at",
    "assigned_at",
    "work_started_at",
    "resolved_at",
    "paused_seconds",
    "resolution_seconds",
]


def render_csv(rows: Iterable[dict]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()
