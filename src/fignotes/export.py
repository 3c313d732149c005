"""CSV and Markdown exports of a sync result."""

import csv
import io

from fignotes.models.result import SyncResult

CSV_HEADER = ["ID", "Message", "Author", "Status", "Priority", "Estimate", "Page", "Frame"]
PREVIEW_LENGTH = 50


def export_csv(result: SyncResult) -> str:
    """One row per task, in result order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for task in result.tasks:
        writer.writerow(
            [
                task.comment_id,
                task.message,
                task.author,
                task.internal_status.value,
                task.priority.value,
                task.estimate_minutes,
                task.page,
                task.frame,
            ]
        )
    return buffer.getvalue()


def _preview(message: str) -> str:
    message = " ".join(message.split())
    if len(message) <= PREVIEW_LENGTH:
        return message
    return message[:PREVIEW_LENGTH] + "..."


def export_markdown(result: SyncResult) -> str:
    """Executive summary followed by one section per task."""
    lines = ["# Design Review Executive Summary", "", result.weekly_summary, ""]
    for task in result.tasks:
        lines.append(f"### [{task.internal_status.value}] {_preview(task.message)}")
        lines.append(
            f"- **Priority**: {task.priority.value} | **Time**: {task.estimate_minutes}m"
            f" | **Assigned**: {task.assignee or 'Unassigned'}"
        )
        lines.append(f"- **Location**: {task.page} / {task.frame}")
        lines.append("")
    return "\n".join(lines)


EXPORTERS = {
    "csv": export_csv,
    "md": export_markdown,
    "markdown": export_markdown,
}
