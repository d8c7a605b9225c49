"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_report`` -- full post-sync summary.
- ``format_delete_result`` -- outcome of a document delete.
- ``format_status`` -- watermark, flag and schedule of a vault.
- ``report_to_json`` / ``status_to_json`` -- structured dicts for MCP
  tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import SyncAction, SyncStatus

if TYPE_CHECKING:
    from infoflow_sync.config_schema import SyncSettings

    from .models import DeleteResult, SyncReport

_SECTION_TITLES = {
    SyncAction.CREATE: "Created:",
    SyncAction.UPDATE: "Updated:",
    SyncAction.MERGE: "Merged:",
}

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a sync report as human-readable text.

    Sections are only included when they contain at least one result.
    Unchanged documents are summarised by count only.

    Args:
        report: The sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync {report.status.value.replace('_', ' ')}"
    if not report.manual:
        header += " (scheduled)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    if report.sync_at:
        lines.append(f"Last sync: {report.sync_at}")
    lines.append("")

    if report.status in (SyncStatus.COMPLETED, SyncStatus.FAILED):
        lines.append(
            f"Synced {len(report.results)} items in {report.pages} page(s): "
            f"{len(report.created)} created, {len(report.updated)} updated, "
            f"{len(report.merged)} merged, {len(report.skipped)} skipped"
        )
        lines.append("")

    for action, title in _SECTION_TITLES.items():
        results = [r for r in report.results if r.action == action]
        if not results:
            continue
        lines.append(title)
        for r in results:
            lines.append(f"  {r.path} ({r.item_id})")
        lines.append("")

    if report.skipped:
        lines.append("Skipped:")
        for r in report.skipped:
            lines.append(f"  {r.path}: {r.error}")
        lines.append("")

    if report.unchanged:
        lines.append(f"Unchanged: {len(report.unchanged)} documents")
        lines.append("")

    if report.error:
        lines.append(f"Error: {report.error}")
        lines.append("")

    if report.notices:
        lines.append("Notices:")
        for notice in report.notices:
            lines.append(f"  {notice}")

    return "\n".join(lines).rstrip()


def format_delete_result(result: DeleteResult) -> str:
    """Format a delete outcome as human-readable text."""
    remote = "deleted" if result.remote_deleted else "not deleted"
    lines = [
        f"Deleted {result.path}",
        f"  Item: {result.item_id or '(no id)'} ({remote} in InfoFlow)",
    ]
    for notice in result.notices:
        lines.append(f"  {notice}")
    return "\n".join(lines)


def format_status(settings: SyncSettings) -> str:
    """Format the sync state of a vault."""
    frequency = (
        f"every {settings.frequency} minute(s)"
        if settings.frequency > 0
        else "disabled"
    )
    return "\n".join(
        [
            f"Last sync: {settings.sync_at or 'never'}",
            f"Syncing: {'yes' if settings.syncing else 'no'}",
            f"Query: {settings.custom_query}",
            f"Mode: {'single file' if settings.is_single_file else 'one file per item'}",
            f"Scheduled sync: {frequency}",
            f"API key: {'set' if settings.api_key else 'missing'}",
        ]
    )


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        report: The sync report.

    Returns:
        Dict with status, counts, notices and per-item details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "item_id": r.item_id,
            "path": r.path,
            "action": r.action.value,
            "success": r.success,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "status": report.status.value,
        "manual": report.manual,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "sync_at": report.sync_at,
        "pages": report.pages,
        "error": report.error,
        "counts": {
            "total": len(report.results),
            "created": len(report.created),
            "updated": len(report.updated),
            "merged": len(report.merged),
            "unchanged": len(report.unchanged),
            "skipped": len(report.skipped),
        },
        "notices": list(report.notices),
        "results": results_list,
    }


def status_to_json(settings: SyncSettings) -> dict:
    return {
        "sync_at": settings.sync_at,
        "syncing": settings.syncing,
        "custom_query": settings.custom_query,
        "is_single_file": settings.is_single_file,
        "frequency": settings.frequency,
        "has_api_key": bool(settings.api_key),
    }
