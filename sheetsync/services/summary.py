from __future__ import annotations

from ..models.sync_result import KindStats, SyncResult

"""SUMMARY line rendering.

Format (one line per kind, then one overall line):

    SUMMARY kind=shipments processed=120 added=2 updated=5 deleted=1 skipped=112 rejected=0 elapsed_sec=0.84
    SUMMARY strategy=incremental status=synced kinds=2 failed=0 elapsed_sec=1.3

When the probe finds nothing to do only the overall line is rendered, with
``status=skipped``.
"""

__all__ = [
    "format_seconds",
    "render_kind_line",
    "render_summary_lines",
]


def format_seconds(value: float) -> str:
    """Render seconds without scientific notation or a trailing ``.0``."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_kind_line(stats: KindStats) -> str:
    line = (
        f"SUMMARY kind={stats.kind} "
        f"processed={stats.processed} "
        f"added={stats.added} "
        f"updated={stats.updated} "
        f"deleted={stats.deleted} "
        f"skipped={stats.skipped} "
        f"rejected={stats.rejected} "
        f"elapsed_sec={format_seconds(stats.elapsed_seconds)}"
    )
    if stats.deletes_suppressed:
        line += f" deletes_suppressed={stats.deletes_suppressed}"
    if stats.duplicates:
        line += f" duplicates={stats.duplicates}"
    if stats.stored_rows is not None:
        line += f" stored_rows={stats.stored_rows}"
    if stats.failed:
        line += " status=failed"
    return line


def render_summary_lines(result: SyncResult) -> list[str]:
    """Render every SUMMARY line for a finished run."""
    if result.skipped:
        status = "skipped"
    elif result.failed:
        status = "failed"
    elif result.dry_run:
        status = "dry_run"
    else:
        status = "synced"

    lines = [render_kind_line(stats) for stats in result.kinds.values()]
    overall = (
        f"SUMMARY strategy={result.strategy} "
        f"status={status} "
        f"kinds={len(result.kinds)} "
        f"failed={sum(1 for s in result.kinds.values() if s.failed)} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )
    if result.message:
        overall += f' message="{result.message}"'
    lines.append(overall)
    return lines
