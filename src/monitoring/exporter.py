# src/monitoring/exporter.py - v1
"""Monitoring data export to JSON, CSV and summary text."""

from __future__ import annotations

import csv
import io
import json
from pathlib import Path
from typing import TYPE_CHECKING

from crawlintel.core.models import utcnow

if TYPE_CHECKING:
    from crawlintel.monitoring.models import SessionMetrics
    from crawlintel.monitoring.monitor import Monitor

CSV_FIELDS = ["Type", "Timestamp", "Details"]


def export_json(monitor: Monitor) -> str:
    """Serialize every ledger into one JSON document."""
    payload = {
        "exported_at": utcnow().isoformat(),
        "status": monitor.get_system_status().model_dump(mode="json"),
        "errors": [r.model_dump(mode="json") for r in monitor.errors],
        "performance": [s.model_dump(mode="json") for s in monitor.samples],
        "alerts": [a.model_dump(mode="json") for a in monitor.alerts],
        "sessions": [
            s.model_dump(mode="json") for s in monitor.sessions
        ],
    }
    return json.dumps(payload, indent=2)


def export_csv(monitor: Monitor) -> str:
    """Flatten ledgers into Type,Timestamp,Details rows."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_FIELDS)
    writer.writeheader()

    for record in monitor.errors:
        writer.writerow({
            "Type": "error",
            "Timestamp": record.last_seen.isoformat(),
            "Details": f"{record.kind} in {record.operation} x{record.count}: {record.message}",
        })
    for sample in monitor.samples:
        writer.writerow({
            "Type": "performance",
            "Timestamp": sample.started_at.isoformat(),
            "Details": (
                f"{sample.operation} {sample.duration_ms:.1f}ms "
                f"{'ok' if sample.success else 'failed'}"
            ),
        })
    for alert in monitor.alerts:
        writer.writerow({
            "Type": "alert",
            "Timestamp": alert.created_at.isoformat(),
            "Details": f"[{alert.type}] {alert.title}: {alert.message}",
        })
    for session in monitor.sessions:
        writer.writerow({
            "Type": "session",
            "Timestamp": session.started_at.isoformat(),
            "Details": (
                f"{session.session_id} {session.status} requests={session.requests} "
                f"failures={session.failures}"
            ),
        })
    return buffer.getvalue()


def write_export(monitor: Monitor, path: Path) -> None:
    """Write an export to disk, format chosen by file suffix."""
    fmt = "csv" if path.suffix.lower() == ".csv" else "json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(monitor.export_data(fmt), encoding="utf-8")


def session_summary(session: SessionMetrics) -> str:
    """Human-readable summary of one crawl session."""
    lines = [
        f"=== Crawl Session: {session.session_id} ===",
        f"Status     : {session.status}",
        f"Duration   : {session.duration_seconds:.1f}s",
        f"Requests   : {session.requests} "
        f"(ok: {session.successes}, failed: {session.failures})",
        f"Error rate : {session.error_rate:.1%}",
        f"Duplicates : {session.duplicates_skipped} skipped",
        f"Bytes      : {session.bytes_processed:,}",
        f"Peak memory: {session.peak_memory_bytes / 1024**2:.1f}MB",
    ]
    if session.url_stages:
        lines.append("")
        lines.append("--- URL funnel ---")
        for stage, count in session.url_stages.items():
            lines.append(f"  {stage:10s} | {count:6d}")
    if session.error_breakdown:
        lines.append("")
        lines.append("--- Errors ---")
        for kind, breakdown in sorted(session.error_breakdown.items()):
            lines.append(f"  {kind:25s} | {breakdown.count:4d}")
    return "\n".join(lines)
