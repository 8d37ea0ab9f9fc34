# tests/unit/monitoring/test_exporter.py - v1
"""Tests for monitoring/exporter.py - JSON and CSV export."""

from __future__ import annotations

import csv
import io
import json

import pytest

from crawlintel.monitoring.exporter import CSV_FIELDS, session_summary, write_export


class TestExportJson:
    def test_contains_all_ledgers(self, monitor):
        monitor.record_error("Boom", "fetch")
        monitor.end_timing(monitor.start_timing("fetch"))
        monitor.create_alert("info", "Note", "x", "y")
        monitor.start_session("session_1")

        payload = json.loads(monitor.export_data("json"))

        assert payload["status"]["overall"] == "healthy"
        assert payload["errors"][0]["kind"] == "Boom"
        assert len(payload["performance"]) == 1
        assert payload["alerts"][0]["title"] == "Note"
        assert payload["sessions"][0]["session_id"] == "session_1"


class TestExportCsv:
    def test_rows(self, monitor):
        monitor.record_error("Boom", "fetch")
        monitor.create_alert("warning", "Slow", "fetch", "slow")

        rows = list(csv.DictReader(io.StringIO(monitor.export_data("csv"))))

        assert list(rows[0].keys()) == CSV_FIELDS
        assert [r["Type"] for r in rows] == ["error", "alert"]
        assert "Boom in fetch x1" in rows[0]["Details"]

    def test_unsupported_format(self, monitor):
        with pytest.raises(ValueError, match="Unsupported"):
            monitor.export_data("xml")


class TestWriteExport:
    def test_suffix_selects_format(self, monitor, tmp_path):
        monitor.record_error("Boom", "fetch")
        write_export(monitor, tmp_path / "out" / "ledger.csv")
        text = (tmp_path / "out" / "ledger.csv").read_text()
        assert text.startswith("Type,Timestamp,Details")


class TestSessionSummary:
    def test_summary_lines(self, monitor):
        session = monitor.start_session("session_9")
        monitor.record_url_stage("session_9", "fetched", 3)
        monitor.end_session("session_9")
        text = session_summary(session)
        assert "=== Crawl Session: session_9 ===" in text
        assert "fetched" in text
