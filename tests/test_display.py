"""
Tests for presentation helpers and the event log.
"""

from __future__ import annotations

import logging
from datetime import datetime

import pytest

from conftest import gap_payload, make_alert, make_analysis
from gapwatch.api import Gap, OutageInfo
from gapwatch.core import AlertStatus, ConfidenceBand
from gapwatch.dashboard import EventLog
from gapwatch.dashboard.display import (
    alert_type_label,
    band_color,
    confidence_bar_width,
    format_datetime,
    gap_row,
    gap_rows,
    outage_badge,
    partition_rows,
    severity_color,
    status_color,
)


class TestConfidenceDisplay:
    """Tests for banded colors and bar widths."""

    @pytest.mark.parametrize(
        "confidence,color",
        [(100, "green"), (80, "green"), (79.999, "yellow"), (60, "yellow"), (59.9, "red"), (0, "red")],
    )
    def test_band_color(self, confidence, color):
        """Test the badge color follows the confidence band."""
        assert band_color(confidence) == color

    @pytest.mark.parametrize("confidence", [0, 12.5, 60, 80, 100])
    def test_bar_width_equals_confidence(self, confidence):
        """Test the bar width is the confidence percentage."""
        assert confidence_bar_width(confidence) == confidence

    def test_bar_width_clamped(self):
        """Test out-of-range widths are clamped."""
        assert confidence_bar_width(120) == 100
        assert confidence_bar_width(-3) == 0

    def test_gap_row(self):
        """Test building a confidence table row."""
        row = gap_row(Gap.model_validate(gap_payload(72.345)))
        assert row.band is ConfidenceBand.MEDIUM
        assert row.color == "yellow"
        assert row.bar_width == 72.345
        assert row.confidence_text == "72.3%"
        assert row.timestamp == "14/09/2026 03:00"
        assert row.outage is None

    def test_gap_rows_keep_order(self):
        """Test rows follow the backend order."""
        rows = gap_rows(make_analysis([40.0, 95.0, 70.0]))
        assert [r.band for r in rows] == [ConfidenceBand.LOW, ConfidenceBand.HIGH, ConfidenceBand.MEDIUM]


class TestOutageBadge:
    """Tests for outage badges."""

    def test_fleet_api_outage(self):
        """Test the fleet API badge names the brand and bonus."""
        badge = outage_badge(OutageInfo(outage_type="Outage Fleet Api", outage_brand="Renault", bonus_applied=15))
        assert badge.fleet_api
        assert badge.tooltip == "Fleet API Outage - Renault - Bonus: +15%"

    def test_vehicle_outage(self):
        """Test any other outage type is a vehicle outage."""
        badge = outage_badge(OutageInfo(outage_type="Outage Vehicle", bonus_applied=7.5))
        assert not badge.fleet_api
        assert badge.label == "Vehicle outage"
        assert "+7.5%" in badge.tooltip


class TestLabels:
    """Tests for labels and colors of the alert table."""

    def test_partition_rows(self):
        """Test clickable and non-clickable rows partition the list."""
        alerts = [
            make_alert(id=1),
            make_alert(id=2, pdfReportId=None),
            make_alert(id=3, status="ESCALATED"),
            make_alert(id=4, status="COMPLETED"),
        ]
        clickable, inert = partition_rows(alerts)
        assert [a.id for a in clickable] == [1, 3]
        assert [a.id for a in inert] == [2, 4]

    def test_colors(self):
        """Test severity and status colors with unknown fallbacks."""
        assert severity_color("CRITICAL") == "red"
        assert severity_color("BOGUS") == "gray"
        assert status_color(AlertStatus.CONTRACT_BREACH) == "red"
        assert status_color(AlertStatus.PROCESSING) == "gray"

    def test_alert_type_label(self):
        """Test detector rule labels."""
        assert alert_type_label("MONTHLY_THRESHOLD") == "Monthly threshold"
        assert alert_type_label("NEW_RULE") == "NEW_RULE"

    def test_format_datetime(self):
        """Test date formatting and missing values."""
        assert format_datetime(datetime(2026, 10, 1, 8, 5)) == "01/10/2026 08:05"
        assert format_datetime(None) == "N/A"


class TestEventLog:
    """Tests for the operator-visible event log."""

    def test_bounded(self):
        """Test the log keeps only the newest entries."""
        log = EventLog(max_size=3)
        for i in range(5):
            log.info("test", "TICK", f"event {i}")
        assert len(log) == 3
        assert [e.message for e in log.entries()] == ["event 2", "event 3", "event 4"]

    def test_filters(self):
        """Test filtering by type and by error level."""
        log = EventLog()
        log.info("list", "ALERTS_LOADED", "ok")
        log.error("list", "ALERTS_FAILED", "boom", page=2)
        assert [e.message for e in log.entries("ALERTS_FAILED")] == ["boom"]
        assert log.errors()[0].details == {"page": 2}
        assert log.last() is not None and log.last().is_error

    def test_mirrored_to_logger(self, caplog):
        """Test entries are written to the standard logger."""
        log = EventLog()
        with caplog.at_level(logging.WARNING, logger="gapwatch.dashboard.events"):
            log.warning("scheduler", "INTERVAL_FALLBACK", "using default", minutes=60)
        assert "INTERVAL_FALLBACK - scheduler: using default [minutes=60]" in caplog.text

    def test_clear(self):
        """Test clearing the log."""
        log = EventLog()
        log.info("x", "Y", "z")
        log.clear()
        assert log.last() is None
