"""
tests/test_monitoring.py

Pytest unit tests for the structured logger, metrics buffer, periodic
flush scheduler and SLO error-budget accounting.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import pytest

from monitoring.error_tracking import LoggingErrorTracker, RecordingErrorTracker, build_error_tracker
from monitoring.logger import StructuredLogger
from monitoring.metrics import Metric, MetricsCollector, aggregate_metrics
from monitoring.scheduler import METRICS_FLUSH_JOB_ID, build_metrics_scheduler, shutdown_metrics_scheduler
from monitoring.slo import (
    SLO_DEFINITIONS,
    calculate_allowed_downtime,
    calculate_error_budget,
    check_error_budget_alert,
    get_response_level,
    is_slo_met,
    period_bounds,
)


@pytest.fixture()
def tracker() -> RecordingErrorTracker:
    return RecordingErrorTracker()


# ---------------------------------------------------------------------------
# Structured logger
# ---------------------------------------------------------------------------


class TestStructuredLogger:
    def test_record_shape(self) -> None:
        structured = StructuredLogger(environment="production", version="1.2.3")
        record = structured.format_record("info", "hello", {"action": "test"})

        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["context"] == {"action": "test"}
        assert record["metadata"] == {"environment": "production", "version": "1.2.3"}
        assert "error" not in record

    def test_error_details_are_included(self) -> None:
        record = StructuredLogger().format_record("error", "failed", error=ValueError("bad value"))
        assert record["error"]["name"] == "ValueError"
        assert record["error"]["message"] == "bad value"

    def test_errors_forward_to_tracker(self, tracker: RecordingErrorTracker) -> None:
        structured = StructuredLogger(error_tracker=tracker)
        structured.error("Import failed", {"action": "import"}, RuntimeError("boom"))
        structured.error("No exception here")

        assert [report.kind for report in tracker.reports] == ["exception", "message"]
        assert tracker.reports[0].tags == {"action": "import"}

    def test_warnings_become_breadcrumbs(self, tracker: RecordingErrorTracker) -> None:
        StructuredLogger(error_tracker=tracker).warn("Slow query", {"duration_ms": 900})
        assert tracker.breadcrumbs[0].message == "Slow query"
        assert tracker.breadcrumbs[0].level == "warning"

    def test_debug_only_in_development(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger="monitoring.structured")
        StructuredLogger(environment="production").debug("hidden")
        StructuredLogger(environment="development").debug("shown")

        messages = [json.loads(record.getMessage())["message"] for record in caplog.records]
        assert messages == ["shown"]

    def test_api_call_level_follows_status(self, tracker: RecordingErrorTracker) -> None:
        structured = StructuredLogger(error_tracker=tracker)
        structured.api_call("GET", "/health", 200, 1.0)
        structured.api_call("POST", "/imports", 422, 3.0)
        structured.api_call("POST", "/imports", 503, 9.0)

        assert len(tracker.breadcrumbs) == 1
        assert len(tracker.reports) == 1
        assert tracker.reports[0].payload == "POST /imports 503"


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class TestMetricsCollector:
    def test_flush_aggregates_and_clears(self) -> None:
        collector = MetricsCollector(StructuredLogger(environment="test"))
        collector.record("import.duration", 100)
        collector.record("import.duration", 300)
        collector.record("error.count", 1)

        summary = collector.flush()

        assert summary["import.duration"].count == 2
        assert summary["import.duration"].sum == pytest.approx(400)
        assert summary["import.duration"].avg == pytest.approx(200)
        assert collector.buffer_size == 0
        assert collector.flush() == {}

    def test_full_buffer_flushes_automatically(self) -> None:
        collector = MetricsCollector(StructuredLogger(environment="test"), max_buffer_size=3)
        for _ in range(3):
            collector.record("x", 1)
        assert collector.buffer_size == 0

    def test_measure_external_call_records_failure_and_reraises(self) -> None:
        collector = MetricsCollector(StructuredLogger(environment="test"))

        def fail() -> None:
            raise TimeoutError("timed out")

        with pytest.raises(TimeoutError):
            collector.measure_external_call("intent_ai", "classify_keywords", fail)

        names = [metric.name for metric in collector.snapshot()]
        assert names == [
            "external.intent_ai.classify_keywords.duration",
            "external.intent_ai.classify_keywords.error",
        ]

    def test_measure_api_call_uses_clock(self) -> None:
        ticks = iter([1.0, 1.25])
        collector = MetricsCollector(StructuredLogger(environment="test"), clock=lambda: next(ticks))
        assert collector.measure_api_call("imports", lambda: "ok") == "ok"

        duration = collector.snapshot()[0]
        assert duration.name == "api.imports.duration"
        assert duration.value == pytest.approx(250.0)
        assert duration.tags == {"status": "success"}

    @pytest.mark.parametrize(
        ("status", "extra_metric"),
        [(200, None), (404, "http.client_error"), (502, "http.server_error")],
    )
    def test_record_http_request(self, status: int, extra_metric: str | None) -> None:
        collector = MetricsCollector(StructuredLogger(environment="test"))
        collector.record_http_request("GET", "/imports/jobs", status, 12.5)

        metrics = collector.snapshot()
        assert metrics[0].name == "http.request.duration"
        assert metrics[0].tags["status_category"] == str(status // 100 * 100)
        names = {metric.name for metric in metrics}
        assert names - {"http.request.duration", "http.request.count"} == ({extra_metric} if extra_metric else set())

    def test_aggregate_metrics(self) -> None:
        summary = aggregate_metrics([Metric("a", 1), Metric("a", 3), Metric("b", 5)])
        assert summary["a"].to_dict() == {"count": 2, "sum": 4.0, "avg": 2.0}


class TestMetricsScheduler:
    def test_scheduler_registers_single_flush_job(self) -> None:
        collector = MetricsCollector(StructuredLogger(environment="test"))
        scheduler = build_metrics_scheduler(collector, interval_seconds=30)

        jobs = scheduler.get_jobs()
        assert [job.id for job in jobs] == [METRICS_FLUSH_JOB_ID]
        assert scheduler.running is False

    def test_shutdown_flushes_remaining_metrics(self) -> None:
        collector = MetricsCollector(StructuredLogger(environment="test"))
        collector.record("x", 1)
        shutdown_metrics_scheduler(build_metrics_scheduler(collector), collector)
        assert collector.buffer_size == 0


def test_error_tracker_defaults_to_logging() -> None:
    assert isinstance(build_error_tracker(sentry_dsn=None), LoggingErrorTracker)


# ---------------------------------------------------------------------------
# SLOs and error budgets
# ---------------------------------------------------------------------------

REFERENCE = datetime(2026, 6, 15, 12, 30, tzinfo=timezone.utc)


class TestErrorBudget:
    def test_monthly_availability_budget(self) -> None:
        budget = calculate_error_budget("SLO-001", 0, REFERENCE)

        assert budget is not None
        assert budget.period_start == datetime(2026, 6, 1, tzinfo=timezone.utc)
        assert budget.period_end == datetime(2026, 7, 1, tzinfo=timezone.utc)
        assert budget.total_budget_minutes == pytest.approx(43.2)
        assert budget.status == "healthy"

    def test_consumption_and_status(self) -> None:
        budget = calculate_error_budget("SLO-001", 40, REFERENCE)

        assert budget is not None
        assert budget.consumption_rate == pytest.approx(92.5926, rel=1e-4)
        assert budget.remaining_minutes == pytest.approx(3.2)
        assert budget.status == "critical"
        alert = check_error_budget_alert(budget)
        assert alert is not None and alert.level == "critical"
        assert get_response_level(budget).level == "emergency"

    def test_overspent_budget_clamps_remaining(self) -> None:
        budget = calculate_error_budget("SLO-001", 100, REFERENCE)
        assert budget is not None
        assert budget.remaining_minutes == 0.0

    def test_warning_band(self) -> None:
        budget = calculate_error_budget("SLO-001", 43.2 * 0.8, REFERENCE)
        assert budget is not None
        assert budget.status == "warning"
        assert get_response_level(budget).level == "emergency"

    def test_priority_response_while_still_healthy(self) -> None:
        budget = calculate_error_budget("SLO-001", 43.2 * 0.6, REFERENCE)
        assert budget is not None
        assert budget.status == "healthy"
        assert check_error_budget_alert(budget) is None
        assert get_response_level(budget).level == "priority"

    def test_unknown_slo(self) -> None:
        assert calculate_error_budget("SLO-999", 1, REFERENCE) is None

    def test_week_starts_monday(self) -> None:
        start, end = period_bounds("weekly", REFERENCE)
        assert start == datetime(2026, 6, 15, tzinfo=timezone.utc)
        assert end == datetime(2026, 6, 22, tzinfo=timezone.utc)

    def test_december_rolls_into_next_year(self) -> None:
        start, end = period_bounds("monthly", datetime(2026, 12, 31, tzinfo=timezone.utc))
        assert start == datetime(2026, 12, 1, tzinfo=timezone.utc)
        assert end == datetime(2027, 1, 1, tzinfo=timezone.utc)


class TestSloTargets:
    def test_catalogue_ids_are_unique(self) -> None:
        ids = [slo.id for slo in SLO_DEFINITIONS]
        assert len(ids) == len(set(ids))

    @pytest.mark.parametrize(
        ("slo_id", "value", "met"),
        [
            ("SLO-001", 99.95, True),
            ("SLO-001", 99.0, False),
            ("SLO-005", 0.05, True),
            ("SLO-005", 0.5, False),
            ("SLO-003", 900, True),
            ("SLO-003", 1200, False),
            ("SLO-999", 1, False),
        ],
    )
    def test_is_slo_met(self, slo_id: str, value: float, met: bool) -> None:
        assert is_slo_met(slo_id, value) is met

    def test_allowed_downtime(self) -> None:
        assert calculate_allowed_downtime(99.9).display == "43.2 minutes"
        assert calculate_allowed_downtime(99.0).display == "7.2 hours"
