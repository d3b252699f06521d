"""
monitoring/scheduler.py

APScheduler-based periodic metrics flush.

Lifecycle
----------
Call ``build_metrics_scheduler()`` once to get a configured
``BackgroundScheduler`` with a single interval job. Start it on app boot and
call ``shutdown_metrics_scheduler()`` on exit so the buffer is flushed one
last time. Wired into FastAPI via the ``lifespan`` context in app/main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from monitoring.metrics import MetricsCollector

logger = logging.getLogger(__name__)

METRICS_FLUSH_JOB_ID = "metrics_flush"


def _flush_metrics(collector: MetricsCollector) -> None:
    try:
        summary = collector.flush()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: metrics_flush failed: %s", exc)
        return
    if summary:
        logger.debug("Scheduler: metrics_flush aggregated %d metric names", len(summary))


def build_metrics_scheduler(
    collector: MetricsCollector,
    *,
    interval_seconds: int = 60,
) -> BackgroundScheduler:
    """
    Return a configured but *not yet started* scheduler that flushes
    ``collector`` every ``interval_seconds``.
    """

    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        _flush_metrics,
        trigger="interval",
        seconds=max(1, interval_seconds),
        args=[collector],
        id=METRICS_FLUSH_JOB_ID,
        name="Periodic metrics flush",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def shutdown_metrics_scheduler(scheduler: BackgroundScheduler, collector: MetricsCollector) -> None:
    if scheduler.running:
        scheduler.shutdown(wait=True)
    _flush_metrics(collector)
