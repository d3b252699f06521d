"""
monitoring/slo.py

SLI/SLO catalogue and error-budget accounting.

Budget for a period = total period minutes * (100 - target) / 100. Periods
are the calendar day, ISO week (Monday start) or calendar month containing
the reference date, with an exclusive end.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

logger = logging.getLogger(__name__)

SLOUnit = Literal["percentage", "milliseconds", "seconds"]
SLOPeriod = Literal["daily", "weekly", "monthly"]
BudgetStatus = Literal["healthy", "warning", "critical"]

WARNING_CONSUMPTION_THRESHOLD = 75.0
CRITICAL_CONSUMPTION_THRESHOLD = 90.0


@dataclass(frozen=True)
class SLIDefinition:
    id: str
    name: str
    description: str
    unit: str
    calculation_method: str


@dataclass(frozen=True)
class SLODefinition:
    id: str
    sli_id: str
    name: str
    target: float
    unit: SLOUnit
    period: SLOPeriod
    tier: int


@dataclass(frozen=True)
class SLOTier:
    name: str
    description: str
    availability_slo: float
    latency_slo_ms: int
    support_response: str


@dataclass(frozen=True)
class ErrorBudget:
    slo_id: str
    period_start: datetime
    period_end: datetime
    total_budget_minutes: float
    consumed_minutes: float
    remaining_minutes: float
    consumption_rate: float
    status: BudgetStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "slo_id": self.slo_id,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "total_budget_minutes": self.total_budget_minutes,
            "consumed_minutes": self.consumed_minutes,
            "remaining_minutes": self.remaining_minutes,
            "consumption_rate": self.consumption_rate,
            "status": self.status,
        }


@dataclass(frozen=True)
class BudgetAlert:
    level: Literal["warning", "critical"]
    message: str


@dataclass(frozen=True)
class ResponseLevel:
    level: Literal["normal", "priority", "emergency"]
    action: str


@dataclass(frozen=True)
class AllowedDowntime:
    minutes: float
    hours: float
    display: str


SLI_DEFINITIONS: tuple[SLIDefinition, ...] = (
    SLIDefinition(
        id="SLI-001",
        name="Availability",
        description="Share of HTTP responses that are 2xx or 3xx",
        unit="%",
        calculation_method="successful requests / all requests * 100",
    ),
    SLIDefinition(
        id="SLI-002",
        name="Latency",
        description="API response time percentiles",
        unit="ms",
        calculation_method="p50, p95 and p99 response times",
    ),
    SLIDefinition(
        id="SLI-003",
        name="Error rate",
        description="Share of 5xx responses",
        unit="%",
        calculation_method="5xx responses / all requests * 100",
    ),
    SLIDefinition(
        id="SLI-004",
        name="Throughput",
        description="Requests processed per second",
        unit="RPS",
        calculation_method="requests per second",
    ),
    SLIDefinition(
        id="SLI-005",
        name="AI classification success rate",
        description="Share of successful AI classification calls",
        unit="%",
        calculation_method="successful responses / all calls * 100",
    ),
    SLIDefinition(
        id="SLI-006",
        name="Import success rate",
        description="Share of import jobs that complete",
        unit="%",
        calculation_method="completed jobs / all finished jobs * 100",
    ),
)

SLO_DEFINITIONS: tuple[SLODefinition, ...] = (
    SLODefinition("SLO-001", "SLI-001", "Availability", 99.9, "percentage", "monthly", 1),
    SLODefinition("SLO-002", "SLI-002", "Latency (p50)", 200, "milliseconds", "weekly", 2),
    SLODefinition("SLO-003", "SLI-002", "Latency (p95)", 1000, "milliseconds", "weekly", 2),
    SLODefinition("SLO-004", "SLI-002", "Latency (p99)", 3000, "milliseconds", "weekly", 2),
    SLODefinition("SLO-005", "SLI-003", "Error rate", 0.1, "percentage", "daily", 1),
    SLODefinition("SLO-006", "SLI-005", "AI classification success rate", 99, "percentage", "weekly", 2),
    SLODefinition("SLO-007", "SLI-006", "Import success rate", 99.5, "percentage", "monthly", 1),
    SLODefinition("SLO-008", "SLI-002", "AI classification latency", 30000, "milliseconds", "weekly", 2),
)

SLO_TIERS: dict[int, SLOTier] = {
    1: SLOTier("Tier 1", "Ingestion entry points and job status", 99.99, 500, "Immediate (15 minutes)"),
    2: SLOTier("Tier 2", "Core classification pipeline", 99.9, 3000, "Within 1 hour"),
    3: SLOTier("Tier 3", "Auxiliary reporting", 99.5, 5000, "Within 4 hours"),
    4: SLOTier("Tier 4", "Batch processing", 99.0, 600000, "Next business day"),
}

_RESPONSE_ACTIONS = {
    "emergency": "Emergency: respond immediately, freeze feature work, focus everyone on reliability",
    "priority": "Priority: fix this sprint, consider pausing feature additions",
    "normal": "Normal: file a ticket and address it next sprint",
}


def get_slo_definition(slo_id: str) -> SLODefinition | None:
    return next((slo for slo in SLO_DEFINITIONS if slo.id == slo_id), None)


def get_sli_definition(sli_id: str) -> SLIDefinition | None:
    return next((sli for sli in SLI_DEFINITIONS if sli.id == sli_id), None)


def period_bounds(period: SLOPeriod, reference: datetime) -> tuple[datetime, datetime]:
    """
    Return ``[start, end)`` of the period containing ``reference``.
    """

    day_start = reference.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "daily":
        return day_start, day_start + timedelta(days=1)
    if period == "weekly":
        week_start = day_start - timedelta(days=day_start.weekday())
        return week_start, week_start + timedelta(days=7)

    month_start = day_start.replace(day=1)
    if month_start.month == 12:
        next_month = month_start.replace(year=month_start.year + 1, month=1)
    else:
        next_month = month_start.replace(month=month_start.month + 1)
    return month_start, next_month


def budget_status(consumption_rate: float) -> BudgetStatus:
    if consumption_rate >= CRITICAL_CONSUMPTION_THRESHOLD:
        return "critical"
    if consumption_rate >= WARNING_CONSUMPTION_THRESHOLD:
        return "warning"
    return "healthy"


def calculate_error_budget(
    slo_id: str,
    downtime_minutes: float,
    reference_date: datetime | None = None,
) -> ErrorBudget | None:
    """
    Compute the error budget for ``slo_id`` over the period containing
    ``reference_date``. Returns None for unknown SLO ids.
    """

    slo = get_slo_definition(slo_id)
    if slo is None:
        logger.warning("SLO definition not found slo_id=%s", slo_id)
        return None

    reference = reference_date or datetime.now(timezone.utc)
    period_start, period_end = period_bounds(slo.period, reference)
    total_minutes = (period_end - period_start).total_seconds() / 60.0

    total_budget = total_minutes * (100.0 - slo.target) / 100.0
    remaining = max(0.0, total_budget - downtime_minutes)
    consumption_rate = (downtime_minutes / total_budget) * 100.0 if total_budget > 0 else 0.0

    return ErrorBudget(
        slo_id=slo_id,
        period_start=period_start,
        period_end=period_end,
        total_budget_minutes=total_budget,
        consumed_minutes=downtime_minutes,
        remaining_minutes=remaining,
        consumption_rate=consumption_rate,
        status=budget_status(consumption_rate),
    )


def check_error_budget_alert(budget: ErrorBudget) -> BudgetAlert | None:
    if budget.consumption_rate >= CRITICAL_CONSUMPTION_THRESHOLD:
        return BudgetAlert(
            level="critical",
            message=f"Error budget critical: {budget.slo_id} has consumed {budget.consumption_rate:.1f}%",
        )
    if budget.consumption_rate >= WARNING_CONSUMPTION_THRESHOLD:
        return BudgetAlert(
            level="warning",
            message=f"Error budget warning: {budget.slo_id} has consumed {budget.consumption_rate:.1f}%",
        )
    return None


def is_slo_met(slo_id: str, current_value: float) -> bool:
    """
    Availability-style percentages (target > 50) are "at least" targets;
    error-rate percentages and latencies are "at most" targets.
    """

    slo = get_slo_definition(slo_id)
    if slo is None:
        return False
    if slo.unit == "percentage":
        if slo.target > 50:
            return current_value >= slo.target
        return current_value <= slo.target
    if slo.unit in ("milliseconds", "seconds"):
        return current_value <= slo.target
    return False


def get_response_level(budget: ErrorBudget) -> ResponseLevel:
    remaining_percentage = 100.0 - budget.consumption_rate
    if remaining_percentage < 25:
        return ResponseLevel(level="emergency", action=_RESPONSE_ACTIONS["emergency"])
    if remaining_percentage < 50:
        return ResponseLevel(level="priority", action=_RESPONSE_ACTIONS["priority"])
    return ResponseLevel(level="normal", action=_RESPONSE_ACTIONS["normal"])


def calculate_allowed_downtime(availability_target: float, days_in_month: int = 30) -> AllowedDowntime:
    total_minutes = days_in_month * 24 * 60
    allowed_minutes = total_minutes * (100.0 - availability_target) / 100.0
    allowed_hours = allowed_minutes / 60.0
    if allowed_minutes < 60:
        display = f"{allowed_minutes:.1f} minutes"
    else:
        display = f"{allowed_hours:.1f} hours"
    return AllowedDowntime(minutes=allowed_minutes, hours=allowed_hours, display=display)
