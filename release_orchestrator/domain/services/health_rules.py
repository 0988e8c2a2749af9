"""Built-in health rules evaluated by the health signal collector."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Protocol

from release_orchestrator.domain.entities.alert import AlertDraft, AlertSeverity
from release_orchestrator.infrastructure.store.base import (
    DEVICE_STATUS_TABLE,
    FRONTEND_ERRORS_TABLE,
    PAYMENTS_TABLE,
    PERFORMANCE_METRICS_TABLE,
    SYSTEM_HEALTH_TABLE,
    Query,
    RecordStore,
)


class HealthRule(Protocol):
    """Interface for a stateless health rule over a fixed lookback window."""

    name: str

    async def evaluate(self, store: RecordStore, now: datetime) -> List[AlertDraft]:
        """Return the alerts this rule detects at ``now``."""


def _recent_health(now: datetime, window: timedelta) -> Query:
    return (
        Query(SYSTEM_HEALTH_TABLE)
        .gte("created_at", (now - window).isoformat())
        .order("created_at", descending=True)
    )


class ServiceOutageRule:
    name = "service_outage"

    def __init__(self, window: timedelta = timedelta(minutes=10)):
        self.window = window

    async def evaluate(self, store: RecordStore, now: datetime) -> List[AlertDraft]:
        rows = await store.select(_recent_health(now, self.window).eq("status", "error"))
        return [
            AlertDraft(
                type="service_outage",
                severity=AlertSeverity.CRITICAL,
                title=f"Service Outage: {row.get('service_name')}",
                message=f"{row.get('service_name')} is reporting errors: {row.get('error_message')}",
                metadata={"service": row.get("service_name"), "error": row.get("error_message")},
            )
            for row in rows
        ]


class LatencyRule:
    name = "performance_degradation"

    def __init__(self, threshold_ms: int = 5000, window: timedelta = timedelta(minutes=10)):
        self.threshold_ms = threshold_ms
        self.window = window

    async def evaluate(self, store: RecordStore, now: datetime) -> List[AlertDraft]:
        rows = await store.select(_recent_health(now, self.window).gt("response_time_ms", self.threshold_ms))
        return [
            AlertDraft(
                type="performance_degradation",
                severity=AlertSeverity.HIGH,
                title=f"Service Performance Issue: {row.get('service_name')}",
                message=(
                    f"{row.get('service_name')} response time is {row.get('response_time_ms')}ms "
                    f"(threshold: {self.threshold_ms}ms)"
                ),
                metadata={"service": row.get("service_name"), "response_time": row.get("response_time_ms")},
            )
            for row in rows
        ]


class PaymentFailureRule:
    name = "payment_failures"

    def __init__(self, threshold: int = 10, window: timedelta = timedelta(hours=1)):
        self.threshold = threshold
        self.window = window

    async def evaluate(self, store: RecordStore, now: datetime) -> List[AlertDraft]:
        failed = await store.count(
            Query(PAYMENTS_TABLE).eq("status", "failed").gte("created_at", (now - self.window).isoformat())
        )
        if failed <= self.threshold:
            return []
        return [
            AlertDraft(
                type="payment_failures",
                severity=AlertSeverity.HIGH,
                title="High Payment Failure Rate",
                message=f"{failed} failed payments in the last hour",
                metadata={"failed_count": failed},
            )
        ]


class DeviceOfflineRule:
    name = "mass_device_offline"

    def __init__(self, threshold: int = 50, offline_for: timedelta = timedelta(minutes=30)):
        self.threshold = threshold
        self.offline_for = offline_for

    async def evaluate(self, store: RecordStore, now: datetime) -> List[AlertDraft]:
        offline = await store.count(
            Query(DEVICE_STATUS_TABLE)
            .eq("status", "offline")
            .lt("last_heartbeat", (now - self.offline_for).isoformat())
        )
        if offline <= self.threshold:
            return []
        minutes = int(self.offline_for.total_seconds() // 60)
        return [
            AlertDraft(
                type="mass_device_offline",
                severity=AlertSeverity.CRITICAL,
                title="Mass Device Connectivity Issue",
                message=f"{offline} devices have been offline for over {minutes} minutes",
                metadata={"offline_count": offline},
            )
        ]


class FrontendErrorRule:
    name = "high_error_rate"

    def __init__(self, threshold: int = 100, window: timedelta = timedelta(minutes=15)):
        self.threshold = threshold
        self.window = window

    async def evaluate(self, store: RecordStore, now: datetime) -> List[AlertDraft]:
        errors = await store.count(
            Query(FRONTEND_ERRORS_TABLE).gte("created_at", (now - self.window).isoformat())
        )
        if errors <= self.threshold:
            return []
        minutes = int(self.window.total_seconds() // 60)
        return [
            AlertDraft(
                type="high_error_rate",
                severity=AlertSeverity.HIGH,
                title="High Frontend Error Rate",
                message=f"{errors} frontend errors in the last {minutes} minutes",
                metadata={"error_count": errors},
            )
        ]


class SlowQueryRule:
    name = "database_performance"

    def __init__(
        self,
        threshold: int = 10,
        duration_ms: int = 2000,
        window: timedelta = timedelta(minutes=5),
    ):
        self.threshold = threshold
        self.duration_ms = duration_ms
        self.window = window

    async def evaluate(self, store: RecordStore, now: datetime) -> List[AlertDraft]:
        slow = await store.count(
            Query(PERFORMANCE_METRICS_TABLE)
            .eq("test_name", "database_query_time")
            .gte("created_at", (now - self.window).isoformat())
            .gt("duration_ms", self.duration_ms)
        )
        if slow <= self.threshold:
            return []
        return [
            AlertDraft(
                type="database_performance",
                severity=AlertSeverity.MEDIUM,
                title="Database Performance Degradation",
                message=f"{slow} slow database queries detected (>{self.duration_ms / 1000:g}s)",
                metadata={"slow_query_count": slow},
            )
        ]


def default_rules() -> List[HealthRule]:
    return [
        ServiceOutageRule(),
        LatencyRule(),
        PaymentFailureRule(),
        DeviceOfflineRule(),
        FrontendErrorRule(),
        SlowQueryRule(),
    ]
