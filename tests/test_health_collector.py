from typing import List
from unittest.mock import AsyncMock

import pytest

from release_orchestrator.domain.entities.alert import AlertSeverity
from release_orchestrator.domain.entities.health import HealthMetrics, HealthSnapshot
from release_orchestrator.domain.errors import StoreError
from release_orchestrator.domain.services.alert_service import AlertService
from release_orchestrator.domain.services.health_collector import HealthCollector
from release_orchestrator.domain.services.health_rules import (
    DeviceOfflineRule,
    LatencyRule,
    PaymentFailureRule,
    SlowQueryRule,
    default_rules,
)
from release_orchestrator.infrastructure.store import AlertRepository, InMemoryRecordStore
from release_orchestrator.infrastructure.store.base import (
    ALERTS_TABLE,
    DEVICE_STATUS_TABLE,
    FRONTEND_ERRORS_TABLE,
    PAYMENTS_TABLE,
    PERFORMANCE_METRICS_TABLE,
    SYSTEM_HEALTH_TABLE,
)
from tests.fakes import NOW, minutes_ago


def collector_for(tables) -> HealthCollector:
    store = InMemoryRecordStore(tables=tables)
    return HealthCollector(store, AlertService(AlertRepository(store)), clock=lambda: NOW)


def types(snapshot) -> List[str]:
    return [alert.type for alert in snapshot.alerts]


class BrokenRule:
    name = "broken_signal"

    async def evaluate(self, store, now):
        raise ConnectionError("signal source unreachable")


@pytest.mark.asyncio
async def test_empty_store_is_healthy():
    snapshot = await collector_for({}).collect()

    assert snapshot.alerts_found == 0
    assert snapshot.is_clean
    assert snapshot.timestamp == NOW


@pytest.mark.asyncio
async def test_service_outage_is_critical_and_persisted():
    collector = collector_for(
        {
            SYSTEM_HEALTH_TABLE: [
                {"service_name": "api", "status": "error", "error_message": "502", "created_at": minutes_ago(2)},
                {"service_name": "web", "status": "error", "error_message": "old", "created_at": minutes_ago(30)},
            ]
        }
    )

    snapshot = await collector.collect()

    assert types(snapshot) == ["service_outage"]
    assert snapshot.critical_alerts == 1
    stored = collector.store.rows(ALERTS_TABLE)
    assert [(row["type"], row["severity"], row["status"]) for row in stored] == [
        ("service_outage", "critical", "open")
    ]


@pytest.mark.asyncio
async def test_latency_threshold_is_strict():
    collector = collector_for(
        {
            SYSTEM_HEALTH_TABLE: [
                {"service_name": "api", "status": "healthy", "response_time_ms": 5000, "created_at": minutes_ago(1)},
                {"service_name": "web", "status": "healthy", "response_time_ms": 6500, "created_at": minutes_ago(1)},
            ]
        }
    )

    snapshot = await collector.collect()

    assert types(snapshot) == ["performance_degradation"]
    assert snapshot.alerts[0].severity == AlertSeverity.HIGH
    assert snapshot.alerts[0].metadata["service"] == "web"
    assert snapshot.is_clean


@pytest.mark.asyncio
@pytest.mark.parametrize("failed, expected", [(10, []), (11, ["payment_failures"])])
async def test_payment_failures_above_threshold(failed, expected):
    payments = [{"status": "failed", "created_at": minutes_ago(10)} for _ in range(failed)]
    payments.append({"status": "failed", "created_at": minutes_ago(120)})
    payments.append({"status": "succeeded", "created_at": minutes_ago(5)})

    snapshot = await collector_for({PAYMENTS_TABLE: payments}).collect()

    assert types(snapshot) == expected


@pytest.mark.asyncio
async def test_mass_device_offline_counts_stale_heartbeats_only():
    stale = [{"status": "offline", "last_heartbeat": minutes_ago(45)} for _ in range(51)]
    recent = [{"status": "offline", "last_heartbeat": minutes_ago(5)} for _ in range(200)]

    snapshot = await collector_for({DEVICE_STATUS_TABLE: stale + recent}).collect()

    assert types(snapshot) == ["mass_device_offline"]
    assert snapshot.alerts[0].severity == AlertSeverity.CRITICAL
    assert snapshot.alerts[0].metadata["offline_count"] == 51


@pytest.mark.asyncio
async def test_recently_offline_devices_do_not_alert():
    recent = [{"status": "offline", "last_heartbeat": minutes_ago(5)} for _ in range(200)]

    snapshot = await collector_for({DEVICE_STATUS_TABLE: recent}).collect()

    assert snapshot.alerts_found == 0


@pytest.mark.asyncio
async def test_frontend_error_rate():
    errors = [{"message": "TypeError", "created_at": minutes_ago(3)} for _ in range(101)]

    snapshot = await collector_for({FRONTEND_ERRORS_TABLE: errors}).collect()

    assert types(snapshot) == ["high_error_rate"]


@pytest.mark.asyncio
async def test_slow_queries_are_reported_but_not_persisted():
    slow = [
        {"test_name": "database_query_time", "duration_ms": 2500, "created_at": minutes_ago(1)}
        for _ in range(11)
    ]
    collector = collector_for({PERFORMANCE_METRICS_TABLE: slow})

    snapshot = await collector.collect()

    assert types(snapshot) == ["database_performance"]
    assert snapshot.alerts[0].severity == AlertSeverity.MEDIUM
    assert collector.store.rows(ALERTS_TABLE) == []


@pytest.mark.asyncio
async def test_failing_rule_fails_closed_without_stopping_others():
    store = InMemoryRecordStore(
        tables={
            SYSTEM_HEALTH_TABLE: [
                {"service_name": "api", "status": "error", "error_message": "502", "created_at": minutes_ago(1)}
            ]
        }
    )
    collector = HealthCollector(store, rules=[BrokenRule(), *default_rules()], clock=lambda: NOW)

    snapshot = await collector.collect()

    assert types(snapshot) == ["health_check_failure", "service_outage"]
    assert snapshot.critical_alerts == 2
    assert "signal source unreachable" in snapshot.alerts[0].message


@pytest.mark.asyncio
async def test_custom_thresholds_and_registration():
    store = InMemoryRecordStore(
        tables={
            SYSTEM_HEALTH_TABLE: [
                {"service_name": "api", "status": "healthy", "response_time_ms": 1500, "created_at": minutes_ago(1)}
            ],
            PAYMENTS_TABLE: [{"status": "failed", "created_at": minutes_ago(1)} for _ in range(3)],
        }
    )
    collector = HealthCollector(store, rules=[LatencyRule(threshold_ms=1000)], clock=lambda: NOW)
    collector.register(PaymentFailureRule(threshold=2))

    snapshot = await collector.collect()

    assert types(snapshot) == ["performance_degradation", "payment_failures"]
    assert [rule.name for rule in collector.rules] == ["performance_degradation", "payment_failures"]


def test_default_rule_set():
    names = [rule.name for rule in default_rules()]

    assert names == [
        "service_outage",
        "performance_degradation",
        "payment_failures",
        "mass_device_offline",
        "high_error_rate",
        "database_performance",
    ]
    assert isinstance(default_rules()[3], DeviceOfflineRule)
    assert isinstance(default_rules()[5], SlowQueryRule)


@pytest.mark.asyncio
async def test_alert_store_outage_does_not_break_collection():
    store = InMemoryRecordStore(
        tables={
            SYSTEM_HEALTH_TABLE: [
                {"service_name": "api", "status": "error", "error_message": "502", "created_at": minutes_ago(1)}
            ]
        }
    )
    alert_store = AsyncMock()
    alert_store.insert.side_effect = StoreError("alerts table unavailable")
    collector = HealthCollector(store, AlertService(AlertRepository(alert_store)), clock=lambda: NOW)

    snapshot = await collector.collect()

    assert snapshot.critical_alerts == 1
    alert_store.insert.assert_awaited_once()


def test_snapshot_and_metrics_default_to_aware_timestamps():
    snapshot = HealthSnapshot()
    metrics = HealthMetrics()

    assert snapshot.timestamp.tzinfo is not None
    assert metrics.timestamp.tzinfo is not None
    assert snapshot.to_dict()["timestamp"].endswith("+00:00")
    assert metrics.to_dict()["timestamp"].endswith("+00:00")
