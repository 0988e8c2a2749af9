"""Health metrics job - derives the production health score the validator's baseline reads."""
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from release_orchestrator.domain.entities.health import HealthMetrics
from release_orchestrator.infrastructure.store.base import (
    ANALYTICS_TABLE,
    BOOKINGS_TABLE,
    DEVICE_STATUS_TABLE,
    FRONTEND_METRICS_TABLE,
    PROFILES_TABLE,
    SYSTEM_HEALTH_TABLE,
    Query,
    RecordStore,
)

logger = logging.getLogger(__name__)

HEALTH_SCORE_METRIC = "production_health_score"


def calculate_health_score(system_health: Dict[str, Dict[str, Any]], performance: Dict[str, float]) -> float:
    score = 100.0

    for health in system_health.values():
        if health.get("status") == "error":
            score -= 20
        elif health.get("status") == "degraded":
            score -= 10

        response_time = health.get("avg_response_time") or 0
        if response_time > 2000:
            score -= 5
        elif response_time > 1000:
            score -= 2

    if performance.get("LCP", 0) > 4000:
        score -= 10
    if performance.get("FID", 0) > 300:
        score -= 5

    return max(0.0, score)


class HealthMetricsService:
    def __init__(self, store: RecordStore, window: timedelta = timedelta(minutes=5)):
        self.store = store
        self.window = window

    async def collect_health_metrics(self) -> HealthMetrics:
        """Collect service and frontend metrics, score them, and record the score for today."""
        now = datetime.now(timezone.utc)
        since = (now - self.window).isoformat()

        checks = await self.store.select(
            Query(SYSTEM_HEALTH_TABLE).gte("created_at", since).order("created_at", descending=True)
        )
        system_health: Dict[str, Dict[str, Any]] = {}
        for check in checks:
            # newest first, so the first row per service wins
            name = check.get("service_name")
            if name not in system_health:
                system_health[name] = {
                    "status": check.get("status"),
                    "avg_response_time": check.get("response_time_ms"),
                }

        samples = await self.store.select(Query(FRONTEND_METRICS_TABLE).gte("created_at", since))
        grouped: Dict[str, List[float]] = {}
        for sample in samples:
            grouped.setdefault(sample.get("metric_name"), []).append(float(sample.get("value") or 0))
        performance = {name: sum(values) / len(values) for name, values in grouped.items()}

        metrics = HealthMetrics(
            system_health=system_health,
            performance=performance,
            business=await self._business_metrics(now),
            health_score=calculate_health_score(system_health, performance),
            timestamp=now,
        )

        await self.store.insert(
            ANALYTICS_TABLE,
            {
                "metric_name": HEALTH_SCORE_METRIC,
                "metric_value": metrics.health_score,
                "metric_date": now.date().isoformat(),
                "recorded_at": now.isoformat(),
                "metadata": metrics.to_dict(),
            },
        )
        logger.info(f"📊 Recorded {HEALTH_SCORE_METRIC}={metrics.health_score}")
        return metrics

    async def _business_metrics(self, now: datetime) -> Dict[str, int]:
        """Reported alongside the score; they do not affect it."""
        start_of_day = datetime.combine(now.date(), time.min, tzinfo=timezone.utc).isoformat()
        return {
            "bookings_today": await self.store.count(Query(BOOKINGS_TABLE).gte("created_at", start_of_day)),
            "active_screens": await self.store.count(Query(DEVICE_STATUS_TABLE).eq("status", "online")),
            "total_users": await self.store.count(Query(PROFILES_TABLE)),
        }

    async def latest_health_score(self) -> Optional[float]:
        """Most recently recorded score; several runs a day each add a row."""
        rows = await self.store.select(
            Query(ANALYTICS_TABLE)
            .eq("metric_name", HEALTH_SCORE_METRIC)
            .order("recorded_at", descending=True)
            .take(1)
        )
        if not rows or rows[0].get("metric_value") is None:
            return None
        return float(rows[0]["metric_value"])
