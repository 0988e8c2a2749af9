"""Health Signal Collector - runs every health rule and aggregates a snapshot."""
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from release_orchestrator.domain.entities.alert import AlertDraft, AlertSeverity
from release_orchestrator.domain.entities.health import HealthSnapshot
from release_orchestrator.domain.services.alert_service import AlertService
from release_orchestrator.domain.services.health_rules import HealthRule, default_rules
from release_orchestrator.infrastructure.store.base import RecordStore

logger = logging.getLogger(__name__)


class HealthCollector:
    """Evaluates independent health rules and persists critical/high findings.

    Rules never suppress each other: every rule runs on every collection. A
    rule that cannot read its signal contributes a critical
    ``health_check_failure`` alert, so an unreachable source is never
    mistaken for a healthy one.
    """

    def __init__(
        self,
        store: RecordStore,
        alert_service: Optional[AlertService] = None,
        rules: Optional[Iterable[HealthRule]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.alert_service = alert_service
        self._rules: List[HealthRule] = list(rules) if rules is not None else default_rules()
        self._clock = clock

    def register(self, rule: HealthRule) -> None:
        self._rules.append(rule)

    @property
    def rules(self) -> List[HealthRule]:
        return list(self._rules)

    async def collect(self) -> HealthSnapshot:
        now = self._clock()
        alerts: List[AlertDraft] = []
        for rule in self._rules:
            try:
                alerts.extend(await rule.evaluate(self.store, now))
            except Exception as e:
                logger.error(f"❌ Health rule '{rule.name}' failed: {e}")
                alerts.append(
                    AlertDraft(
                        type="health_check_failure",
                        severity=AlertSeverity.CRITICAL,
                        title=f"Health Check Failed: {rule.name}",
                        message=f"Health rule '{rule.name}' could not be evaluated: {e}",
                        metadata={"rule": rule.name, "error": str(e)},
                    )
                )

        snapshot = HealthSnapshot(alerts=alerts, timestamp=now)

        if self.alert_service is not None:
            await self.alert_service.persist_best_effort(snapshot.alerts)

        logger.info(
            f"🩺 Health check completed: {snapshot.alerts_found} alerts found "
            f"({snapshot.critical_alerts} critical, {snapshot.high_alerts} high)"
        )
        return snapshot
