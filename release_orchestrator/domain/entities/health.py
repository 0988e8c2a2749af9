"""Health snapshot and metrics entities - ephemeral aggregations, never stored as their own rows."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from release_orchestrator.domain.entities.alert import AlertDraft, AlertSeverity


@dataclass
class HealthSnapshot:
    """Point-in-time aggregation of every health rule's findings."""

    alerts: List[AlertDraft] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def alerts_found(self) -> int:
        return len(self.alerts)

    @property
    def critical_alerts(self) -> int:
        return sum(1 for alert in self.alerts if alert.severity == AlertSeverity.CRITICAL)

    @property
    def high_alerts(self) -> int:
        return sum(1 for alert in self.alerts if alert.severity == AlertSeverity.HIGH)

    @property
    def is_clean(self) -> bool:
        return self.critical_alerts == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "alerts_found": self.alerts_found,
            "critical_alerts": self.critical_alerts,
            "high_alerts": self.high_alerts,
            "alerts": [alert.to_dict() for alert in self.alerts],
        }


@dataclass
class HealthMetrics:
    """System, performance and business metrics plus the derived score."""

    system_health: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    performance: Dict[str, float] = field(default_factory=dict)
    business: Dict[str, int] = field(default_factory=dict)
    health_score: float = 100.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "system_health": self.system_health,
            "performance": self.performance,
            "business": self.business,
            "health_score": self.health_score,
        }
