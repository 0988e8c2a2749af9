from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


# Severities that are persisted by the collector and batched by the notifier.
NOTIFIABLE_SEVERITIES = (AlertSeverity.CRITICAL, AlertSeverity.HIGH)


@dataclass
class AlertDraft:
    """An anomaly detected by a health rule or raised by the rollback path, not yet persisted."""

    type: str
    severity: AlertSeverity
    title: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_notifiable(self) -> bool:
        return self.severity in NOTIFIABLE_SEVERITIES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "metadata": self.metadata,
        }


class Alert(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: str
    type: str
    severity: AlertSeverity = Field(frozen=True)
    title: str
    message: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    status: AlertStatus = AlertStatus.OPEN
    created_at: datetime
    resolved_at: Optional[datetime] = None

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
