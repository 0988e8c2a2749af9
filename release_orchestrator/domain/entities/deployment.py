from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

Environment = Literal["staging", "production"]


class DeploymentStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({DeploymentStatus.SUCCESS, DeploymentStatus.FAILED})

# Forward-only state machine; terminal states have no outgoing edges.
ALLOWED_TRANSITIONS = {
    DeploymentStatus.PENDING: {DeploymentStatus.IN_PROGRESS, DeploymentStatus.FAILED},
    DeploymentStatus.IN_PROGRESS: {DeploymentStatus.SUCCESS, DeploymentStatus.FAILED},
    DeploymentStatus.SUCCESS: set(),
    DeploymentStatus.FAILED: set(),
}


class Deployment(BaseModel):
    id: str
    environment: Environment
    version: str
    commit_hash: Optional[str] = None
    status: DeploymentStatus = DeploymentStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    is_rollback: bool = False
    rollback_from: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    logs: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_transition_to(self, status: DeploymentStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.status]

    def to_record(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe row for the record store."""
        return self.model_dump(mode="json")


class DeploymentBackup(BaseModel):
    deployment_id: str
    backup_type: str = "full"
    created_at: datetime
    status: str = "completed"

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
