"""Typed access to deployment, backup and alert rows on top of a RecordStore."""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from release_orchestrator.domain.entities.alert import Alert, AlertDraft, AlertSeverity, AlertStatus
from release_orchestrator.domain.entities.deployment import (
    Deployment,
    DeploymentBackup,
    DeploymentStatus,
)
from release_orchestrator.domain.errors import (
    AlertNotFoundError,
    DeploymentNotFoundError,
    InvalidTransitionError,
)
from release_orchestrator.infrastructure.store.base import (
    ALERTS_TABLE,
    DEPLOYMENT_BACKUPS_TABLE,
    DEPLOYMENTS_TABLE,
    Query,
    RecordStore,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeploymentRepository:
    """Append-only deployment history. Rows are created and moved forward, never deleted."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def create(
        self,
        environment: str,
        version: str,
        commit_hash: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        is_rollback: bool = False,
        rollback_from: Optional[str] = None,
        deployment_id: Optional[str] = None,
    ) -> Deployment:
        deployment = Deployment(
            id=deployment_id or str(uuid.uuid4()),
            environment=environment,
            version=version,
            commit_hash=commit_hash,
            status=DeploymentStatus.IN_PROGRESS,
            started_at=utcnow(),
            is_rollback=is_rollback,
            rollback_from=rollback_from,
            config=config or {},
        )
        await self.store.insert(DEPLOYMENTS_TABLE, deployment.to_record())
        return deployment

    async def find(self, deployment_id: str) -> Optional[Deployment]:
        rows = await self.store.select(Query(DEPLOYMENTS_TABLE).eq("id", deployment_id).take(1))
        return Deployment(**rows[0]) if rows else None

    async def get(self, deployment_id: str) -> Deployment:
        deployment = await self.find(deployment_id)
        if deployment is None:
            raise DeploymentNotFoundError("Deployment not found", details={"deployment_id": deployment_id})
        return deployment

    async def mark_terminal(self, deployment_id: str, status: DeploymentStatus, message: Optional[str] = None) -> Deployment:
        """Move a deployment into success/failed, stamping completed_at."""
        deployment = await self.get(deployment_id)
        if not deployment.can_transition_to(status):
            raise InvalidTransitionError(
                f"Deployment {deployment_id} cannot move from {deployment.status.value} to {status.value}",
                details={"deployment_id": deployment_id, "from": deployment.status.value, "to": status.value},
            )
        completed_at = utcnow()
        values = {
            "status": status.value,
            "completed_at": completed_at.isoformat(),
            "logs": message,
        }
        await self.store.update(DEPLOYMENTS_TABLE, {"id": deployment_id}, values)
        return deployment.model_copy(update={"status": status, "completed_at": completed_at, "logs": message})

    async def latest_success(self, environment: str) -> Optional[Deployment]:
        """Newest successful regular deployment; rollback rows carry a label, not a deployable version."""
        query = (
            Query(DEPLOYMENTS_TABLE)
            .eq("environment", environment)
            .eq("status", DeploymentStatus.SUCCESS.value)
            .eq("is_rollback", False)
            .order("completed_at", descending=True)
            .take(1)
        )
        rows = await self.store.select(query)
        return Deployment(**rows[0]) if rows else None

    async def list_by_rollback_source(self, deployment_id: str) -> List[Deployment]:
        rows = await self.store.select(
            Query(DEPLOYMENTS_TABLE).eq("is_rollback", True).eq("rollback_from", deployment_id)
        )
        return [Deployment(**row) for row in rows]

    async def create_backup(self, deployment_id: str, backup_type: str = "full") -> DeploymentBackup:
        backup = DeploymentBackup(deployment_id=deployment_id, backup_type=backup_type, created_at=utcnow())
        await self.store.insert(DEPLOYMENT_BACKUPS_TABLE, backup.to_record())
        return backup


class AlertRepository:
    def __init__(self, store: RecordStore):
        self.store = store

    async def create(self, draft: AlertDraft) -> Alert:
        alert = Alert(
            id=str(uuid.uuid4()),
            type=draft.type,
            severity=draft.severity,
            title=draft.title,
            message=draft.message,
            metadata=draft.metadata,
            created_at=utcnow(),
        )
        await self.store.insert(ALERTS_TABLE, alert.to_record())
        return alert

    async def list_open(
        self,
        severities: Iterable[AlertSeverity],
        since: Optional[datetime] = None,
        alert_type: Optional[str] = None,
    ) -> List[Alert]:
        query = (
            Query(ALERTS_TABLE)
            .is_in("severity", [severity.value for severity in severities])
            .eq("status", AlertStatus.OPEN.value)
            .order("created_at", descending=True)
        )
        if since is not None:
            query.gte("created_at", since.isoformat())
        if alert_type is not None:
            query.eq("type", alert_type)
        rows = await self.store.select(query)
        return [Alert(**row) for row in rows]

    async def count_open(self, severity: AlertSeverity) -> int:
        query = Query(ALERTS_TABLE).eq("status", AlertStatus.OPEN.value).eq("severity", severity.value)
        return await self.store.count(query)

    async def resolve(self, alert_id: str) -> Alert:
        rows = await self.store.select(Query(ALERTS_TABLE).eq("id", alert_id).take(1))
        if not rows:
            raise AlertNotFoundError("Alert not found", details={"alert_id": alert_id})
        alert = Alert(**rows[0])
        if alert.status == AlertStatus.RESOLVED:
            return alert
        resolved_at = utcnow()
        await self.store.update(
            ALERTS_TABLE,
            {"id": alert_id},
            {"status": AlertStatus.RESOLVED.value, "resolved_at": resolved_at.isoformat()},
        )
        alert.status = AlertStatus.RESOLVED
        alert.resolved_at = resolved_at
        return alert
