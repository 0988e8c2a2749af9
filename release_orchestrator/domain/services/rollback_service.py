import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from release_orchestrator.domain.entities.alert import AlertDraft, AlertSeverity
from release_orchestrator.domain.entities.deployment import DeploymentStatus
from release_orchestrator.domain.errors import NoRollbackTargetError, RollbackDispatchError
from release_orchestrator.domain.services.alert_service import AlertService
from release_orchestrator.infrastructure.cicd.cicd_client import CICDClient
from release_orchestrator.infrastructure.store.repositories import DeploymentRepository

logger = logging.getLogger(__name__)


@dataclass
class RollbackResult:
    status: str
    rollback_id: str
    environment: str
    target_version: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "rollback_id": self.rollback_id,
            "environment": self.environment,
            "target_version": self.target_version,
            "timestamp": self.timestamp.isoformat(),
        }


class RollbackService:
    """Re-deploys the last known-good version of an environment.

    The rollback row's terminal status only reflects whether the executor
    accepted the dispatch; restored health is not re-monitored.
    """

    def __init__(self, deployments: DeploymentRepository, executor: CICDClient, alert_service: AlertService):
        self.deployments = deployments
        self.executor = executor
        self.alert_service = alert_service

    async def rollback(self, environment: str, from_deployment_id: Optional[str] = None) -> RollbackResult:
        target = await self.deployments.latest_success(environment)
        if target is None:
            message = "No previous successful deployment found for rollback"
            logger.error(f"❌ {message} in {environment}")
            await self._raise_failure_alert(None, environment, from_deployment_id, message)
            raise NoRollbackTargetError(message, details={"environment": environment})

        rollback = await self.deployments.create(
            environment=target.environment,
            version=f"rollback-{target.version}",
            commit_hash=target.commit_hash,
            is_rollback=True,
            rollback_from=from_deployment_id,
            config={"target_deployment_id": target.id, "target_version": target.version},
        )
        logger.info(f"⏪ Rollback {rollback.id} started: {environment} -> {target.version}")

        await self.alert_service.raise_alert_best_effort(
            AlertDraft(
                type="emergency_rollback",
                severity=AlertSeverity.CRITICAL,
                title="Emergency Rollback Initiated",
                message=f"Rollback to version {target.version} initiated",
                metadata={
                    "rollback_id": rollback.id,
                    "original_deployment": from_deployment_id,
                    "target_version": target.version,
                },
            ),
            notify=True,
        )

        try:
            await self.executor.trigger(
                {
                    "environment": target.environment,
                    "version": target.version,
                    "commit_hash": target.commit_hash,
                    "is_rollback": True,
                }
            )
        except Exception as e:
            logger.error(f"❌ Rollback {rollback.id} dispatch failed: {e}")
            try:
                await self.deployments.mark_terminal(rollback.id, DeploymentStatus.FAILED, str(e))
            except Exception as mark_error:
                logger.error(f"❌ Could not mark rollback {rollback.id} failed: {mark_error}")
            await self._raise_failure_alert(rollback.id, environment, from_deployment_id, str(e))
            raise RollbackDispatchError(
                f"Failed to trigger rollback deployment: {e}",
                details={"rollback_id": rollback.id, "target_version": target.version},
            ) from e

        await self.deployments.mark_terminal(rollback.id, DeploymentStatus.SUCCESS, "Rollback dispatched")
        logger.info(f"✅ Rollback {rollback.id} dispatched")
        return RollbackResult(
            status="success",
            rollback_id=rollback.id,
            environment=target.environment,
            target_version=target.version,
        )

    async def _raise_failure_alert(
        self,
        rollback_id: Optional[str],
        environment: str,
        from_deployment_id: Optional[str],
        error: str,
    ) -> None:
        await self.alert_service.raise_alert_best_effort(
            AlertDraft(
                type="rollback_failure",
                severity=AlertSeverity.CRITICAL,
                title="Rollback Failed",
                message=f"Emergency rollback failed: {error}",
                metadata={
                    "rollback_id": rollback_id,
                    "environment": environment,
                    "original_deployment": from_deployment_id,
                    "error": error,
                },
            ),
            notify=True,
        )
