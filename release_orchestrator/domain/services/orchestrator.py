"""Deployment Orchestrator - the deploy state machine and the other pipeline actions."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from release_orchestrator.domain.entities.deployment import Deployment, DeploymentStatus
from release_orchestrator.domain.entities.health import HealthSnapshot
from release_orchestrator.domain.errors import (
    BackupError,
    DeploymentNotFoundError,
    MonitorCancelledError,
    MonitorTimeoutError,
)
from release_orchestrator.domain.services.deploy_monitor import (
    DeploymentMonitor,
    MonitorRegistry,
    MonitorResult,
)
from release_orchestrator.domain.services.health_collector import HealthCollector
from release_orchestrator.domain.services.rollback_service import RollbackResult, RollbackService
from release_orchestrator.domain.services.validator import DeploymentValidator, ValidationReport
from release_orchestrator.infrastructure.cicd.cicd_client import CICDClient
from release_orchestrator.infrastructure.store.repositories import DeploymentRepository
from release_orchestrator.schemas.pipeline import DeployRequest

logger = logging.getLogger(__name__)


@dataclass
class DeployOutcome:
    status: str
    deployment_id: str
    environment: str
    version: str
    snapshot: Optional[HealthSnapshot] = None
    result: Optional[MonitorResult] = None
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def cancelled(self) -> bool:
        return self.status == "cancelled"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": self.status,
            "deployment_id": self.deployment_id,
            "environment": self.environment,
            "version": self.version,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.reason:
            payload["reason"] = self.reason
        if self.snapshot is not None:
            payload["health_check"] = self.snapshot.to_dict()
        if self.result is not None:
            payload["result"] = self.result.to_dict()
        return payload


class DeploymentOrchestrator:
    """Composes validator, collector, executor, monitor and rollback per action.

    Holds no deployment state of its own: every action is driven by its
    request plus store reads. The only process-local structure is the
    monitor registry, which exists so a running monitor can be cancelled.
    """

    def __init__(
        self,
        deployments: DeploymentRepository,
        collector: HealthCollector,
        executor: CICDClient,
        monitor: DeploymentMonitor,
        rollback_service: RollbackService,
        validator: DeploymentValidator,
        registry: Optional[MonitorRegistry] = None,
    ):
        self.deployments = deployments
        self.collector = collector
        self.executor = executor
        self.monitor = monitor
        self.rollback_service = rollback_service
        self.validator = validator
        self.registry = registry or MonitorRegistry()

    async def deploy(self, request: DeployRequest) -> DeployOutcome:
        is_production = request.environment == "production"
        deployment = await self.deployments.create(
            environment=request.environment,
            version=request.version,
            commit_hash=request.commit_hash,
            config=request.model_dump(),
        )
        logger.info(f"🚀 Starting deployment {deployment.id} of {request.version} to {request.environment}")

        try:
            snapshot = await self.collector.collect()
            if is_production and snapshot.critical_alerts > 0:
                reason = f"Deployment cancelled due to {snapshot.critical_alerts} critical alerts"
                logger.warning(f"🛑 {reason} ({deployment.id})")
                await self.deployments.mark_terminal(deployment.id, DeploymentStatus.FAILED, reason)
                return DeployOutcome(
                    status="cancelled",
                    deployment_id=deployment.id,
                    environment=request.environment,
                    version=request.version,
                    snapshot=snapshot,
                    reason="Critical alerts detected",
                )

            if is_production:
                logger.info(f"💾 Creating pre-deployment backup for {deployment.id}")
                try:
                    await self.deployments.create_backup(deployment.id)
                except Exception as e:
                    raise BackupError(f"Pre-deployment backup failed: {e}") from e

            await self.executor.trigger({**request.model_dump(), "deployment_id": deployment.id})

            cancel_event = self.registry.open(deployment.id)
            try:
                result = await self.monitor.monitor(deployment.id, request.health_check_timeout, cancel_event)
            finally:
                self.registry.close(deployment.id)

            if not result.succeeded:
                error_type = MonitorCancelledError if result.cancelled else MonitorTimeoutError
                raise error_type(result.reason, details={"polls": result.polls})

            await self.deployments.mark_terminal(
                deployment.id, DeploymentStatus.SUCCESS, "Deployment completed successfully"
            )
            logger.info(f"✅ Deployment {deployment.id} succeeded")
            return DeployOutcome(
                status="success",
                deployment_id=deployment.id,
                environment=request.environment,
                version=request.version,
                result=result,
            )

        except Exception as e:
            logger.error(f"❌ Deployment {deployment.id} failed: {e}")
            await self._mark_failed(deployment.id, str(e))

            if request.auto_rollback and is_production:
                logger.info(f"⏪ Initiating auto-rollback for {deployment.id}")
                try:
                    await self.rollback_service.rollback(request.environment, deployment.id)
                except Exception as rollback_error:
                    logger.error(f"❌ Auto-rollback for {deployment.id} failed: {rollback_error}")
            raise

    async def _mark_failed(self, deployment_id: str, message: str) -> None:
        try:
            await self.deployments.mark_terminal(deployment_id, DeploymentStatus.FAILED, message)
        except Exception as e:
            logger.error(f"❌ Could not mark deployment {deployment_id} failed: {e}")

    async def validate(self) -> ValidationReport:
        return await self.validator.validate()

    async def rollback(self, environment: str, deployment_id: Optional[str]) -> RollbackResult:
        return await self.rollback_service.rollback(environment, deployment_id)

    async def status(self, deployment_id: str) -> Deployment:
        return await self.deployments.get(deployment_id)

    def cancel(self, deployment_id: str) -> None:
        if not self.registry.cancel(deployment_id):
            raise DeploymentNotFoundError(
                "No running monitor for deployment", details={"deployment_id": deployment_id}
            )
        logger.info(f"🛑 Cancellation requested for deployment {deployment_id}")
