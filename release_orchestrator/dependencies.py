"""FastAPI dependency providers wiring the orchestrator's collaborators."""
import logging
from functools import lru_cache

from fastapi import Depends

from release_orchestrator.config import settings
from release_orchestrator.domain.services.alert_service import AlertService
from release_orchestrator.domain.services.deploy_monitor import DeploymentMonitor, MonitorRegistry
from release_orchestrator.domain.services.health_collector import HealthCollector
from release_orchestrator.domain.services.health_metrics import HealthMetricsService
from release_orchestrator.domain.services.orchestrator import DeploymentOrchestrator
from release_orchestrator.domain.services.rollback_service import RollbackService
from release_orchestrator.domain.services.validator import DeploymentValidator
from release_orchestrator.infrastructure.cicd.cicd_client import CICDClient
from release_orchestrator.infrastructure.email.email_client import EmailClient
from release_orchestrator.infrastructure.store import (
    AlertRepository,
    DeploymentRepository,
    InMemoryRecordStore,
    RecordStore,
    RestRecordStore,
)

logger = logging.getLogger(__name__)

# Cancel hooks for monitors running in this process. Not deployment state.
monitor_registry = MonitorRegistry()


@lru_cache
def get_record_store() -> RecordStore:
    if settings.RECORD_STORE_URL:
        logger.info(f"🗄️ Using record store at {settings.RECORD_STORE_URL}")
        return RestRecordStore()
    logger.warning("⚠️ RECORD_STORE_URL not configured - using in-memory record store")
    return InMemoryRecordStore()


@lru_cache
def get_email_client() -> EmailClient:
    return EmailClient()


@lru_cache
def get_cicd_client() -> CICDClient:
    return CICDClient()


def get_alert_service(
    store: RecordStore = Depends(get_record_store),
    email_client: EmailClient = Depends(get_email_client),
) -> AlertService:
    return AlertService(AlertRepository(store), email_client)


def get_health_collector(
    store: RecordStore = Depends(get_record_store),
    alert_service: AlertService = Depends(get_alert_service),
) -> HealthCollector:
    return HealthCollector(store, alert_service)


def get_health_metrics_service(store: RecordStore = Depends(get_record_store)) -> HealthMetricsService:
    return HealthMetricsService(store)


def get_deploy_monitor(collector: HealthCollector = Depends(get_health_collector)) -> DeploymentMonitor:
    return DeploymentMonitor(collector)


def get_rollback_service(
    store: RecordStore = Depends(get_record_store),
    executor: CICDClient = Depends(get_cicd_client),
    alert_service: AlertService = Depends(get_alert_service),
) -> RollbackService:
    return RollbackService(DeploymentRepository(store), executor, alert_service)


def get_validator(store: RecordStore = Depends(get_record_store)) -> DeploymentValidator:
    return DeploymentValidator(store)


def get_orchestrator(
    store: RecordStore = Depends(get_record_store),
    collector: HealthCollector = Depends(get_health_collector),
    executor: CICDClient = Depends(get_cicd_client),
    monitor: DeploymentMonitor = Depends(get_deploy_monitor),
    rollback_service: RollbackService = Depends(get_rollback_service),
    validator: DeploymentValidator = Depends(get_validator),
) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(
        deployments=DeploymentRepository(store),
        collector=collector,
        executor=executor,
        monitor=monitor,
        rollback_service=rollback_service,
        validator=validator,
        registry=monitor_registry,
    )


async def close_clients() -> None:
    """Close the cached outbound clients; called on application shutdown."""
    for provider in (get_record_store, get_email_client, get_cicd_client):
        if not provider.cache_info().currsize:
            continue
        close = getattr(provider(), "close", None)
        if close is not None:
            await close()
        provider.cache_clear()
