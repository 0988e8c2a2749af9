import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from release_orchestrator.dependencies import (
    get_alert_service,
    get_health_collector,
    get_health_metrics_service,
)
from release_orchestrator.domain.errors import UnknownActionError
from release_orchestrator.domain.services.alert_service import AlertService
from release_orchestrator.domain.services.health_collector import HealthCollector
from release_orchestrator.domain.services.health_metrics import HealthMetricsService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["alerts"])

ALERT_ACTIONS = ("check_alerts", "send_alerts", "health_metrics")


@router.post("/production-alerts")
async def production_alerts(
    action: str = Query("check_alerts"),
    collector: HealthCollector = Depends(get_health_collector),
    alert_service: AlertService = Depends(get_alert_service),
    metrics_service: HealthMetricsService = Depends(get_health_metrics_service),
):
    """Run the health collector, the critical-alert email batch, or the health metrics job."""
    if action not in ALERT_ACTIONS:
        raise UnknownActionError(f"Unknown action: {action}")
    logger.info(f"🔔 Production alerts action: {action}")

    timestamp = datetime.now(timezone.utc).isoformat()
    if action == "check_alerts":
        snapshot = await collector.collect()
        return {"status": "success", **snapshot.to_dict(), "timestamp": timestamp}
    if action == "send_alerts":
        summary = await alert_service.send_critical_alerts()
        return {"status": "success", **summary.to_dict(), "timestamp": timestamp}
    metrics = await metrics_service.collect_health_metrics()
    return {"status": "success", "metrics": metrics.to_dict(), "timestamp": timestamp}


@router.post("/alerts/{alert_id}/resolve")
async def resolve_alert(alert_id: str, alert_service: AlertService = Depends(get_alert_service)):
    alert = await alert_service.resolve_alert(alert_id)
    return {
        "status": "success",
        "alert": alert.to_record(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
