import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from release_orchestrator.domain.entities.alert import (
    NOTIFIABLE_SEVERITIES,
    Alert,
    AlertDraft,
    AlertSeverity,
)
from release_orchestrator.infrastructure.email.email_client import EmailClient
from release_orchestrator.infrastructure.store.repositories import AlertRepository

logger = logging.getLogger(__name__)


@dataclass
class NotificationSummary:
    alerts_sent: int
    critical: int
    high: int
    sent: bool
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alerts_sent": self.alerts_sent,
            "critical": self.critical,
            "high": self.high,
            "sent": self.sent,
            "message": self.message,
        }


def _format_lines(alerts: List[Alert]) -> str:
    return "\n".join(f"• {alert.title}: {alert.message}" for alert in alerts)


class AlertService:
    """Persists alerts and sends critical/high ones outbound."""

    def __init__(self, alerts: AlertRepository, email_client: Optional[EmailClient] = None):
        self.alerts = alerts
        self.email_client = email_client

    async def raise_alert(self, draft: AlertDraft, notify: bool = False) -> Alert:
        alert = await self.alerts.create(draft)
        logger.info(f"🚨 Alert raised [{alert.severity.value}] {alert.type}: {alert.title}")
        if notify:
            await self._notify_now(alert)
        return alert

    async def raise_alert_best_effort(self, draft: AlertDraft, notify: bool = False) -> Optional[Alert]:
        """Like raise_alert, but a store failure is logged instead of propagated."""
        try:
            return await self.raise_alert(draft, notify=notify)
        except Exception as e:
            logger.error(f"❌ Failed to persist {draft.severity.value} alert '{draft.type}': {e}")
            return None

    async def persist_best_effort(self, drafts: Iterable[AlertDraft]) -> List[Alert]:
        """Persist the critical/high drafts; anything lower is reported but not stored."""
        stored = []
        for draft in drafts:
            if not draft.is_notifiable:
                continue
            alert = await self.raise_alert_best_effort(draft)
            if alert is not None:
                stored.append(alert)
        return stored

    async def _notify_now(self, alert: Alert) -> None:
        if not self.email_client or not self.email_client.is_configured():
            return
        try:
            await self.email_client.send(
                subject=f"[{alert.severity.value.upper()}] {alert.title}",
                text=f"{alert.message}\n\nType: {alert.type}\nMetadata: {alert.metadata}",
            )
        except Exception as e:
            logger.error(f"❌ Immediate notification for alert {alert.id} failed: {e}")

    async def send_critical_alerts(self, window: timedelta = timedelta(hours=1)) -> NotificationSummary:
        """Batch every open critical/high alert of the window into one email."""
        since = datetime.now(timezone.utc) - window
        open_alerts = await self.alerts.list_open(NOTIFIABLE_SEVERITIES, since=since)
        if not open_alerts:
            return NotificationSummary(0, 0, 0, sent=False, message="No critical alerts to send")

        critical = [alert for alert in open_alerts if alert.severity == AlertSeverity.CRITICAL]
        high = [alert for alert in open_alerts if alert.severity == AlertSeverity.HIGH]

        if not self.email_client or not self.email_client.is_configured():
            logger.warning("⚠️ Email transport not configured - critical alerts not sent")
            return NotificationSummary(
                len(open_alerts), len(critical), len(high), sent=False,
                message="Email transport not configured",
            )

        body = (
            "Production Alert Summary\n\n"
            f"Critical Alerts ({len(critical)}):\n{_format_lines(critical)}\n\n"
            f"High Priority Alerts ({len(high)}):\n{_format_lines(high)}\n"
        )
        await self.email_client.send(
            subject=f"Production Alert - {len(critical)} Critical, {len(high)} High",
            text=body,
        )
        return NotificationSummary(
            len(open_alerts), len(critical), len(high), sent=True,
            message=f"Sent {len(open_alerts)} alerts",
        )

    async def resolve_alert(self, alert_id: str) -> Alert:
        alert = await self.alerts.resolve(alert_id)
        logger.info(f"✅ Alert {alert_id} resolved")
        return alert
