"""Deployment Monitor - polls the health collector until health clears or time runs out."""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from release_orchestrator.config import settings
from release_orchestrator.domain.entities.health import HealthSnapshot
from release_orchestrator.domain.services.health_collector import HealthCollector

logger = logging.getLogger(__name__)

TIMEOUT_REASON = "deployment monitoring timeout"
CANCELLED_REASON = "deployment monitoring cancelled"


@dataclass
class MonitorResult:
    status: str
    snapshot: Optional[HealthSnapshot]
    polls: int
    reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    @property
    def cancelled(self) -> bool:
        return self.reason == CANCELLED_REASON

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "polls": self.polls,
            "reason": self.reason,
            "health_check": self.snapshot.to_dict() if self.snapshot else None,
        }


class MonitorRegistry:
    """Cancel events of the monitors currently running in this process."""

    def __init__(self):
        self._events: Dict[str, asyncio.Event] = {}

    def open(self, deployment_id: str) -> asyncio.Event:
        event = asyncio.Event()
        self._events[deployment_id] = event
        return event

    def close(self, deployment_id: str) -> None:
        self._events.pop(deployment_id, None)

    def cancel(self, deployment_id: str) -> bool:
        event = self._events.get(deployment_id)
        if event is None:
            return False
        event.set()
        return True

    def is_running(self, deployment_id: str) -> bool:
        return deployment_id in self._events


class DeploymentMonitor:
    def __init__(
        self,
        collector: HealthCollector,
        poll_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.collector = collector
        self.poll_interval = poll_interval if poll_interval is not None else settings.MONITOR_POLL_INTERVAL_SECONDS
        self._clock = clock
        self._sleep = sleep

    async def _pause(self, seconds: float, cancel_event: Optional[asyncio.Event]) -> bool:
        """Wait ``seconds``; return True if the cancel event fired first."""
        if cancel_event is None:
            await self._sleep(seconds)
            return False
        if cancel_event.is_set():
            return True
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        waiter = asyncio.ensure_future(cancel_event.wait())
        done, pending = await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        return waiter in done

    async def monitor(
        self,
        deployment_id: str,
        timeout_ms: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> MonitorResult:
        """Poll every interval; success on the first snapshot with no critical alerts.

        No poll is taken past the deadline: when the next one would land after
        it, the monitor waits out the remainder and reports a timeout.
        """
        timeout = (timeout_ms if timeout_ms is not None else settings.DEFAULT_HEALTH_CHECK_TIMEOUT_MS) / 1000.0
        started = self._clock()
        polls = 0
        last_snapshot: Optional[HealthSnapshot] = None

        logger.info(f"👀 Monitoring deployment {deployment_id} (timeout {timeout:g}s, interval {self.poll_interval:g}s)")

        while True:
            elapsed = self._clock() - started
            remaining = timeout - elapsed
            if remaining < self.poll_interval:
                if remaining > 0 and await self._pause(remaining, cancel_event):
                    return self._cancelled(deployment_id, last_snapshot, polls)
                logger.warning(f"⏰ Deployment {deployment_id} monitoring timed out after {polls} polls")
                return MonitorResult("failed", last_snapshot, polls, reason=TIMEOUT_REASON)

            if await self._pause(self.poll_interval, cancel_event):
                return self._cancelled(deployment_id, last_snapshot, polls)

            last_snapshot = await self.collector.collect()
            polls += 1
            if last_snapshot.is_clean:
                logger.info(f"✅ Deployment {deployment_id} healthy after {polls} polls")
                return MonitorResult("success", last_snapshot, polls)
            logger.info(
                f"⏳ Deployment {deployment_id} poll {polls}: {last_snapshot.critical_alerts} critical alerts"
            )

    @staticmethod
    def _cancelled(deployment_id: str, snapshot: Optional[HealthSnapshot], polls: int) -> MonitorResult:
        logger.warning(f"🛑 Monitoring of deployment {deployment_id} cancelled after {polls} polls")
        return MonitorResult("failed", snapshot, polls, reason=CANCELLED_REASON)
