"""Deployment Validator - pre-flight checks reported by the validate action."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol

from release_orchestrator.config import Settings, settings
from release_orchestrator.domain.entities.alert import AlertSeverity
from release_orchestrator.domain.services.health_metrics import HealthMetricsService
from release_orchestrator.infrastructure.store.base import RecordStore
from release_orchestrator.infrastructure.store.repositories import AlertRepository

logger = logging.getLogger(__name__)


@dataclass
class ValidationContext:
    store: RecordStore
    settings: Settings


@dataclass
class CheckResult:
    name: str
    passed: bool
    detail: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ValidationReport:
    checks: Dict[str, bool]
    missing_config: List[str]
    details: Dict[str, str] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return all(self.checks.values())


class DeploymentCheck(Protocol):
    """Interface for a single pre-flight check."""

    name: str

    async def run(self, context: ValidationContext) -> CheckResult:
        """Evaluate the check; must not mutate deployment or alert state."""


class SchemaIntegrityCheck:
    name = "database_schema"

    async def run(self, context: ValidationContext) -> CheckResult:
        result = await context.store.rpc("validate_schema_integrity")
        return CheckResult(self.name, bool(result), detail=f"validate_schema_integrity returned {result!r}")


class RequiredConfigCheck:
    name = "environment_vars"

    def __init__(self, required_keys: Optional[List[str]] = None):
        self.required_keys = required_keys

    async def run(self, context: ValidationContext) -> CheckResult:
        missing = context.settings.missing_config(self.required_keys)
        detail = f"Missing: {', '.join(missing)}" if missing else "All required configuration present"
        return CheckResult(self.name, not missing, detail=detail, metadata={"missing": missing})


class DependencyCheck:
    name = "dependencies"

    async def run(self, context: ValidationContext) -> CheckResult:
        # TODO: ping the record store and email API endpoints once they expose a health route
        return CheckResult(self.name, True, detail="Dependency probing not configured")


class SecurityAlertCheck:
    name = "security"

    async def run(self, context: ValidationContext) -> CheckResult:
        open_critical = await AlertRepository(context.store).count_open(AlertSeverity.CRITICAL)
        return CheckResult(
            self.name,
            open_critical == 0,
            detail=f"{open_critical} open critical alerts",
            metadata={"open_critical_alerts": open_critical},
        )


class PerformanceBaselineCheck:
    name = "performance"

    def __init__(self, threshold: Optional[float] = None):
        self.threshold = threshold

    async def run(self, context: ValidationContext) -> CheckResult:
        threshold = self.threshold if self.threshold is not None else context.settings.PERFORMANCE_BASELINE_THRESHOLD
        score = await HealthMetricsService(context.store).latest_health_score()
        if score is None:
            score = 100.0
        return CheckResult(
            self.name,
            score >= threshold,
            detail=f"health score {score:g} (threshold {threshold:g})",
            metadata={"health_score": score, "threshold": threshold},
        )


def default_checks() -> List[DeploymentCheck]:
    return [
        SchemaIntegrityCheck(),
        RequiredConfigCheck(),
        DependencyCheck(),
        SecurityAlertCheck(),
        PerformanceBaselineCheck(),
    ]


class DeploymentValidator:
    """Runs every check; a failing or erroring check never stops the others."""

    def __init__(
        self,
        store: RecordStore,
        checks: Optional[Iterable[DeploymentCheck]] = None,
        config: Optional[Settings] = None,
    ):
        self.store = store
        self._checks: List[DeploymentCheck] = list(checks) if checks is not None else default_checks()
        self._settings = config or settings

    async def validate(self) -> ValidationReport:
        context = ValidationContext(store=self.store, settings=self._settings)
        checks: Dict[str, bool] = {}
        details: Dict[str, str] = {}
        missing_config: List[str] = []

        for check in self._checks:
            logger.info(f"🔍 Running validation check: {check.name}")
            try:
                result = await check.run(context)
            except Exception as e:
                logger.error(f"❌ Validation check '{check.name}' raised: {e}")
                result = CheckResult(check.name, False, detail=f"check error: {e}")
            checks[result.name] = result.passed
            details[result.name] = result.detail
            missing_config.extend(result.metadata.get("missing", []))

        report = ValidationReport(checks=checks, missing_config=missing_config, details=details)
        logger.info(f"{'✅' if report.valid else '⚠️'} Validation finished: valid={report.valid} checks={checks}")
        return report
