from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import pytest

from release_orchestrator.dependencies import (
    get_cicd_client,
    get_deploy_monitor,
    get_email_client,
    get_health_collector,
    get_record_store,
    get_validator,
)
from release_orchestrator.domain.errors import ExecutorDispatchError
from release_orchestrator.domain.services.deploy_monitor import DeploymentMonitor
from release_orchestrator.domain.services.validator import DeploymentValidator
from release_orchestrator.infrastructure.store import InMemoryRecordStore
from release_orchestrator.infrastructure.store.base import ALERTS_TABLE, DEPLOYMENTS_TABLE, SYSTEM_HEALTH_TABLE
from release_orchestrator.main import create_app
from tests.fakes import (
    FakeClock,
    FakeExecutor,
    ScriptedCollector,
    deployment_rows,
    dirty_snapshot,
    minutes_ago,
    successful_deployment_row,
)

PIPELINE = "/api/v1/deployment-pipeline"


def build_api(store, executor=None, collector=None, config=None):
    executor = executor or FakeExecutor()
    clock = FakeClock()
    app = create_app()
    app.dependency_overrides[get_record_store] = lambda: store
    app.dependency_overrides[get_cicd_client] = lambda: executor
    app.dependency_overrides[get_email_client] = lambda: None
    if collector is not None:
        app.dependency_overrides[get_health_collector] = lambda: collector
        app.dependency_overrides[get_deploy_monitor] = lambda: DeploymentMonitor(
            collector, poll_interval=10.0, clock=clock, sleep=clock.sleep
        )
    if config is not None:
        app.dependency_overrides[get_validator] = lambda: DeploymentValidator(store, config=config)
    return SimpleNamespace(app=app, store=store, executor=executor, collector=collector)


def client_for(api):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=api.app), base_url="http://test")


@pytest.fixture
def api(store):
    return build_api(store, collector=ScriptedCollector())


@pytest.mark.asyncio
async def test_health_endpoint(api):
    async with client_for(api) as client:
        response = await client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_unknown_action_is_rejected(api):
    async with client_for(api) as client:
        response = await client.post(PIPELINE, params={"action": "explode"}, json={})

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "error"
    assert body["error"] == "Unknown action: explode"
    assert body["timestamp"]


@pytest.mark.asyncio
async def test_deploy_requires_version(api):
    async with client_for(api) as client:
        response = await client.post(PIPELINE, params={"action": "deploy"}, json={"environment": "staging"})

    assert response.status_code == 400
    assert response.json()["status"] == "error"
    assert deployment_rows(api.store) == []


@pytest.mark.asyncio
async def test_deploy_is_the_default_action(api):
    async with client_for(api) as client:
        response = await client.post(PIPELINE, json={"environment": "staging", "version": "1.4.0"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["version"] == "1.4.0"
    assert body["result"]["polls"] == 1
    assert deployment_rows(api.store)[0]["status"] == "success"


@pytest.mark.asyncio
async def test_deploy_cancelled_by_critical_alerts(store):
    api = build_api(store, collector=ScriptedCollector(dirty_snapshot()))

    async with client_for(api) as client:
        response = await client.post(
            PIPELINE, params={"action": "deploy"}, json={"environment": "production", "version": "2.0.0"}
        )

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "cancelled"
    assert body["reason"] == "Critical alerts detected"
    assert body["health_check"]["critical_alerts"] == 1
    assert api.executor.calls == []


@pytest.mark.asyncio
async def test_deploy_dispatch_failure_reports_failed(store):
    executor = FakeExecutor(error=ExecutorDispatchError(422, "Unprocessable"))
    api = build_api(store, executor=executor, collector=ScriptedCollector())

    async with client_for(api) as client:
        response = await client.post(PIPELINE, json={"environment": "staging", "version": "2.0.0"})

    assert response.status_code == 500
    body = response.json()
    assert body["status"] == "failed"
    assert body["details"]["response_status"] == 422
    assert deployment_rows(store)[0]["status"] == "failed"


@pytest.mark.asyncio
async def test_unexpected_error_reports_error(store):
    api = build_api(store, executor=FakeExecutor(error=RuntimeError("socket closed")), collector=ScriptedCollector())

    async with client_for(api) as client:
        response = await client.post(PIPELINE, json={"environment": "staging", "version": "2.0.0"})

    assert response.status_code == 500
    body = response.json()
    assert body["status"] == "error"
    assert body["details"]["error_type"] == "RuntimeError"
    assert deployment_rows(store)[0]["status"] == "failed"


@pytest.mark.asyncio
async def test_status_of_unknown_deployment(api):
    async with client_for(api) as client:
        response = await client.post(PIPELINE, params={"action": "status"}, json={"deployment_id": "missing"})

    assert response.status_code == 404
    assert response.json()["error"] == "Deployment not found"


@pytest.mark.asyncio
async def test_status_returns_record():
    store = InMemoryRecordStore(tables={DEPLOYMENTS_TABLE: [successful_deployment_row("dep-1", "1.0.0")]})
    api = build_api(store, collector=ScriptedCollector())

    async with client_for(api) as client:
        response = await client.post(PIPELINE, params={"action": "status"}, json={"deployment_id": "dep-1"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["deployment"]["version"] == "1.0.0"
    assert body["deployment"]["status"] == "success"


@pytest.mark.asyncio
async def test_validate_reports_each_check(store, configured_settings):
    api = build_api(store, config=configured_settings)

    async with client_for(api) as client:
        response = await client.post(PIPELINE, params={"action": "validate"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "valid"
    assert set(body["validations"]) == {"database_schema", "environment_vars", "dependencies", "security", "performance"}
    assert body["missing_vars"] == []


@pytest.mark.asyncio
async def test_rollback_without_target_fails(api):
    async with client_for(api) as client:
        response = await client.post(PIPELINE, params={"action": "rollback"}, json={})

    assert response.status_code == 500
    body = response.json()
    assert body["status"] == "failed"
    assert body["error"] == "No previous successful deployment found for rollback"
    assert deployment_rows(api.store) == []


@pytest.mark.asyncio
async def test_rollback_dispatches_previous_version():
    store = InMemoryRecordStore(tables={DEPLOYMENTS_TABLE: [successful_deployment_row("good-1", "1.0.0")]})
    api = build_api(store, collector=ScriptedCollector())

    async with client_for(api) as client:
        response = await client.post(
            PIPELINE, params={"action": "rollback"}, json={"environment": "production", "deployment_id": "bad-1"}
        )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["target_version"] == "1.0.0"
    assert api.executor.calls[0]["is_rollback"] is True


@pytest.mark.asyncio
async def test_cancel_without_running_monitor(api):
    async with client_for(api) as client:
        response = await client.post(PIPELINE, params={"action": "cancel"}, json={"deployment_id": "dep-1"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_check_alerts_runs_collector():
    store = InMemoryRecordStore(
        tables={
            SYSTEM_HEALTH_TABLE: [
                {
                    "service_name": "api",
                    "status": "error",
                    "error_message": "502",
                    "created_at": minutes_ago(1, datetime.now(timezone.utc)),
                }
            ]
        }
    )
    api = build_api(store)

    async with client_for(api) as client:
        response = await client.post("/api/v1/production-alerts", params={"action": "check_alerts"})

    assert response.status_code == 200
    body = response.json()
    assert body["critical_alerts"] == 1
    assert store.rows(ALERTS_TABLE)[0]["type"] == "service_outage"


@pytest.mark.asyncio
async def test_send_alerts_without_transport(store):
    api = build_api(store)

    async with client_for(api) as client:
        response = await client.post("/api/v1/production-alerts", params={"action": "send_alerts"})

    assert response.status_code == 200
    assert response.json()["sent"] is False


@pytest.mark.asyncio
async def test_health_metrics_action(store):
    api = build_api(store)

    async with client_for(api) as client:
        response = await client.post("/api/v1/production-alerts", params={"action": "health_metrics"})

    assert response.status_code == 200
    assert response.json()["metrics"]["health_score"] == 100.0


@pytest.mark.asyncio
async def test_unknown_alerts_action(store):
    async with client_for(build_api(store)) as client:
        response = await client.post("/api/v1/production-alerts", params={"action": "page_everyone"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_resolve_alert_endpoint():
    tables = {
        ALERTS_TABLE: [
            {
                "id": "a1",
                "type": "service_outage",
                "severity": "critical",
                "title": "Service Outage: api",
                "message": "down",
                "metadata": {},
                "status": "open",
                "created_at": minutes_ago(1),
            }
        ]
    }
    api = build_api(InMemoryRecordStore(tables=tables))

    async with client_for(api) as client:
        resolved = await client.post("/api/v1/alerts/a1/resolve")
        missing = await client.post("/api/v1/alerts/zzz/resolve")

    assert resolved.status_code == 200
    assert resolved.json()["alert"]["status"] == "resolved"
    assert missing.status_code == 404
