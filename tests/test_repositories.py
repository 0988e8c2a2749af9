import pytest

from release_orchestrator.domain.entities.deployment import DeploymentStatus
from release_orchestrator.domain.errors import DeploymentNotFoundError, InvalidTransitionError
from release_orchestrator.infrastructure.store.base import DEPLOYMENT_BACKUPS_TABLE
from tests.fakes import deployment_rows


@pytest.mark.asyncio
async def test_create_starts_in_progress(store, deployments):
    deployment = await deployments.create("staging", "1.0.0", commit_hash="abc", config={"auto_rollback": False})

    row = deployment_rows(store)[0]
    assert row["id"] == deployment.id
    assert row["status"] == "in_progress"
    assert row["started_at"] is not None
    assert row["completed_at"] is None
    assert row["config"] == {"auto_rollback": False}


@pytest.mark.asyncio
async def test_terminal_status_is_final(deployments):
    deployment = await deployments.create("production", "1.0.0")

    done = await deployments.mark_terminal(deployment.id, DeploymentStatus.SUCCESS, "ok")

    assert done.status == DeploymentStatus.SUCCESS
    assert done.completed_at >= done.started_at
    with pytest.raises(InvalidTransitionError):
        await deployments.mark_terminal(deployment.id, DeploymentStatus.FAILED, "late failure")
    assert (await deployments.get(deployment.id)).status == DeploymentStatus.SUCCESS


@pytest.mark.asyncio
async def test_get_unknown_deployment(deployments):
    assert await deployments.find("missing") is None
    with pytest.raises(DeploymentNotFoundError):
        await deployments.get("missing")


@pytest.mark.asyncio
async def test_latest_success_ignores_in_flight_and_failed(deployments):
    first = await deployments.create("production", "1.0.0")
    await deployments.mark_terminal(first.id, DeploymentStatus.SUCCESS)
    second = await deployments.create("production", "1.1.0")
    await deployments.mark_terminal(second.id, DeploymentStatus.SUCCESS)
    broken = await deployments.create("production", "1.2.0")
    await deployments.mark_terminal(broken.id, DeploymentStatus.FAILED)
    await deployments.create("production", "1.3.0")

    latest = await deployments.latest_success("production")

    assert latest.version == "1.1.0"
    assert await deployments.latest_success("staging") is None


@pytest.mark.asyncio
async def test_create_backup(store, deployments):
    backup = await deployments.create_backup("dep-1")

    assert backup.backup_type == "full"
    assert store.rows(DEPLOYMENT_BACKUPS_TABLE)[0]["deployment_id"] == "dep-1"
    assert store.rows(DEPLOYMENT_BACKUPS_TABLE)[0]["status"] == "completed"


@pytest.mark.asyncio
async def test_latest_success_skips_rollback_rows(deployments):
    original = await deployments.create("production", "1.0.0")
    await deployments.mark_terminal(original.id, DeploymentStatus.SUCCESS)
    rollback = await deployments.create("production", "rollback-1.0.0", is_rollback=True, rollback_from="bad-1")
    await deployments.mark_terminal(rollback.id, DeploymentStatus.SUCCESS)

    latest = await deployments.latest_success("production")

    assert latest.id == original.id
