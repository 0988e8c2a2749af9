import pytest

from release_orchestrator.config import Settings
from release_orchestrator.domain.services.alert_service import AlertService
from release_orchestrator.infrastructure.store import (
    AlertRepository,
    DeploymentRepository,
    InMemoryRecordStore,
)
from tests.fakes import FakeClock, FakeExecutor


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def deployments(store):
    return DeploymentRepository(store)


@pytest.fixture
def alert_service(store):
    return AlertService(AlertRepository(store))


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def configured_settings():
    return Settings(
        RECORD_STORE_URL="https://store.example.com",
        RECORD_STORE_ANON_KEY="anon-key",
        EMAIL_API_KEY="email-key",
    )
