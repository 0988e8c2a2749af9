import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from release_orchestrator.config import settings
from release_orchestrator.domain.errors import ExecutorConfigurationError, ExecutorDispatchError

logger = logging.getLogger(__name__)


@dataclass
class DispatchAck:
    """Acknowledgement that the executor accepted a dispatch."""

    status_code: int
    event_type: str
    payload: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CICDClient:
    """Dispatches build/deploy requests to the external CI/CD executor.

    The executor is a repository-dispatch webhook: the full deployment config
    travels as an opaque ``client_payload`` and the executor takes it from
    there asynchronously.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        repo_owner: Optional[str] = None,
        repo_name: Optional[str] = None,
        api_url: Optional[str] = None,
        event_type: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._access_token = access_token if access_token is not None else settings.EXECUTOR_ACCESS_TOKEN
        self._repo_owner = repo_owner if repo_owner is not None else settings.EXECUTOR_REPO_OWNER
        self._repo_name = repo_name if repo_name is not None else settings.EXECUTOR_REPO_NAME
        self._api_url = (api_url or settings.EXECUTOR_API_URL).rstrip("/")
        self._event_type = event_type or settings.EXECUTOR_EVENT_TYPE
        self.client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    def _check_configuration(self) -> None:
        missing = [
            name
            for name, value in (
                ("EXECUTOR_ACCESS_TOKEN", self._access_token),
                ("EXECUTOR_REPO_OWNER", self._repo_owner),
                ("EXECUTOR_REPO_NAME", self._repo_name),
            )
            if not value
        ]
        if missing:
            raise ExecutorConfigurationError(
                "Missing executor configuration", details={"missing": missing}
            )

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/vnd.github.v3+json",
            "Content-Type": "application/json",
        }

    async def trigger(self, payload: Dict[str, Any]) -> DispatchAck:
        """Dispatch a deployment; raises on missing config or a non-success answer."""
        self._check_configuration()

        url = f"{self._api_url}/repos/{self._repo_owner}/{self._repo_name}/dispatches"
        body = {"event_type": self._event_type, "client_payload": payload}

        logger.info(
            f"🚀 Dispatching {self._event_type} to {self._repo_owner}/{self._repo_name} "
            f"(environment={payload.get('environment')}, version={payload.get('version')})"
        )
        try:
            response = await self.client.post(url, json=body, headers=self._get_headers())
        except httpx.HTTPError as e:
            logger.error(f"❌ Executor unreachable: {e}")
            raise ExecutorDispatchError(0, str(e)) from e

        if not response.is_success:
            logger.error(f"❌ Executor rejected dispatch: {response.status_code} {response.text}")
            raise ExecutorDispatchError(response.status_code, response.text)

        logger.info(f"✅ Executor accepted dispatch ({response.status_code})")
        return DispatchAck(status_code=response.status_code, event_type=self._event_type, payload=payload)

    async def close(self):
        await self.client.aclose()
