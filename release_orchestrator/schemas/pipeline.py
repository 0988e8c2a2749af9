from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from release_orchestrator.config import settings


class DeployRequest(BaseModel):
    environment: Literal["staging", "production"]
    version: str = Field(..., min_length=1)
    commit_hash: Optional[str] = None
    auto_rollback: bool = False
    health_check_timeout: int = Field(
        default_factory=lambda: settings.DEFAULT_HEALTH_CHECK_TIMEOUT_MS,
        gt=0,
        description="Monitoring timeout in milliseconds",
    )


class RollbackRequest(BaseModel):
    environment: Literal["staging", "production"] = "production"
    deployment_id: Optional[str] = None


class DeploymentIdRequest(BaseModel):
    deployment_id: str = Field(..., min_length=1)


class PipelineResponse(BaseModel):
    """Envelope every pipeline action answers with."""

    status: str
    timestamp: str
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
