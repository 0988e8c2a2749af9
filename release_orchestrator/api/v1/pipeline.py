"""
Deployment pipeline endpoint.

One route, dispatched on the ``action`` query parameter:
- deploy:   health-gated deployment with optional auto-rollback
- validate: pre-flight checks
- rollback: re-deploy the last successful version
- status:   read one deployment record
- cancel:   abort the monitor of an in-flight deployment
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Type, TypeVar

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from release_orchestrator.dependencies import get_orchestrator
from release_orchestrator.domain.errors import InvalidRequestError, UnknownActionError
from release_orchestrator.domain.services.orchestrator import DeploymentOrchestrator
from release_orchestrator.schemas.pipeline import DeployRequest, DeploymentIdRequest, RollbackRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["deployment-pipeline"])

ModelT = TypeVar("ModelT", bound=BaseModel)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse(model: Type[ModelT], body: Dict[str, Any]) -> ModelT:
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise InvalidRequestError(
            "Invalid request body",
            details={"errors": json.loads(e.json(include_url=False))},
        ) from e


async def _read_body(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


async def _deploy(orchestrator: DeploymentOrchestrator, body: Dict[str, Any]) -> JSONResponse:
    outcome = await orchestrator.deploy(_parse(DeployRequest, body))
    return JSONResponse(outcome.to_dict(), status_code=400 if outcome.cancelled else 200)


async def _validate(orchestrator: DeploymentOrchestrator, body: Dict[str, Any]) -> JSONResponse:
    report = await orchestrator.validate()
    return JSONResponse(
        {
            "status": "valid" if report.valid else "invalid",
            "validations": report.checks,
            "details": report.details,
            "missing_vars": report.missing_config,
            "timestamp": _now(),
        }
    )


async def _rollback(orchestrator: DeploymentOrchestrator, body: Dict[str, Any]) -> JSONResponse:
    rollback_request = _parse(RollbackRequest, body)
    result = await orchestrator.rollback(rollback_request.environment, rollback_request.deployment_id)
    return JSONResponse(result.to_dict())


async def _status(orchestrator: DeploymentOrchestrator, body: Dict[str, Any]) -> JSONResponse:
    status_request = _parse(DeploymentIdRequest, body)
    deployment = await orchestrator.status(status_request.deployment_id)
    return JSONResponse({"status": "success", "deployment": deployment.to_record(), "timestamp": _now()})


async def _cancel(orchestrator: DeploymentOrchestrator, body: Dict[str, Any]) -> JSONResponse:
    cancel_request = _parse(DeploymentIdRequest, body)
    orchestrator.cancel(cancel_request.deployment_id)
    return JSONResponse(
        {"status": "success", "deployment_id": cancel_request.deployment_id, "timestamp": _now()}
    )


ACTIONS: Dict[str, Callable[[DeploymentOrchestrator, Dict[str, Any]], Awaitable[JSONResponse]]] = {
    "deploy": _deploy,
    "validate": _validate,
    "rollback": _rollback,
    "status": _status,
    "cancel": _cancel,
}


@router.post("/deployment-pipeline")
async def deployment_pipeline(
    request: Request,
    action: str = Query("deploy"),
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
):
    """Run one pipeline action; errors are rendered by the error handling middleware."""
    handler = ACTIONS.get(action)
    if handler is None:
        raise UnknownActionError(f"Unknown action: {action}")
    body = await _read_body(request)
    logger.info(f"🔧 Deployment pipeline action: {action}")
    return await handler(orchestrator, body)
