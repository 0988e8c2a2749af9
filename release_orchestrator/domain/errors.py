"""Exceptions raised by the release orchestrator.

Every error carries the HTTP status the API surface should answer with, so
the pipeline routes and the error middleware can map them without knowing
each type.
"""
from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base class for orchestration failures."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(PipelineError):
    """Required external configuration is missing."""


class ExecutorConfigurationError(ConfigurationError):
    """The executor credential triple (token, owner, repo) is incomplete."""


class ExecutorDispatchError(PipelineError):
    """The CI/CD executor answered a dispatch with a non-success status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(
            f"Executor dispatch failed ({status_code}): {body}",
            details={"response_status": status_code, "response_body": body},
        )
        self.response_status = status_code
        self.response_body = body


class MonitorTimeoutError(PipelineError):
    """Health never cleared before the monitoring deadline."""


class MonitorCancelledError(PipelineError):
    """A caller aborted the monitoring loop."""


class BackupError(PipelineError):
    """Pre-deployment backup could not be written."""


class NoRollbackTargetError(PipelineError):
    """There is no successful deployment to roll back to."""


class RollbackDispatchError(PipelineError):
    """The rollback deployment could not be dispatched."""


class DeploymentNotFoundError(PipelineError):
    status_code = 404


class AlertNotFoundError(PipelineError):
    status_code = 404


class InvalidTransitionError(PipelineError):
    """A status change would move a record backwards or out of a terminal state."""

    status_code = 409


class StoreError(PipelineError):
    """The record store rejected or failed a request."""


class UnknownActionError(PipelineError):
    status_code = 400


class InvalidRequestError(PipelineError):
    status_code = 400
