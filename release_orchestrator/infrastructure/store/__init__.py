"""
Record store access for the release orchestrator.

The orchestrator owns the schema contract of the rows it writes; the store
itself is external and reached through the RecordStore protocol.
"""

from .base import Query, RecordStore
from .memory_store import InMemoryRecordStore
from .repositories import AlertRepository, DeploymentRepository
from .rest_store import RestRecordStore

__all__ = [
    "Query",
    "RecordStore",
    "InMemoryRecordStore",
    "RestRecordStore",
    "DeploymentRepository",
    "AlertRepository",
]
