"""Generic record store contract shared by the REST and in-memory implementations."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

# Tables the orchestrator reads and writes
DEPLOYMENTS_TABLE = "deployments"
DEPLOYMENT_BACKUPS_TABLE = "deployment_backups"
ALERTS_TABLE = "admin_security_alerts"
SYSTEM_HEALTH_TABLE = "admin_system_health"
PAYMENTS_TABLE = "payments"
DEVICE_STATUS_TABLE = "device_status"
FRONTEND_ERRORS_TABLE = "frontend_errors"
FRONTEND_METRICS_TABLE = "frontend_metrics"
PERFORMANCE_METRICS_TABLE = "performance_metrics"
ANALYTICS_TABLE = "admin_analytics"
BOOKINGS_TABLE = "bookings"
PROFILES_TABLE = "profiles"

FILTER_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "in")


@dataclass
class Query:
    """Select/count request: equality and range filters, one ordering column, optional limit."""

    table: str
    filters: List[Tuple[str, str, Any]] = field(default_factory=list)
    order_by: Optional[str] = None
    descending: bool = True
    limit: Optional[int] = None

    def where(self, column: str, op: str, value: Any) -> "Query":
        if op not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {op}")
        self.filters.append((column, op, value))
        return self

    def eq(self, column: str, value: Any) -> "Query":
        return self.where(column, "eq", value)

    def gte(self, column: str, value: Any) -> "Query":
        return self.where(column, "gte", value)

    def gt(self, column: str, value: Any) -> "Query":
        return self.where(column, "gt", value)

    def lt(self, column: str, value: Any) -> "Query":
        return self.where(column, "lt", value)

    def is_in(self, column: str, values: List[Any]) -> "Query":
        return self.where(column, "in", list(values))

    def order(self, column: str, descending: bool = True) -> "Query":
        self.order_by = column
        self.descending = descending
        return self

    def take(self, limit: int) -> "Query":
        self.limit = limit
        return self


class RecordStore(Protocol):
    """Interface for the external record store."""

    async def select(self, query: Query) -> List[Dict[str, Any]]:
        """Return rows matching the query."""

    async def count(self, query: Query) -> int:
        """Return the number of rows matching the query."""

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it as stored."""

    async def update(self, table: str, match: Dict[str, Any], values: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Apply values to every row whose columns equal match; return updated rows."""

    async def rpc(self, function: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Invoke a stored procedure."""
