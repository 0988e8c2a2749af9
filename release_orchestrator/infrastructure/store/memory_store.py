import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from release_orchestrator.domain.errors import StoreError
from release_orchestrator.infrastructure.store.base import Query

logger = logging.getLogger(__name__)


def _coerce(value: Any) -> Any:
    """Make ISO timestamps comparable as datetimes; leave everything else alone."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and len(value) >= 10 and value[4:5] == "-":
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


def _matches(row: Dict[str, Any], column: str, op: str, expected: Any) -> bool:
    actual = row.get(column)
    if op == "in":
        return actual in expected
    if op == "eq":
        return _coerce(actual) == _coerce(expected)
    if op == "neq":
        return _coerce(actual) != _coerce(expected)
    if actual is None:
        return False
    left, right = _coerce(actual), _coerce(expected)
    try:
        if op == "gt":
            return left > right
        if op == "gte":
            return left >= right
        if op == "lt":
            return left < right
        if op == "lte":
            return left <= right
    except TypeError:
        return False
    raise StoreError(f"Unsupported filter operator: {op}")


class InMemoryRecordStore:
    """Process-local record store with read-your-writes semantics.

    Used for development when no record store URL is configured, and by the
    test-suite. Rows are copied on the way in and out so callers can never
    mutate stored state by accident.
    """

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._tables: Dict[str, List[Dict[str, Any]]] = copy.deepcopy(tables) if tables else {}
        self._rpc: Dict[str, Callable[..., Any]] = {
            "validate_schema_integrity": lambda **_: True,
        }

    def register_rpc(self, function: str, handler: Callable[..., Any]) -> None:
        self._rpc[function] = handler

    def rows(self, table: str) -> List[Dict[str, Any]]:
        """Snapshot of every row in a table."""
        return copy.deepcopy(self._tables.get(table, []))

    def _filter(self, query: Query) -> List[Dict[str, Any]]:
        rows = [
            row for row in self._tables.get(query.table, [])
            if all(_matches(row, column, op, value) for column, op, value in query.filters)
        ]
        if query.order_by:
            present = [row for row in rows if row.get(query.order_by) is not None]
            missing = [row for row in rows if row.get(query.order_by) is None]
            present.sort(key=lambda row: _coerce(row[query.order_by]), reverse=query.descending)
            rows = present + missing
        if query.limit is not None:
            rows = rows[: query.limit]
        return rows

    async def select(self, query: Query) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._filter(query))

    async def count(self, query: Query) -> int:
        counted = Query(table=query.table, filters=list(query.filters))
        return len(self._filter(counted))

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid.uuid4()))
        self._tables.setdefault(table, []).append(stored)
        return copy.deepcopy(stored)

    async def update(self, table: str, match: Dict[str, Any], values: Dict[str, Any]) -> List[Dict[str, Any]]:
        updated = []
        for row in self._tables.get(table, []):
            if all(_coerce(row.get(column)) == _coerce(value) for column, value in match.items()):
                row.update(copy.deepcopy(values))
                updated.append(copy.deepcopy(row))
        return updated

    async def rpc(self, function: str, params: Optional[Dict[str, Any]] = None) -> Any:
        handler = self._rpc.get(function)
        if handler is None:
            raise StoreError(f"Unknown stored procedure: {function}")
        return handler(**(params or {}))
