"""
Backend protocol.

Services never talk to SQLite or HTTP directly; they call this small
table-oriented interface, shaped after the hosted backend's query builder.
Two implementations exist: ``SQLiteBackend`` for local/offline use and
``RestBackend`` for the hosted Postgres (PostgREST) API.
"""

from typing import Any, Iterable, Protocol, Sequence, runtime_checkable

# Column -> value. A list/tuple/set value means "column is one of".
Filters = dict[str, Any]

# (column, descending) pairs, applied in order.
Ordering = Sequence[tuple[str, bool]]

TABLES = (
    "bikes",
    "rides",
    "fuel_logs",
    "maintenance_logs",
    "maintenance_schedules",
    "service_history",
    "notifications",
)

# Tables whose rows carry ``user_id`` directly. The rest are scoped
# through their ``bike_id``.
USER_SCOPED_TABLES = ("bikes", "rides", "maintenance_logs", "notifications")


@runtime_checkable
class Backend(Protocol):
    """Protocol for Apex data backends."""

    def get_user_id(self) -> str | None:
        """Return the signed-in rider's id, or None when signed out."""
        ...

    def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: Ordering | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Fetch rows matching all filters."""
        ...

    def insert(self, table: str, rows: dict[str, Any] | Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert one or more rows and return them as stored."""
        ...

    def update(self, table: str, values: dict[str, Any], filters: Filters) -> list[dict[str, Any]]:
        """Update matching rows and return them as stored."""
        ...

    def delete(self, table: str, filters: Filters) -> list[dict[str, Any]]:
        """Delete matching rows and return the deleted rows."""
        ...

    def rpc(self, name: str, params: dict[str, Any] | None = None) -> Any:
        """Call a remote procedure."""
        ...

    def close(self) -> None:
        """Release connections."""
        ...


def check_table(table: str) -> str:
    """Reject unknown table names before they reach a query string."""
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")
    return table
