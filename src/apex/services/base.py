"""Shared plumbing for backend-facing services."""

import logging
from typing import Any, Callable

from ..backend.base import Backend
from ..core.cache import CacheKey, QueryCache, Rows
from ..core.errors import NotAuthenticatedError, NotFoundError, PermissionDeniedError
from ..core.models import Bike
from ..core.toasts import Toaster, log_toast

logger = logging.getLogger(__name__)


class BaseService:
    """
    Base class for services.

    Holds the backend, the shared query cache and the toaster. Subclasses
    raise on failure and toast on user-visible outcomes.
    """

    def __init__(
        self,
        backend: Backend,
        cache: QueryCache | None = None,
        toast: Toaster | None = None,
    ):
        self.backend = backend
        self.cache = cache if cache is not None else QueryCache()
        self.toast = toast or log_toast

    def cached(self, key: CacheKey, load: Callable[[], Rows], refresh: bool = False) -> Rows:
        """Rows for ``key`` from the cache while fresh, otherwise from ``load``."""
        rows = None if refresh else self.cache.get_fresh(key)
        if rows is None:
            rows = load()
            self.cache.set(key, rows)
        return rows

    def require_user(self) -> str:
        user_id = self.backend.get_user_id()
        if not user_id:
            raise NotAuthenticatedError()
        return user_id

    def require_bike(self, bike_id: str) -> Bike:
        """Load a bike owned by the current rider or raise PermissionDeniedError."""
        user_id = self.require_user()
        rows = self.backend.select("bikes", {"id": bike_id, "user_id": user_id}, limit=1)
        if not rows:
            raise PermissionDeniedError("Bike not found or you do not have permission")
        return Bike.from_row(rows[0])

    def require_row(self, table: str, row_id: str, label: str) -> dict[str, Any]:
        """Load one row by id and check its bike belongs to the rider."""
        self.require_user()
        rows = self.backend.select(table, {"id": row_id}, limit=1)
        if not rows:
            raise NotFoundError(f"{label} not found")
        row = rows[0]
        if row.get("bike_id"):
            try:
                self.require_bike(row["bike_id"])
            except PermissionDeniedError as e:
                raise PermissionDeniedError(f"You do not have permission to modify this {label.lower()}") from e
        return row
