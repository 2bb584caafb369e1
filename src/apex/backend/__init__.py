"""Data backends: local SQLite and the hosted PostgREST API."""

import logging
import os

from ..core.config import Config
from .base import TABLES, Backend, Filters, Ordering
from .rest_backend import RestBackend
from .sqlite_backend import SQLiteBackend

logger = logging.getLogger(__name__)

__all__ = [
    "TABLES",
    "Backend",
    "Filters",
    "Ordering",
    "RestBackend",
    "SQLiteBackend",
    "get_backend",
]


def get_backend(config: Config) -> Backend:
    """
    Build the backend selected by ``backend.kind``.

    Args:
        config: Application configuration

    Returns:
        A signed-in backend for "sqlite" (local rider) or "rest" (when
        credentials are configured; otherwise signed out)
    """
    kind = config.get("backend.kind", "sqlite")

    if kind == "sqlite":
        path = config.get("backend.sqlite_path") or config.data_dir / "apex.db"
        backend = SQLiteBackend(path, user_id=config.get("backend.user_id", "local-rider"))
        logger.info(f"Using SQLite backend at {path}")
        return backend

    if kind == "rest":
        anon_key = os.getenv(config.get("backend.anon_key_env", "APEX_SUPABASE_ANON_KEY"), "")
        backend = RestBackend(
            config.get("backend.rest_url", ""),
            anon_key,
            timeout=config.get("backend.timeout", 10),
        )
        email = config.get("backend.email")
        password = os.getenv(config.get("backend.password_env", "APEX_SUPABASE_PASSWORD"), "")
        if email and password:
            backend.sign_in(email, password)
        else:
            logger.warning("REST backend has no credentials configured; signed out")
        logger.info(f"Using REST backend at {backend.url}")
        return backend

    raise ValueError(f"Unknown backend kind: {kind}")
