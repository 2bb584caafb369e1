"""
Hosted backend over the PostgREST HTTP API.

Talks to ``{url}/rest/v1`` for tables and RPCs and to ``{url}/auth/v1`` for
password sign-in. Row scoping is enforced server-side by row-level security,
so this client sends the signed-in rider's access token and nothing more.
"""

import logging
from typing import Any, Iterable

import requests

from ..core.errors import BackendError, NotAuthenticatedError
from .base import Filters, Ordering, check_table

logger = logging.getLogger(__name__)


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote(text: str) -> str:
    # Double quotes and backslashes inside an in.() list are backslash-escaped.
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _format_filter(value: Any) -> str:
    """Render one filter value as a PostgREST operator expression."""
    if value is None:
        return "is.null"
    if isinstance(value, (list, tuple, set)):
        quoted = ",".join(_quote(_format_scalar(v)) for v in value)
        return f"in.({quoted})"
    return f"eq.{_format_scalar(value)}"


class RestBackend:
    """
    Backend implementation on the hosted PostgREST API.

    Usage:
        backend = RestBackend("https://xyz.supabase.co", anon_key)
        backend.sign_in("rider@example.com", "secret")
        bikes = backend.select("bikes", order=[("created_at", True)])
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        if not url:
            raise ValueError("Backend URL is required")
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self._access_token: str | None = None
        self._user_id: str | None = None

    # Session

    def get_user_id(self) -> str | None:
        return self._user_id

    def sign_in(self, email: str, password: str) -> str:
        """
        Sign in with email and password.

        Returns:
            The rider's user id
        """
        response = self._send(
            "POST",
            f"{self.url}/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            authenticated=False,
        )
        payload = response.json()
        self._access_token = payload.get("access_token")
        self._user_id = (payload.get("user") or {}).get("id")
        if not self._access_token or not self._user_id:
            raise NotAuthenticatedError("Sign-in returned no session")
        logger.info(f"Signed in as {self._user_id}")
        return self._user_id

    def sign_out(self) -> None:
        if self._access_token:
            try:
                self._send("POST", f"{self.url}/auth/v1/logout")
            except BackendError as e:
                logger.warning(f"Sign-out failed: {e.full_message()}")
        self._access_token = None
        self._user_id = None

    # HTTP

    def _headers(self, authenticated: bool = True) -> dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        token = self._access_token if authenticated and self._access_token else self.anon_key
        headers["Authorization"] = f"Bearer {token}"
        return headers

    def _send(
        self,
        method: str,
        url: str,
        params: Any = None,
        json: Any = None,
        prefer: str | None = None,
        authenticated: bool = True,
    ) -> requests.Response:
        headers = self._headers(authenticated)
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = self.session.request(
                method, url, params=params, json=json, headers=headers, timeout=self.timeout
            )
        except requests.Timeout as e:
            raise BackendError("Request timed out") from e
        except requests.RequestException as e:
            raise BackendError(f"Network error: {e}") from e

        if response.status_code == 401:
            raise NotAuthenticatedError()
        if not response.ok:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            error = BackendError.from_payload(payload, status=response.status_code)
            logger.error(f"{method} {url} failed ({response.status_code}): {error.full_message()}")
            raise error
        return response

    def _require_user(self) -> str:
        if not self._user_id:
            raise NotAuthenticatedError()
        return self._user_id

    @staticmethod
    def _json(response: requests.Response) -> Any:
        if not response.content:
            return None
        return response.json()

    # Backend protocol

    def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: Ordering | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        check_table(table)
        self._require_user()
        params: list[tuple[str, str]] = [("select", "*")]
        params.extend((column, _format_filter(value)) for column, value in (filters or {}).items())
        if order:
            params.append(
                ("order", ",".join(f"{column}.{'desc' if desc else 'asc'}" for column, desc in order))
            )
        if limit is not None:
            params.append(("limit", str(int(limit))))
            params.append(("offset", str(int(offset))))

        response = self._send("GET", f"{self.url}/rest/v1/{table}", params=params)
        return self._json(response) or []

    def insert(self, table: str, rows: dict[str, Any] | Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        check_table(table)
        self._require_user()
        batch = [rows] if isinstance(rows, dict) else list(rows)
        response = self._send(
            "POST", f"{self.url}/rest/v1/{table}", json=batch, prefer="return=representation"
        )
        return self._json(response) or []

    def update(self, table: str, values: dict[str, Any], filters: Filters) -> list[dict[str, Any]]:
        check_table(table)
        self._require_user()
        params = [(column, _format_filter(value)) for column, value in filters.items()]
        response = self._send(
            "PATCH",
            f"{self.url}/rest/v1/{table}",
            params=params,
            json=values,
            prefer="return=representation",
        )
        return self._json(response) or []

    def delete(self, table: str, filters: Filters) -> list[dict[str, Any]]:
        check_table(table)
        self._require_user()
        if not filters:
            raise ValueError("Refusing to delete without filters")
        params = [(column, _format_filter(value)) for column, value in filters.items()]
        response = self._send(
            "DELETE", f"{self.url}/rest/v1/{table}", params=params, prefer="return=representation"
        )
        return self._json(response) or []

    def rpc(self, name: str, params: dict[str, Any] | None = None) -> Any:
        response = self._send("POST", f"{self.url}/rest/v1/rpc/{name}", json=params or {})
        return self._json(response)

    def close(self) -> None:
        self.session.close()
