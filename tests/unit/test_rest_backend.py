"""
Unit tests for the PostgREST backend, against a recorded fake session.
"""

import json

import pytest
import requests

from apex.backend import RestBackend
from apex.core.errors import BackendError, NotAuthenticatedError

URL = "https://example.supabase.co"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        if text is not None:
            self.text = text
        else:
            self.text = "" if payload is None else json.dumps(payload)
        self.content = self.text.encode()

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """Replays queued responses and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append(
            {"method": method, "url": url, "params": params, "json": json, "headers": headers, "timeout": timeout}
        )
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


SIGN_IN = FakeResponse(payload={"access_token": "jwt-token", "user": {"id": "rider-1"}})


def signed_in(*responses):
    session = FakeSession(SIGN_IN, *responses)
    backend = RestBackend(URL + "/", "anon-key", timeout=3, session=session)
    backend.sign_in("rider@example.com", "secret")
    return backend, session


class TestSignIn:
    def test_password_grant(self):
        backend, session = signed_in()
        call = session.calls[0]
        assert call["method"] == "POST"
        assert call["url"] == f"{URL}/auth/v1/token"
        assert call["params"] == {"grant_type": "password"}
        assert call["json"] == {"email": "rider@example.com", "password": "secret"}
        assert call["headers"]["Authorization"] == "Bearer anon-key"
        assert backend.get_user_id() == "rider-1"

    def test_no_session_in_reply(self):
        backend = RestBackend(URL, "anon-key", session=FakeSession(FakeResponse(payload={})))
        with pytest.raises(NotAuthenticatedError):
            backend.sign_in("rider@example.com", "secret")

    def test_sign_out_clears_session(self):
        backend, session = signed_in(FakeResponse(204))
        backend.sign_out()
        assert session.calls[-1]["url"] == f"{URL}/auth/v1/logout"
        assert backend.get_user_id() is None

    def test_url_required(self):
        with pytest.raises(ValueError):
            RestBackend("", "anon-key")


class TestRequests:
    """Tests for query building and response handling."""

    def test_select_query(self):
        backend, session = signed_in(FakeResponse(payload=[{"id": "b1"}]))
        rows = backend.select(
            "bikes",
            {"user_id": "rider-1", "year": None, "make": ["KTM", "BMW"], "is_active": True},
            order=[("created_at", True), ("make", False)],
            limit=10,
            offset=20,
        )
        assert rows == [{"id": "b1"}]
        call = session.calls[-1]
        assert call["url"] == f"{URL}/rest/v1/bikes"
        assert call["params"] == [
            ("select", "*"),
            ("user_id", "eq.rider-1"),
            ("year", "is.null"),
            ("make", 'in.("KTM","BMW")'),
            ("is_active", "eq.true"),
            ("order", "created_at.desc,make.asc"),
            ("limit", "10"),
            ("offset", "20"),
        ]
        assert call["headers"]["Authorization"] == "Bearer jwt-token"
        assert call["headers"]["apikey"] == "anon-key"
        assert call["timeout"] == 3

    def test_in_list_values_quoted_and_escaped(self):
        backend, session = signed_in(FakeResponse(payload=[]))
        backend.select("bikes", {"model": ["Duke, 390", 'The "Beast"', "C:\\bikes", "(R)"]})
        assert session.calls[-1]["params"][-1] == (
            "model",
            'in.("Duke, 390","The \\"Beast\\"","C:\\\\bikes","(R)")',
        )

    def test_insert_asks_for_representation(self):
        backend, session = signed_in(FakeResponse(201, payload=[{"id": "r1"}]))
        assert backend.insert("rides", {"bike_id": "b1"}) == [{"id": "r1"}]
        call = session.calls[-1]
        assert call["json"] == [{"bike_id": "b1"}]
        assert call["headers"]["Prefer"] == "return=representation"

    def test_update(self):
        backend, session = signed_in(FakeResponse(payload=[{"id": "b1", "current_odo": 10}]))
        backend.update("bikes", {"current_odo": 10}, {"id": "b1"})
        call = session.calls[-1]
        assert call["method"] == "PATCH"
        assert call["params"] == [("id", "eq.b1")]

    def test_delete_requires_filters(self):
        backend, _ = signed_in()
        with pytest.raises(ValueError):
            backend.delete("bikes", {})

    def test_rpc(self):
        backend, session = signed_in(FakeResponse(payload=[]))
        assert backend.rpc("get_rides_with_geojson", {"p_user_id": "rider-1"}) == []
        assert session.calls[-1]["url"] == f"{URL}/rest/v1/rpc/get_rides_with_geojson"

    def test_empty_body(self):
        backend, _ = signed_in(FakeResponse(204))
        assert backend.delete("bikes", {"id": "b1"}) == []

    def test_signed_out_select(self):
        backend = RestBackend(URL, "anon-key", session=FakeSession())
        with pytest.raises(NotAuthenticatedError):
            backend.select("bikes")

    def test_close(self):
        backend, session = signed_in()
        backend.close()
        assert session.closed


class TestErrors:
    def test_error_payload(self):
        backend, _ = signed_in(
            FakeResponse(409, payload={"message": "violates foreign key constraint", "code": "23503"})
        )
        with pytest.raises(BackendError) as excinfo:
            backend.delete("bikes", {"id": "b1"})
        assert excinfo.value.code == "23503"
        assert excinfo.value.status == 409

    def test_plain_text_error(self):
        backend, _ = signed_in(FakeResponse(502, text="Bad Gateway"))
        with pytest.raises(BackendError, match="Bad Gateway"):
            backend.select("bikes")

    def test_unauthorized(self):
        backend, _ = signed_in(FakeResponse(401, payload={"message": "JWT expired"}))
        with pytest.raises(NotAuthenticatedError):
            backend.select("bikes")

    @pytest.mark.parametrize(
        "exc, message",
        [
            (requests.Timeout("slow"), "Request timed out"),
            (requests.ConnectionError("down"), "Network error"),
        ],
    )
    def test_transport_failures(self, exc, message):
        backend, _ = signed_in(exc)
        with pytest.raises(BackendError, match=message):
            backend.select("bikes")
