"""
Unit tests for error types and friendly messages.
"""

import pytest

from apex.core.errors import (
    BackendError,
    NotAuthenticatedError,
    friendly_error_message,
    is_function_missing,
)


class TestBackendError:
    def test_from_payload(self):
        error = BackendError.from_payload(
            {"message": "insert failed", "code": "23503", "details": "Key is missing", "hint": "check bike"},
            status=409,
        )
        assert error.message == "insert failed"
        assert error.code == "23503"
        assert error.status == 409
        assert error.full_message() == "insert failed: Key is missing (check bike)"

    @pytest.mark.parametrize(
        "payload, message",
        [
            ({"msg": "bad jwt"}, "bad jwt"),
            ({"error_description": "Invalid login credentials"}, "Invalid login credentials"),
            ({}, "Backend request failed"),
            ("gateway down", "gateway down"),
        ],
    )
    def test_message_fallbacks(self, payload, message):
        assert BackendError.from_payload(payload).message == message


class TestFriendlyMessages:
    @pytest.mark.parametrize(
        "raw, friendly",
        [
            ("permission denied for table bikes", "Permission denied. Please check your account settings."),
            ("Failed to fetch", "Network error. Please check your connection and try again."),
            ("Request timed out", "Request timed out. Please try again."),
            ("JWT expired, auth required", "Session expired. Please sign in again."),
            (
                'insert violates foreign key constraint "rides_bike_id_fkey"',
                "Invalid data. Please check your information.",
            ),
        ],
    )
    def test_patterns(self, raw, friendly):
        assert friendly_error_message(BackendError(raw)) == friendly

    def test_unmatched_passes_through(self):
        assert friendly_error_message(ValueError("Bike is parked")) == "Bike is parked"

    def test_empty_uses_default(self):
        assert friendly_error_message(ValueError("")) == "Something went wrong. Please try again."

    def test_not_authenticated(self):
        assert friendly_error_message(NotAuthenticatedError()) == "Session expired. Please sign in again."


class TestFunctionMissing:
    def test_by_code(self):
        assert is_function_missing(BackendError("x", code="PGRST202"))

    def test_by_message(self):
        assert is_function_missing(RuntimeError("function get_rides_with_geojson() does not exist"))

    def test_other_errors(self):
        assert not is_function_missing(BackendError("permission denied", code="42501"))
