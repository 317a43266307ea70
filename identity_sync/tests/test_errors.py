"""
Unit Tests for Error Classification
===================================

Tests for identity_sync/errors.py

Test Coverage:
--------------
1. HTTP response shapes (httpx exceptions, mappings, requests-style objects)
2. Precedence of response shapes over transport codes and messages
3. Transport codes (connection refused, other codes, httpx exception chains)
4. Generic and unknown failures
5. Human-readable messages

Run tests:
----------
    pytest identity_sync/tests/test_errors.py -v
"""

import errno

import httpx
import pytest

from identity_sync.errors import (
    AuthTokenUnavailable,
    BackendError,
    BackendUnreachable,
    Forbidden,
    NetworkError,
    Unauthorized,
    UnknownError,
    classify_error,
)


# ============================================================================
# Helpers
# ============================================================================

def status_error(status_code: int, **response_kwargs) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "http://backend:8080/profile")
    response = httpx.Response(status_code, request=request, **response_kwargs)
    return httpx.HTTPStatusError(
        f"Server error '{status_code}'", request=request, response=response
    )


def refused_connect_error() -> httpx.ConnectError:
    error = httpx.ConnectError("[Errno 111] Connection refused")
    error.__cause__ = ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")
    return error


class ResponseCarryingError(Exception):
    """Exception with both a message and a requests-style response."""

    def __init__(self, message, response):
        super().__init__(message)
        self.response = response


class FakeResponse:
    def __init__(self, status, data=None):
        self.status = status
        self.data = data


# ============================================================================
# HTTP Response Shapes
# ============================================================================

def test_http_401_is_unauthorized():
    assert classify_error(status_error(401)) == Unauthorized()


@pytest.mark.parametrize(
    "failure",
    [
        {"response": {"status": 401}},
        {"response": {"status": 401, "data": {"message": "expired"}}, "code": "ECONNREFUSED"},
        {"response": {"status_code": 401}, "message": "boom", "retry": True},
        ResponseCarryingError("request failed", FakeResponse(401, {"message": "nope"})),
    ],
)
def test_http_401_wins_regardless_of_extra_fields(failure):
    assert classify_error(failure) == Unauthorized()


def test_http_403_is_forbidden():
    assert classify_error(status_error(403, text="Unauthorized to access user information")) == Forbidden()
    assert classify_error({"response": {"status": 403}}) == Forbidden()


def test_other_status_is_backend_error_with_json_body():
    kind = classify_error(status_error(500, json={"message": "database down"}))

    assert kind == BackendError(status=500, body={"message": "database down"})
    assert kind.message == "Request failed (500): database down"


def test_other_status_is_backend_error_with_text_body():
    kind = classify_error(status_error(404, text="User not found"))

    assert kind == BackendError(status=404, body="User not found")
    assert "404" in kind.message


def test_backend_error_without_body():
    kind = classify_error({"response": {"status": 502}})

    assert kind == BackendError(status=502, body=None)
    assert kind.message == "Request failed (502): unknown error"


def test_response_shape_wins_over_generic_error_shape():
    failure = ResponseCarryingError("Request failed with status code 500", FakeResponse(500, "oops"))

    assert classify_error(failure) == BackendError(status=500, body="oops")


def test_response_without_status_falls_through():
    assert classify_error({"response": {}, "code": "ECONNRESET"}) == NetworkError(code="ECONNRESET")


# ============================================================================
# Transport Codes
# ============================================================================

def test_connection_refused_code_is_backend_unreachable():
    assert classify_error({"code": "ECONNREFUSED"}) == BackendUnreachable()


def test_httpx_connect_error_chain_is_backend_unreachable():
    assert classify_error(refused_connect_error()) == BackendUnreachable()


def test_os_error_errno_is_translated():
    assert classify_error(ConnectionRefusedError(errno.ECONNREFUSED, "refused")) == BackendUnreachable()
    assert classify_error(ConnectionResetError(errno.ECONNRESET, "reset")) == NetworkError(code="ECONNRESET")


def test_other_code_is_network_error():
    kind = classify_error({"code": "ETIMEDOUT"})

    assert kind == NetworkError(code="ETIMEDOUT")
    assert kind.message == "Connection error: ETIMEDOUT"


def test_httpx_transport_error_without_errno_uses_class_name():
    assert classify_error(httpx.ReadTimeout("timed out")) == NetworkError(code="ReadTimeout")


# ============================================================================
# Generic Failures
# ============================================================================

def test_exception_with_message_is_unknown_error():
    kind = classify_error(ValueError("unexpected payload"))

    assert kind == UnknownError(detail="unexpected payload")
    assert kind.message == "Verification failed: unexpected payload"


def test_mapping_with_message_is_unknown_error():
    assert classify_error({"message": "something broke"}) == UnknownError(detail="something broke")


@pytest.mark.parametrize("failure", [None, 42, "oops", Exception(), object()])
def test_anything_else_is_unknown(failure):
    assert classify_error(failure) == UnknownError(detail="unknown")


# ============================================================================
# Messages
# ============================================================================

def test_every_kind_has_a_distinct_message():
    kinds = [
        AuthTokenUnavailable(),
        Unauthorized(),
        Forbidden(),
        BackendError(status=500, body="x"),
        BackendUnreachable(),
        NetworkError(code="EPIPE"),
        UnknownError(detail="y"),
    ]

    messages = [kind.message for kind in kinds]
    assert len(set(messages)) == len(messages)
    assert len({kind.name for kind in kinds}) == len(kinds)
