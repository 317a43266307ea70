"""
Unit Tests for the Backend Gateway
==================================

Tests for identity_sync/gateway/client.py

Test Coverage:
--------------
1. Profile verification request shape (bearer token, encoded user-info header)
2. OAuth login request shape (JSON body)
   and profile payloads carrying email-address objects
3. Non-2xx responses raise httpx.HTTPStatusError
4. Independent calls return structurally identical results

Run tests:
----------
    pytest identity_sync/tests/test_gateway.py -v
"""

import base64
import json

import httpx
import pytest

from identity_sync.gateway.client import (
    HttpBackendGateway,
    create_backend_client,
    encode_user_info_header,
)
from identity_sync.models import BackendUser, UserInfoHint


PROFILE_BODY = {
    "id": "user_2abc",
    "username": "ada",
    "email": "ada@example.com",
    "firstName": "Ada",
    "lastName": "Lovelace",
    "imageUrl": "https://img.example.com/ada.png",
    "createdAt": "2024-01-01T00:00:00Z",
    "updatedAt": "2024-06-01T12:30:00Z",
    "timestamp": "1717245000",
}


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def captured():
    return []


@pytest.fixture
def responses():
    """Status and body returned by the mock backend, keyed by path"""
    return {
        "/profile": (200, PROFILE_BODY),
        "/api/v1/auth/users/oauth-login": (200, {"user_id": 7, "linked": True}),
    }


@pytest.fixture
def backend_client(captured, responses):
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        status_code, body = responses[request.url.path]
        return httpx.Response(status_code, json=body)

    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="http://backend:8080",
    )


@pytest.fixture
def backend_gateway(backend_client, settings):
    return HttpBackendGateway(backend_client, settings)


@pytest.fixture
def user_info():
    return UserInfoHint(
        user_id="user_2abc",
        email="zhang@example.com",
        name="张三",
        username="zhangsan",
    )


def decode_header(value: str) -> dict:
    return json.loads(base64.b64decode(value).decode("utf-8"))


# ============================================================================
# Header Encoding
# ============================================================================

def test_user_info_header_round_trips_non_ascii(user_info):
    encoded = encode_user_info_header(user_info)

    encoded.encode("ascii")
    assert decode_header(encoded) == {
        "clerkUserId": "user_2abc",
        "email": "zhang@example.com",
        "name": "张三",
        "username": "zhangsan",
    }


def test_user_info_header_omits_absent_ids():
    assert decode_header(encode_user_info_header(UserInfoHint())) == {"name": "", "username": ""}


# ============================================================================
# verify_session
# ============================================================================

@pytest.mark.asyncio
async def test_verify_session_request(backend_gateway, captured, user_info):
    user = await backend_gateway.verify_session("tok-1", user_info)

    request = captured[0]
    assert request.method == "GET"
    assert request.url.path == "/profile"
    assert request.headers["Authorization"] == "Bearer tok-1"
    assert request.headers["X-User-Info-Encoded"] == "base64"
    assert decode_header(request.headers["X-User-Info"])["name"] == "张三"

    assert isinstance(user, BackendUser)
    assert user.id == "user_2abc"
    assert user.emails == "ada@example.com"
    assert user.email_list == ["ada@example.com"]
    assert user.first_name == "Ada"
    assert user.model_extra["timestamp"] == "1717245000"


@pytest.mark.asyncio
async def test_verify_session_accepts_email_address_objects(backend_gateway, responses, user_info):
    responses["/profile"] = (200, {
        "id": "user_2abc",
        "username": "ada",
        "firstName": "Ada",
        "lastName": "Lovelace",
        "primaryEmail": "ada@example.com",
        "emails": [
            {"id": "idn_1", "object": "email_address", "email_address": "ada@example.com"},
            {"id": "idn_2", "object": "email_address", "email_address": "ada@work.example.com"},
        ],
        "createdAt": 1704067200000,
        "updatedAt": 1717245000000,
        "banned": False,
        "publicMetadata": {},
    })

    user = await backend_gateway.verify_session("tok-1", user_info)

    assert user.email_list == ["ada@example.com", "ada@work.example.com"]
    assert user.created_at.year == 2024
    assert user.model_extra["primaryEmail"] == "ada@example.com"


@pytest.mark.asyncio
async def test_verify_session_is_idempotent(backend_gateway, captured, user_info):
    first = await backend_gateway.verify_session("tok-1", user_info)
    second = await backend_gateway.verify_session("tok-1", user_info)

    assert first == second
    assert len(captured) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 403, 500])
async def test_verify_session_raises_on_error_status(backend_gateway, responses, user_info, status_code):
    responses["/profile"] = (status_code, {"message": "rejected"})

    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        await backend_gateway.verify_session("tok-1", user_info)

    assert exc_info.value.response.status_code == status_code


@pytest.mark.asyncio
async def test_verify_session_propagates_transport_errors(settings, user_info):
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://backend:8080")
    gateway = HttpBackendGateway(client, settings)

    with pytest.raises(httpx.ConnectError):
        await gateway.verify_session("tok-1", user_info)


# ============================================================================
# oauth_login
# ============================================================================

@pytest.mark.asyncio
async def test_oauth_login_request(backend_gateway, captured, user_info):
    payload = await backend_gateway.oauth_login("tok-2", user_info)

    request = captured[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v1/auth/users/oauth-login"
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == {
        "auth_token": "tok-2",
        "user_info": {
            "clerkUserId": "user_2abc",
            "email": "zhang@example.com",
            "name": "张三",
            "username": "zhangsan",
        },
    }
    assert payload == {"user_id": 7, "linked": True}


@pytest.mark.asyncio
async def test_oauth_login_raises_on_error_status(backend_gateway, responses, user_info):
    responses["/api/v1/auth/users/oauth-login"] = (409, {"error": "conflict"})

    with pytest.raises(httpx.HTTPStatusError):
        await backend_gateway.oauth_login("tok-2", user_info)


# ============================================================================
# Client Factory
# ============================================================================

@pytest.mark.asyncio
async def test_create_backend_client_uses_configured_url(settings):
    client = create_backend_client(settings)
    try:
        assert str(client.base_url).rstrip("/") == "http://backend:8080"
        assert client.timeout.connect == settings.BACKEND_CONNECT_TIMEOUT_SECONDS
    finally:
        await client.aclose()
