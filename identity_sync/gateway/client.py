"""
Backend Gateway
===============

HTTP client for the two backend endpoints that accept an identity token.

Endpoints:
----------
- GET  /profile                          : verify the session, returns the backend user
- POST /api/v1/auth/users/oauth-login    : verify and provision/link an account after
                                           an OAuth-provider sign-in, returns opaque JSON

Both calls are single-attempt. Non-2xx responses raise ``httpx.HTTPStatusError``
and transport failures raise ``httpx.TransportError``; classifying them is left
to the caller.
"""

import base64
import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import httpx

from ..config import Settings, get_settings
from ..models import BackendUser, UserInfoHint

logger = logging.getLogger(__name__)

PROFILE_PATH = "/profile"
OAUTH_LOGIN_PATH = "/api/v1/auth/users/oauth-login"

USER_INFO_HEADER = "X-User-Info"
USER_INFO_ENCODING_HEADER = "X-User-Info-Encoded"
USER_INFO_ENCODING = "base64"


# ============================================================================
# Interface
# ============================================================================

@runtime_checkable
class BackendGateway(Protocol):
    """Backend operations that take an identity token."""

    async def verify_session(self, token: str, user_info: UserInfoHint) -> BackendUser:
        ...

    async def oauth_login(self, token: str, user_info: UserInfoHint) -> Dict[str, Any]:
        ...


# ============================================================================
# Header Encoding
# ============================================================================

def encode_user_info_header(user_info: UserInfoHint) -> str:
    """
    Encode the user-info hint for the X-User-Info header.

    The compact JSON form is base64-encoded from UTF-8 so display names outside
    ASCII survive header transport.
    """
    payload = user_info.model_dump_json(by_alias=True, exclude_none=True)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def build_profile_headers(token: str, user_info: UserInfoHint) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        USER_INFO_HEADER: encode_user_info_header(user_info),
        USER_INFO_ENCODING_HEADER: USER_INFO_ENCODING,
    }


# ============================================================================
# HTTP Implementation
# ============================================================================

class HttpBackendGateway:
    """
    BackendGateway over a shared ``httpx.AsyncClient``.

    The client must be created with ``base_url`` pointing at the backend; see
    ``create_backend_client``.
    """

    def __init__(self, client: httpx.AsyncClient, settings: Optional[Settings] = None):
        self._client = client
        self._settings = settings or get_settings()

    @property
    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self._settings.BACKEND_TIMEOUT_SECONDS,
            connect=self._settings.BACKEND_CONNECT_TIMEOUT_SECONDS,
        )

    async def verify_session(self, token: str, user_info: UserInfoHint) -> BackendUser:
        """
        Verify the identity token with the backend profile endpoint.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses
            httpx.TransportError: When the backend cannot be reached
        """
        logger.info("Sending session verification request to backend")

        response = await self._client.get(
            PROFILE_PATH,
            headers=build_profile_headers(token, user_info),
            timeout=self._timeout,
        )
        response.raise_for_status()

        user = BackendUser.model_validate(response.json())
        logger.info("Backend verification succeeded", extra={"backend_user_id": user.id})
        return user

    async def oauth_login(self, token: str, user_info: UserInfoHint) -> Dict[str, Any]:
        """
        Complete an OAuth-provider sign-in with the backend.

        Returns:
            Backend JSON payload, unchanged

        Raises:
            httpx.HTTPStatusError: On non-2xx responses
            httpx.TransportError: When the backend cannot be reached
        """
        logger.info("Calling backend OAuth login endpoint")

        response = await self._client.post(
            OAUTH_LOGIN_PATH,
            json={"auth_token": token, "user_info": user_info.to_wire()},
            timeout=self._timeout,
        )
        response.raise_for_status()

        payload = response.json()
        logger.info("Backend OAuth login succeeded")
        return payload


def create_backend_client(settings: Optional[Settings] = None) -> httpx.AsyncClient:
    """Create the shared backend HTTP client."""
    settings = settings or get_settings()
    return httpx.AsyncClient(
        base_url=settings.backend_service_url_str,
        timeout=httpx.Timeout(
            settings.BACKEND_TIMEOUT_SECONDS,
            connect=settings.BACKEND_CONNECT_TIMEOUT_SECONDS,
        ),
        headers={"Accept": "application/json"},
    )
