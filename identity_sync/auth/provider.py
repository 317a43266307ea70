"""
Identity Provider Client
========================

Interface to the external identity provider (IdP) consumed by the session
controller, the callback router and the sign-in actions, plus the adapter used
by the service: it reads the IdP session cookie of the incoming request.

The identity token is treated as opaque. Claims are read without signature
verification only to build the local identity snapshot and the sign-in
signals; verifying the token is the backend's job.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, runtime_checkable
from urllib.parse import urlencode

import httpx
import jwt
from fastapi import Request

from ..config import Settings, get_settings
from ..errors import IdentityProviderError, IdentityProviderNotConfigured
from ..models import LocalIdentity

logger = logging.getLogger(__name__)

HANDSHAKE_QUERY_PARAM = "__clerk_handshake"

SIGN_IN_COMPLETE = "complete"
SIGN_IN_NEEDS_FIRST_FACTOR = "needs_first_factor"


# =============================================================================
# Exceptions
# =============================================================================

class SignInRejected(IdentityProviderError):
    """Raised when the IdP answers a sign-in request with an error payload"""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


# =============================================================================
# Interface
# =============================================================================

@dataclass(frozen=True)
class SignInAttempt:
    """Result of a credential sign-in: the IdP status plus its raw payload."""

    status: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class IdentityProviderClient(Protocol):
    """Surface of the identity provider consumed by this package."""

    @property
    def is_loaded(self) -> bool:
        """True once the provider has finished initialising."""
        ...

    @property
    def is_signed_in(self) -> bool:
        """True when a user session is active."""
        ...

    async def get_token(self) -> Optional[str]:
        """Issue a fresh identity token, or None when no session is active."""
        ...

    def current_user(self) -> Optional[LocalIdentity]:
        """Snapshot of the signed-in user, or None."""
        ...

    async def sign_in_with_credentials(self, identifier: str, password: str) -> SignInAttempt:
        """Start a password sign-in."""
        ...

    def sign_in_with_redirect(
        self,
        strategy: str,
        redirect_url: str,
        redirect_url_complete: str,
    ) -> str:
        """Return the URL the browser must visit to sign in with ``strategy``."""
        ...


# =============================================================================
# Session Cookie Adapter
# =============================================================================

class SessionCookieIdentityProvider:
    """
    Identity provider client backed by the IdP session cookie.

    The IdP keeps its short-lived session token in a same-origin cookie, so the
    token of the current request is the identity token. While the IdP handshake
    redirect is still in flight the provider reports itself as not loaded.
    """

    def __init__(
        self,
        token: Optional[str],
        *,
        handshake_pending: bool = False,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._token = token or None
        self._handshake_pending = handshake_pending
        self._settings = settings or get_settings()
        self._http_client = http_client
        self._claims = _read_claims(self._token)

    @classmethod
    def from_request(
        cls,
        request: Request,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "SessionCookieIdentityProvider":
        settings = settings or get_settings()
        return cls(
            request.cookies.get(settings.IDP_SESSION_COOKIE),
            handshake_pending=HANDSHAKE_QUERY_PARAM in request.query_params,
            settings=settings,
            http_client=http_client,
        )

    @property
    def is_loaded(self) -> bool:
        return not self._handshake_pending

    @property
    def is_signed_in(self) -> bool:
        if not self.is_loaded or self._claims is None:
            return False
        exp = self._claims.get("exp")
        if exp is None:
            return True
        try:
            return float(exp) > time.time()
        except (TypeError, ValueError):
            logger.warning("Session token carries an unreadable exp claim")
            return False

    async def get_token(self) -> Optional[str]:
        if not self.is_signed_in:
            return None
        return self._token

    def current_user(self) -> Optional[LocalIdentity]:
        if not self.is_signed_in:
            return None
        claims = self._claims
        return LocalIdentity(
            id=_text_claim(claims, "sub"),
            primary_email=_text_claim(claims, "email", "primary_email"),
            full_name=_text_claim(claims, "name", "full_name"),
            username=_text_claim(claims, "username"),
        )

    async def sign_in_with_credentials(self, identifier: str, password: str) -> SignInAttempt:
        """
        Create a password sign-in on the IdP frontend API.

        Raises:
            IdentityProviderNotConfigured: If IDP_FRONTEND_API_URL is unset
            SignInRejected: If the IdP answers with an error payload
            httpx.HTTPError: On transport failures
        """
        base_url = self._settings.idp_frontend_api_url_str
        if not base_url:
            raise IdentityProviderNotConfigured("IDP_FRONTEND_API_URL is not configured")

        form = {"identifier": identifier, "password": password, "strategy": "password"}
        url = f"{base_url}/v1/client/sign_ins"

        if self._http_client is not None:
            response = await self._http_client.post(url, data=form)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(url, data=form, timeout=10.0)

        payload = _json_or_empty(response)

        if response.status_code >= 400:
            errors = payload.get("errors") if isinstance(payload, dict) else None
            logger.warning(
                "Identity provider rejected sign-in",
                extra={"status_code": response.status_code},
            )
            raise SignInRejected(f"Sign-in rejected ({response.status_code})", errors=errors)

        sign_in = payload.get("response", payload) if isinstance(payload, dict) else {}
        return SignInAttempt(status=sign_in.get("status"), raw=payload)

    def sign_in_with_redirect(
        self,
        strategy: str,
        redirect_url: str,
        redirect_url_complete: str,
    ) -> str:
        """
        Build the hosted sign-in URL for an OAuth strategy.

        Raises:
            IdentityProviderNotConfigured: If IDP_SIGN_IN_URL is unset
        """
        if self._settings.IDP_SIGN_IN_URL is None:
            raise IdentityProviderNotConfigured("IDP_SIGN_IN_URL is not configured")

        params = {
            "strategy": strategy,
            "redirect_url": redirect_url,
            "redirect_url_complete": redirect_url_complete,
        }
        return f"{self._settings.IDP_SIGN_IN_URL}?{urlencode(params)}"


def _read_claims(token: Optional[str]) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    try:
        return jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError as e:
        logger.warning(f"Unreadable identity provider session token: {e}")
        return None


def _text_claim(claims: Dict[str, Any], *keys: str) -> Optional[str]:
    # Unverified claims may carry any JSON type; non-strings are ignored
    for key in keys:
        value = claims.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _json_or_empty(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}
