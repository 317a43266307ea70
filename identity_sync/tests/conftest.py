"""
Shared fixtures for the identity sync tests.

Provides a settings instance, a fake identity provider client and a mock
backend gateway so the session flow can be driven without network access.
"""

from typing import Optional
from unittest.mock import AsyncMock, Mock
from urllib.parse import urlencode

import pytest

from identity_sync.auth.provider import SignInAttempt
from identity_sync.config import Settings
from identity_sync.models import BackendUser, LocalIdentity


class FakeIdentityProvider:
    """In-memory identity provider client with call counting."""

    def __init__(
        self,
        token: Optional[str] = "idp-token-123",
        loaded: bool = True,
        signed_in: bool = True,
        user: Optional[LocalIdentity] = None,
        sign_in_status: str = "complete",
        sign_in_error: Optional[Exception] = None,
    ):
        self.token = token
        self.loaded = loaded
        self.signed_in = signed_in
        self.user = user
        self.sign_in_status = sign_in_status
        self.sign_in_error = sign_in_error
        self.get_token_calls = 0

    @property
    def is_loaded(self) -> bool:
        return self.loaded

    @property
    def is_signed_in(self) -> bool:
        return self.signed_in

    async def get_token(self) -> Optional[str]:
        self.get_token_calls += 1
        return self.token

    def current_user(self) -> Optional[LocalIdentity]:
        return self.user

    async def sign_in_with_credentials(self, identifier: str, password: str) -> SignInAttempt:
        if self.sign_in_error is not None:
            raise self.sign_in_error
        return SignInAttempt(status=self.sign_in_status)

    def sign_in_with_redirect(self, strategy: str, redirect_url: str, redirect_url_complete: str) -> str:
        params = {
            "strategy": strategy,
            "redirect_url": redirect_url,
            "redirect_url_complete": redirect_url_complete,
        }
        return f"https://accounts.example.com/sign-in?{urlencode(params)}"


@pytest.fixture
def settings():
    """Settings with test values"""
    return Settings(
        BACKEND_SERVICE_URL="http://backend:8080",
        IDP_FRONTEND_API_URL="https://clerk.example.com",
        IDP_SIGN_IN_URL="https://accounts.example.com/sign-in",
        LOG_LEVEL="INFO",
    )


@pytest.fixture
def local_identity():
    return LocalIdentity(
        id="user_2abc",
        primary_email="ada@example.com",
        full_name="Ada Lovelace",
        username="ada",
    )


@pytest.fixture
def identity_provider(local_identity):
    return FakeIdentityProvider(user=local_identity)


@pytest.fixture
def backend_user():
    return BackendUser.model_validate({
        "id": "user_2abc",
        "username": "ada",
        "email": ["ada@example.com"],
        "firstName": "Ada",
        "lastName": "Lovelace",
        "imageUrl": "https://img.example.com/ada.png",
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": "2024-06-01T12:30:00Z",
        "requestId": "req-1",
    })


@pytest.fixture
def gateway(backend_user):
    """Mock backend gateway returning a backend user and an OAuth payload"""
    gateway = Mock()
    gateway.verify_session = AsyncMock(return_value=backend_user)
    gateway.oauth_login = AsyncMock(return_value={"user_id": 42, "created": True})
    return gateway


@pytest.fixture
def make_identity_provider():
    """Factory for identity providers with non-default signals"""
    return FakeIdentityProvider
