"""
Sign-in actions forwarded to the identity provider.

Covers the two ways a user starts a session: email/password, and a redirect
to an OAuth provider that lands back on the SSO callback route.
"""

import json
import logging
from typing import Dict

from ..models import SignInResponse
from .provider import (
    SIGN_IN_COMPLETE,
    SIGN_IN_NEEDS_FIRST_FACTOR,
    IdentityProviderClient,
    SignInRejected,
)

logger = logging.getLogger(__name__)

NOT_READY_MESSAGE = "Sign-in service is not ready yet, please try again later"
DEFAULT_FAILURE_MESSAGE = "Sign-in failed, please check your email and password"

# Public provider name -> IdP OAuth strategy
OAUTH_STRATEGIES: Dict[str, str] = {
    "google": "oauth_google",
    "github": "oauth_github",
}


async def sign_in_with_password(
    provider: IdentityProviderClient,
    identifier: str,
    password: str,
) -> SignInResponse:
    """
    Start a password sign-in.

    Never raises for IdP failures; the error is rendered into the response.
    """
    if not provider.is_loaded:
        return SignInResponse(error=NOT_READY_MESSAGE)

    try:
        attempt = await provider.sign_in_with_credentials(identifier, password)
    except Exception as e:
        message = sign_in_error_message(e)
        logger.warning(f"Password sign-in failed: {message}")
        return SignInResponse(error=message)

    if attempt.status == SIGN_IN_COMPLETE:
        logger.info("Password sign-in complete")
    elif attempt.status == SIGN_IN_NEEDS_FIRST_FACTOR:
        logger.info("Password sign-in needs further verification")

    return SignInResponse(status=attempt.status)


def oauth_redirect_url(
    provider: IdentityProviderClient,
    provider_name: str,
    callback_url: str,
    complete_url: str,
) -> str:
    """
    URL that starts a redirect sign-in with an OAuth provider.

    Raises:
        KeyError: For an unsupported provider name
        RuntimeError: If the identity provider has not loaded yet
    """
    strategy = OAUTH_STRATEGIES[provider_name]
    if not provider.is_loaded:
        raise RuntimeError(NOT_READY_MESSAGE)
    return provider.sign_in_with_redirect(strategy, callback_url, complete_url)


def sign_in_error_message(error: Exception) -> str:
    """Human-readable message for a failed sign-in."""
    if isinstance(error, SignInRejected) and error.errors:
        return json.dumps(error.errors, ensure_ascii=False)
    if str(error):
        return str(error)
    return DEFAULT_FAILURE_MESSAGE
