"""
Authentication Package

This package handles the identity handshake between the identity provider
and the application backend.

Key responsibilities:
- Identity token acquisition through an injected identity provider client
- Session synchronization with the backend (verification and OAuth login)
- Redirect-completion routing for the SSO and OAuth callback routes
- Sign-in actions forwarded to the identity provider

Modules:
- provider: Identity provider interface and session-cookie adapter
- session: Session controller and session state machine
- callback: Callback route decision table
- signin: Password and redirect sign-in actions
- routes: HTTP routes rendering the above

The synchronization flow:
1. User signs in with the identity provider (password or OAuth redirect)
2. The redirect lands on the SSO callback, which sends the user home
3. The profile route obtains an identity token and forwards it to the backend
4. The backend verifies the token and returns its user record
"""

from .callback import CallbackRouter, NavigationDecision
from .provider import IdentityProviderClient, SessionCookieIdentityProvider, SignInAttempt
from .routes import build_auth_router
from .session import SessionController, SessionMode

__all__ = [
    "CallbackRouter",
    "IdentityProviderClient",
    "NavigationDecision",
    "SessionController",
    "SessionCookieIdentityProvider",
    "SessionMode",
    "SignInAttempt",
    "build_auth_router",
]
