"""
Redirect-completion routing.

Both the same-origin SSO callback and the OAuth-provider callback finish the
same way: wait for the identity provider to load, then go home, flagging a
failed login when no session came out of the redirect.

    provider_ready  signed_in  ->  action
    False           any            stay, render "completing sign-in"
    True            True           navigate to home
    True            False          navigate to home?error=login_failed
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

LOGIN_FAILED = "login_failed"


@dataclass(frozen=True)
class NavigationDecision:
    """Outcome of one evaluation: a destination, or None to stay put."""

    destination: Optional[str] = None

    @property
    def navigates(self) -> bool:
        return self.destination is not None


STAY = NavigationDecision()


def evaluate(provider_ready: bool, signed_in: bool, home_route: str = "/") -> NavigationDecision:
    """Apply the callback decision table. Pure."""
    if not provider_ready:
        return STAY
    if signed_in:
        return NavigationDecision(home_route)
    return NavigationDecision(f"{home_route}?{urlencode({'error': LOGIN_FAILED})}")


class CallbackRouter:
    """
    Re-evaluates the decision table whenever the provider signals change.

    Navigating to the destination it is already at is a no-op, so repeated
    evaluations with the same inputs navigate at most once.
    """

    def __init__(self, home_route: str = "/"):
        self.home_route = home_route
        self.location: Optional[str] = None

    def on_readiness_change(self, provider_ready: bool, signed_in: bool) -> NavigationDecision:
        """
        Evaluate the table and return the navigation to perform.

        Returns STAY when nothing should happen, including when the router is
        already at the computed destination.
        """
        decision = evaluate(provider_ready, signed_in, self.home_route)
        if not decision.navigates:
            return STAY

        if decision.destination == self.location:
            return STAY

        logger.info("Sign-in callback completed", extra={"destination": decision.destination})
        self.location = decision.destination
        return decision
