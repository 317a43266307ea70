"""
Session Synchronization Module
==============================

Runs the identity handshake with the backend: obtain an identity token from
the identity provider, forward it together with a user-info hint to the
backend, and expose the progress as a SessionState.

State machine:
    Idle -> AcquiringToken -> VerifyingBackend -> Synced(result)
                           \\                  \\-> Failed(error)
                            \\-> Failed(AuthTokenUnavailable)

Only the most recent attempt may change the state. Every call to
``start_session`` takes a new sequence number and any completion carrying an
older one is dropped, as is anything completing after ``dispose``.
"""

import enum
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from ..config import Settings, get_settings
from ..errors import AuthTokenUnavailable, ErrorKind, classify_error
from ..gateway.client import BackendGateway
from ..models import BackendUser, UserInfoHint
from .provider import IdentityProviderClient

logger = logging.getLogger(__name__)


class SessionMode(str, enum.Enum):
    """Which backend operation a session attempt ends with."""

    VERIFY = "verify"
    OAUTH_LOGIN = "oauth_login"


# =============================================================================
# Session States
# =============================================================================

@dataclass(frozen=True)
class Idle:
    phase = "idle"


@dataclass(frozen=True)
class AcquiringToken:
    phase = "acquiring_token"


@dataclass(frozen=True)
class VerifyingBackend:
    phase = "verifying_backend"


@dataclass(frozen=True)
class Synced:
    """Backend accepted the token. ``result`` is a BackendUser or the OAuth login payload."""

    result: Union[BackendUser, Dict[str, Any]]

    phase = "synced"


@dataclass(frozen=True)
class Failed:
    error: ErrorKind

    phase = "failed"

    @property
    def message(self) -> str:
        return self.error.message


SessionState = Union[Idle, AcquiringToken, VerifyingBackend, Synced, Failed]

StateListener = Callable[[SessionState], None]


def describe_state(state: SessionState) -> Dict[str, Any]:
    """JSON-ready rendering of a session state."""
    rendered: Dict[str, Any] = {"phase": state.phase}

    if isinstance(state, Synced):
        if isinstance(state.result, BackendUser):
            rendered["backend_user"] = state.result.model_dump(mode="json", by_alias=True)
        else:
            rendered["response"] = state.result
    elif isinstance(state, Failed):
        rendered["error"] = state.error.name
        rendered["message"] = state.message

    return rendered


# =============================================================================
# Controller
# =============================================================================

class SessionController:
    """
    Owns the SessionState of one consuming view.

    Args:
        identity_provider: Source of identity tokens and the local identity
        gateway: Backend operations
        mode: Backend operation to run after the token is obtained
        settings: Application settings (token logging switch)
    """

    def __init__(
        self,
        identity_provider: IdentityProviderClient,
        gateway: BackendGateway,
        mode: SessionMode = SessionMode.VERIFY,
        settings: Optional[Settings] = None,
    ):
        self._identity_provider = identity_provider
        self._gateway = gateway
        self._mode = mode
        self._settings = settings or get_settings()

        self._state: SessionState = Idle()
        self._sequence = itertools.count(1)
        self._current_attempt = 0
        self._disposed = False
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener called after every applied transition.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispose(self) -> None:
        """Tear down: pending completions are ignored from now on."""
        self._disposed = True
        self._listeners.clear()
        logger.debug("Session controller disposed", extra={"attempt": self._current_attempt})

    async def start_session(self) -> SessionState:
        """
        Run one synchronization attempt.

        Never raises for IdP or backend failures; they end up as a Failed
        state. Returns the controller state once this attempt has finished,
        which is the state of a newer attempt if this one was superseded.
        """
        attempt = next(self._sequence)
        self._current_attempt = attempt

        self._apply(attempt, AcquiringToken())

        try:
            token = await self._identity_provider.get_token()
        except Exception as e:
            logger.warning(
                f"Identity provider failed to issue a token: {e}",
                extra={"attempt": attempt},
            )
            token = None

        if not token:
            logger.warning("No identity token available", extra={"attempt": attempt})
            self._apply(attempt, Failed(AuthTokenUnavailable()))
            return self._state

        if not self._is_current(attempt):
            logger.debug("Attempt superseded before backend call", extra={"attempt": attempt})
            return self._state

        if self._settings.LOG_IDENTITY_TOKENS:
            logger.debug(f"Identity token for attempt {attempt}: {token}")

        self._apply(attempt, VerifyingBackend())

        try:
            user_info = UserInfoHint.from_identity(self._identity_provider.current_user())
            if self._mode is SessionMode.OAUTH_LOGIN:
                result = await self._gateway.oauth_login(token, user_info)
            else:
                result = await self._gateway.verify_session(token, user_info)
        except Exception as e:
            error = classify_error(e)
            logger.error(
                f"Backend verification failed: {error.message}",
                extra={"attempt": attempt, "error_kind": error.name, "mode": self._mode.value},
            )
            self._apply(attempt, Failed(error))
            return self._state

        self._apply(attempt, Synced(result))
        return self._state

    def _is_current(self, attempt: int) -> bool:
        return not self._disposed and attempt == self._current_attempt

    def _apply(self, attempt: int, state: SessionState) -> None:
        if not self._is_current(attempt):
            logger.debug(
                "Dropping stale session transition",
                extra={"attempt": attempt, "current_attempt": self._current_attempt, "phase": state.phase},
            )
            return

        self._state = state
        for listener in list(self._listeners):
            listener(state)
