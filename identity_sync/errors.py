"""
Error Classification
====================

Maps the failures raised while talking to the identity provider and the
backend onto a closed set of error kinds, each carrying the message shown to
the user.

Failures arrive in loosely-typed shapes: httpx exceptions, requests-style
exceptions with a ``response`` attribute, plain mappings coming from other
clients, OS-level socket errors. ``classify_error`` inspects them once so
callers only ever deal with an ``ErrorKind``.

Resolution order (first match wins):
    1. HTTP response with status 401        -> Unauthorized
    2. HTTP response with status 403        -> Forbidden
    3. HTTP response with any other status  -> BackendError(status, body)
    4. Transport code ECONNREFUSED          -> BackendUnreachable
    5. Any other transport code             -> NetworkError(code)
    6. Exception with a message             -> UnknownError(message)
    7. Anything else                        -> UnknownError("unknown")
"""

import errno
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx


CONNECTION_REFUSED = "ECONNREFUSED"

# Bound on the __cause__/__context__ walk when looking for a socket error
_MAX_CHAIN_DEPTH = 8


# =============================================================================
# Exceptions
# =============================================================================

class IdentitySyncError(Exception):
    """Base exception for identity sync errors"""
    pass


class IdentityProviderError(IdentitySyncError):
    """Raised when the identity provider cannot complete a request"""
    pass


class IdentityProviderNotConfigured(IdentityProviderError):
    """Raised when an identity provider feature has no endpoint configured"""
    pass


# =============================================================================
# Error Kinds
# =============================================================================

@dataclass(frozen=True)
class AuthTokenUnavailable:
    """The identity provider could not issue a token."""

    name = "auth_token_unavailable"

    @property
    def message(self) -> str:
        return "Unable to obtain an authentication token"


@dataclass(frozen=True)
class Unauthorized:
    """The backend rejected the token."""

    name = "unauthorized"

    @property
    def message(self) -> str:
        return "Login verification failed, please sign in again"


@dataclass(frozen=True)
class Forbidden:
    """Authenticated but not permitted."""

    name = "forbidden"

    @property
    def message(self) -> str:
        return "Insufficient permissions"


@dataclass(frozen=True)
class BackendError:
    """Any other non-2xx backend response."""

    status: int
    body: Any = None

    name = "backend_error"

    @property
    def message(self) -> str:
        return f"Request failed ({self.status}): {_render_body(self.body)}"


@dataclass(frozen=True)
class BackendUnreachable:
    """The backend refused the connection."""

    name = "backend_unreachable"

    @property
    def message(self) -> str:
        return "Unable to connect to the backend server"


@dataclass(frozen=True)
class NetworkError:
    """Transport failure other than a refused connection."""

    code: str

    name = "network_error"

    @property
    def message(self) -> str:
        return f"Connection error: {self.code}"


@dataclass(frozen=True)
class UnknownError:
    """Anything that does not match a more specific kind."""

    detail: str = "unknown"

    name = "unknown_error"

    @property
    def message(self) -> str:
        return f"Verification failed: {self.detail}"


ErrorKind = Union[
    AuthTokenUnavailable,
    Unauthorized,
    Forbidden,
    BackendError,
    BackendUnreachable,
    NetworkError,
    UnknownError,
]


# =============================================================================
# Classification
# =============================================================================

def classify_error(failure: Any) -> ErrorKind:
    """
    Classify an arbitrary failure value.

    Response-shaped failures are checked before anything else because an
    exception can carry a response and a message at the same time.

    Args:
        failure: Exception, mapping or any other value describing a failure

    Returns:
        The matching ErrorKind
    """
    response = _get(failure, "response")
    if response is not None:
        status_code = _status_of(response)
        if status_code is not None:
            if status_code == 401:
                return Unauthorized()
            if status_code == 403:
                return Forbidden()
            return BackendError(status=status_code, body=_body_of(response))

    code = _transport_code(failure)
    if code is not None:
        if code == CONNECTION_REFUSED:
            return BackendUnreachable()
        return NetworkError(code=code)

    if isinstance(failure, BaseException):
        message = str(failure)
        if message:
            return UnknownError(detail=message)
    else:
        message = _get(failure, "message")
        if isinstance(message, str) and message:
            return UnknownError(detail=message)

    return UnknownError()


def _get(value: Any, key: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(key)
    return getattr(value, key, None)


def _status_of(response: Any) -> Optional[int]:
    for key in ("status_code", "status"):
        status_code = _get(response, key)
        if isinstance(status_code, int) and not isinstance(status_code, bool):
            return status_code
    return None


def _body_of(response: Any) -> Any:
    if isinstance(response, httpx.Response):
        try:
            return response.json()
        except ValueError:
            return response.text or None

    for key in ("data", "body", "text"):
        body = _get(response, key)
        if body is not None:
            return body
    return None


def _transport_code(failure: Any) -> Optional[str]:
    """
    Find the transport-level error code of a failure.

    Looks at a string ``code`` attribute or key, then the errno of any OSError
    in the exception chain. httpx transport errors without an OS error are
    tagged with their class name.
    """
    code = _get(failure, "code")
    if isinstance(code, str) and code:
        return code

    if not isinstance(failure, BaseException):
        return None

    current: Optional[BaseException] = failure
    for _ in range(_MAX_CHAIN_DEPTH):
        if current is None:
            break
        if isinstance(current, OSError) and current.errno is not None:
            return errno.errorcode.get(current.errno, str(current.errno))
        current = current.__cause__ or current.__context__

    if isinstance(failure, httpx.TransportError):
        return type(failure).__name__

    return None


def _render_body(body: Any) -> str:
    if body is None:
        return "unknown error"
    if isinstance(body, str):
        return body
    if isinstance(body, Mapping) and isinstance(body.get("message"), str):
        return body["message"]
    try:
        return json.dumps(body, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(body)
