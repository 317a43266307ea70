"""
Authentication routes: the view layer of the session-synchronization flow.

Routes (paths come from settings):
- HOME_ROUTE            : signed-in state plus any error marker
- SSO_CALLBACK_ROUTE    : same-origin SSO completion
- OAUTH_CALLBACK_ROUTE  : OAuth-provider completion, then backend OAuth login
- /profile              : backend session verification
- /sign-in              : password sign-in
- /sign-in/{provider}   : redirect sign-in (google, github)

Every route builds its own controller and disposes it when the response is
done, so nothing from a request outlives it.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from ..config import Settings, get_settings
from ..errors import IdentityProviderNotConfigured
from ..gateway.client import BackendGateway, HttpBackendGateway
from ..models import LocalIdentity, SignInRequest, SignInResponse
from .callback import CallbackRouter
from .provider import IdentityProviderClient, SessionCookieIdentityProvider
from .session import SessionController, SessionMode, describe_state
from .signin import OAUTH_STRATEGIES, oauth_redirect_url, sign_in_with_password

logger = logging.getLogger(__name__)

COMPLETING_SIGN_IN = {
    "status": "completing_sign_in",
    "message": "Completing sign-in, please wait",
}


# =============================================================================
# Dependencies
# =============================================================================

def _settings_of(request: Request) -> Settings:
    app_state = getattr(request.app.state, "app_state", None)
    return getattr(app_state, "settings", None) or get_settings()


def get_identity_provider(request: Request) -> IdentityProviderClient:
    """Identity provider client for the current request."""
    return SessionCookieIdentityProvider.from_request(request, _settings_of(request))


def get_backend_gateway(request: Request) -> Optional[BackendGateway]:
    """Backend gateway over the shared HTTP client held in app state, if any."""
    app_state = getattr(request.app.state, "app_state", None)
    client = getattr(app_state, "backend_client", None)
    if client is None:
        return None
    return HttpBackendGateway(client, _settings_of(request))


def require_backend_gateway(
    gateway: Optional[BackendGateway] = Depends(get_backend_gateway),
) -> BackendGateway:
    """
    Backend gateway for routes that always talk to the backend.

    Raises:
        HTTPException: 503 if the backend client has not been initialised
    """
    return _ensure_gateway(gateway)


# =============================================================================
# Helpers
# =============================================================================

def _ensure_gateway(gateway: Optional[BackendGateway]) -> BackendGateway:
    if gateway is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Backend client not available",
        )
    return gateway


def _render_identity(identity: Optional[LocalIdentity]) -> Optional[Dict[str, Any]]:
    if identity is None:
        return None
    return identity.model_dump()


def _absolute(request: Request, route: str) -> str:
    return f"{str(request.base_url).rstrip('/')}{route}"


def _callback_decision(request: Request, provider: IdentityProviderClient, settings: Settings):
    router = CallbackRouter(settings.HOME_ROUTE)
    router.location = request.url.path
    return router.on_readiness_change(provider.is_loaded, provider.is_signed_in)


async def _run_session(
    provider: IdentityProviderClient,
    gateway: BackendGateway,
    mode: SessionMode,
    settings: Settings,
) -> Dict[str, Any]:
    controller = SessionController(provider, gateway, mode=mode, settings=settings)
    try:
        state = await controller.start_session()
    finally:
        controller.dispose()

    return {
        "user": _render_identity(provider.current_user()),
        "session": describe_state(state),
    }


# =============================================================================
# Router
# =============================================================================

def build_auth_router(settings: Optional[Settings] = None) -> APIRouter:
    """Create the auth router with route paths taken from settings."""
    settings = settings or get_settings()
    router = APIRouter(tags=["authentication"])

    async def home(
        request: Request,
        provider: IdentityProviderClient = Depends(get_identity_provider),
    ) -> Dict[str, Any]:
        return {
            "loaded": provider.is_loaded,
            "signed_in": provider.is_signed_in,
            "user": _render_identity(provider.current_user()),
            "error": request.query_params.get("error"),
        }

    async def sso_callback(
        request: Request,
        provider: IdentityProviderClient = Depends(get_identity_provider),
    ):
        decision = _callback_decision(request, provider, settings)
        if not decision.navigates:
            return JSONResponse(COMPLETING_SIGN_IN)
        return RedirectResponse(decision.destination, status_code=status.HTTP_302_FOUND)

    async def oauth_callback(
        request: Request,
        provider: IdentityProviderClient = Depends(get_identity_provider),
        gateway: Optional[BackendGateway] = Depends(get_backend_gateway),
    ):
        if not provider.is_loaded:
            return JSONResponse(COMPLETING_SIGN_IN)

        if not provider.is_signed_in:
            decision = _callback_decision(request, provider, settings)
            return RedirectResponse(decision.destination, status_code=status.HTTP_302_FOUND)

        return await _run_session(provider, _ensure_gateway(gateway), SessionMode.OAUTH_LOGIN, settings)

    async def profile(
        provider: IdentityProviderClient = Depends(get_identity_provider),
        gateway: BackendGateway = Depends(require_backend_gateway),
    ) -> Dict[str, Any]:
        return await _run_session(provider, gateway, SessionMode.VERIFY, settings)

    async def sign_in(
        body: SignInRequest,
        provider: IdentityProviderClient = Depends(get_identity_provider),
    ) -> SignInResponse:
        return await sign_in_with_password(provider, body.identifier, body.password)

    async def sign_in_redirect(
        provider_name: str,
        request: Request,
        provider: IdentityProviderClient = Depends(get_identity_provider),
    ):
        if provider_name not in OAUTH_STRATEGIES:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unsupported sign-in provider: {provider_name}",
            )

        try:
            url = oauth_redirect_url(
                provider,
                provider_name,
                callback_url=_absolute(request, settings.SSO_CALLBACK_ROUTE),
                complete_url=_absolute(request, settings.HOME_ROUTE),
            )
        except (IdentityProviderNotConfigured, RuntimeError) as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=str(e),
            )

        logger.info("Redirecting to identity provider", extra={"provider": provider_name})
        return RedirectResponse(url, status_code=status.HTTP_302_FOUND)

    router.add_api_route(settings.HOME_ROUTE, home, methods=["GET"])
    router.add_api_route(settings.SSO_CALLBACK_ROUTE, sso_callback, methods=["GET"])
    router.add_api_route(settings.OAUTH_CALLBACK_ROUTE, oauth_callback, methods=["GET"])
    router.add_api_route("/profile", profile, methods=["GET"])
    router.add_api_route("/sign-in", sign_in, methods=["POST"], response_model=SignInResponse)
    router.add_api_route("/sign-in/{provider_name}", sign_in_redirect, methods=["GET"])

    return router
