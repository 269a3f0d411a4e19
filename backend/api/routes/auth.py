"""
Authentication routes

Google OAuth2 login: redirect to Google, then handle the callback and hand the
session credential to the frontend.
"""
from typing import Optional
import logging

from fastapi import APIRouter, Cookie, Depends, Request
from fastapi.responses import RedirectResponse

from backend.api.deps import get_orchestrator
from backend.core.auth.orchestrator import AuthOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

# Holds the state issued to this browser until the callback
STATE_COOKIE = "oauth_state"
STATE_COOKIE_PATH = "/api/auth"


@router.get("/google/login")
async def google_login(request: Request, orchestrator: AuthOrchestrator = Depends(get_orchestrator)):
    """
    Initiate Google OAuth2 flow.

    Issues a one-time state value for CSRF protection, stores it in a
    short-lived cookie and redirects to Google.
    """
    login = orchestrator.start_login()
    response = RedirectResponse(url=login.authorization_url, status_code=307)
    response.set_cookie(
        STATE_COOKIE,
        login.state,
        max_age=orchestrator.state_store.ttl_seconds,
        path=STATE_COOKIE_PATH,
        httponly=True,
        secure=request.url.scheme == "https",
        samesite="lax",
    )
    return response


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    oauth_state: Optional[str] = Cookie(None),
    orchestrator: AuthOrchestrator = Depends(get_orchestrator),
):
    """
    Handle Google OAuth2 callback.

    Exchanges the code for the user's Google profile, finds or creates the
    account, and redirects to the frontend with the session credential.
    The state must match the cookie set by the login endpoint.

    Note: the credential travels in the redirect URL query string, so it may
    end up in browser history and proxy logs.
    """
    result = await orchestrator.complete_login(
        code=code,
        state=state,
        browser_state=oauth_state,
        error=error,
    )
    response = RedirectResponse(url=result.redirect_url, status_code=303)
    response.delete_cookie(STATE_COOKIE, path=STATE_COOKIE_PATH)
    return response
