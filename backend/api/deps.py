"""
Request dependencies: session guard, services and the login orchestrator.
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from backend.api.context import AppContext
from backend.core.auth.credentials import SessionClaims
from backend.core.auth.orchestrator import AuthOrchestrator
from backend.core.auth.session_guard import SessionGuard
from backend.core.database import get_db
from backend.core.database.repository import UserRepository
from backend.core.errors import AuthenticationError
from backend.core.users.service import UserService

logger = logging.getLogger(__name__)


def get_context(request: Request) -> AppContext:
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise RuntimeError("Application context not initialized")
    return context


def require_session(
    request: Request,
    authorization: Optional[str] = Header(None),
    context: AppContext = Depends(get_context),
) -> SessionClaims:
    """
    Authenticate the request's bearer credential.

    The verified claims are returned and also stored on request.state.session.
    Raises 401 if the header is missing or malformed, or the token is invalid or expired.
    """
    try:
        claims = SessionGuard(context.verifier).authenticate(authorization)
    except AuthenticationError as e:
        client = request.client.host if request.client else "unknown"
        logger.warning(f"Authentication failed from {client} on {request.url.path}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    request.state.session = claims
    return claims


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(UserRepository(db))


def get_orchestrator(
    context: AppContext = Depends(get_context),
    users: UserService = Depends(get_user_service),
) -> AuthOrchestrator:
    return AuthOrchestrator(
        exchanger=context.exchanger,
        signer=context.signer,
        state_store=context.state_store,
        users=users,
        frontend_redirect=context.settings.frontend_redirect,
    )
