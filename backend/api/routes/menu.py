"""
Main menu route
"""
from fastapi import APIRouter, Depends

from backend.api.deps import require_session
from backend.api.schemas import MenuResponse, success
from backend.core.auth.credentials import SessionClaims
from backend.core.menu import get_main_menu

router = APIRouter(prefix="/api/collp", tags=["menu"])


@router.get("/main-menu")
async def main_menu(session: SessionClaims = Depends(require_session)):
    """Menu entries for the signed-in user."""
    return success(MenuResponse(email=session.subject_email, menu=get_main_menu()))
