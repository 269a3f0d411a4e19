"""
User Management Routes

Listing, search, statistics and profile/status changes for user accounts.
All endpoints require a valid session credential.
"""
from typing import Optional
import logging

from fastapi import APIRouter, Depends

from backend.api.deps import get_user_service, require_session
from backend.api.schemas import (
    UpdateUserRequest,
    UserListData,
    UserResponse,
    UserStatsResponse,
    success,
)
from backend.core.auth.credentials import SessionClaims
from backend.core.errors import ValidationError
from backend.core.users.service import Page, UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"], dependencies=[Depends(require_session)])


def _parse_int(value: Optional[str]) -> Optional[int]:
    """Lenient query parsing: anything unparsable counts as absent."""
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def _parse_user_id(user_id: str) -> int:
    if not user_id or not user_id.strip():
        raise ValidationError("User ID is required")
    try:
        value = int(user_id)
    except ValueError:
        raise ValidationError("Invalid user ID format")
    if value < 0:
        raise ValidationError("Invalid user ID format")
    return value


def _page_data(page: Page, keyword: Optional[str] = None) -> UserListData:
    return UserListData(
        users=[UserResponse.model_validate(u) for u in page.users],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
        keyword=keyword,
    )


# ============================================================================
# Collection endpoints (declared before /{user_id})
# ============================================================================

@router.get("")
async def list_users(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    users: UserService = Depends(get_user_service),
):
    """List user accounts (paginated, newest first)."""
    result = users.get_all_users(_parse_int(page), _parse_int(limit))
    return success(_page_data(result).model_dump(exclude={"keyword"}))


@router.get("/search")
async def search_users(
    q: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    users: UserService = Depends(get_user_service),
):
    """Search by name or email (case-insensitive substring)."""
    result = users.search_users(q, _parse_int(page), _parse_int(limit))
    return success(_page_data(result, keyword=q.strip()))


@router.get("/stats")
async def user_stats(users: UserService = Depends(get_user_service)):
    """Total, active and inactive account counts."""
    return success(UserStatsResponse.model_validate(users.get_user_stats()))


# ============================================================================
# Single user endpoints
# ============================================================================

@router.get("/{user_id}")
async def get_user(user_id: str, users: UserService = Depends(get_user_service)):
    return success(UserResponse.model_validate(users.get_user_by_id(_parse_user_id(user_id))))


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    request: UpdateUserRequest,
    session: SessionClaims = Depends(require_session),
    users: UserService = Depends(get_user_service),
):
    """Update name and avatar."""
    user = users.update_user_profile(_parse_user_id(user_id), request.name, request.avatar_url)
    logger.info(f"User {user.id} profile updated by {session.subject_email}")
    return success(UserResponse.model_validate(user), message="User profile updated successfully")


@router.patch("/{user_id}/activate")
async def activate_user(user_id: str, users: UserService = Depends(get_user_service)):
    users.activate_user(_parse_user_id(user_id))
    return success(message="User activated successfully")


@router.patch("/{user_id}/deactivate")
async def deactivate_user(user_id: str, users: UserService = Depends(get_user_service)):
    users.deactivate_user(_parse_user_id(user_id))
    return success(message="User deactivated successfully")


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    session: SessionClaims = Depends(require_session),
    users: UserService = Depends(get_user_service),
):
    users.delete_user(_parse_user_id(user_id))
    logger.info(f"User {user_id} deleted by {session.subject_email}")
    return success(message="User deleted successfully")
